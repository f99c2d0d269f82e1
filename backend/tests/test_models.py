from cropcare.db.base import Base
from cropcare.db import models  # noqa: F401  ensure models are loaded


def test_metadata_contains_core_tables() -> None:
    table_names = set(Base.metadata.tables.keys())

    assert {"users", "farming_plans"}.issubset(table_names)


def test_farming_plan_key_is_scoped_to_user() -> None:
    table = Base.metadata.tables["farming_plans"]

    assert [column.name for column in table.primary_key.columns] == ["user_id", "id"]
    assert {index.name for index in table.indexes} == {
        "ix_farming_plans_user_status",
        "ix_farming_plans_cleanup_after",
    }
