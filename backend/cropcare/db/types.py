"""Column types for the JSON documents stored on plans."""
from __future__ import annotations

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON, TypeDecorator


class JSONDocument(TypeDecorator):
    """
    JSONB on Postgres, plain JSON elsewhere (SQLite in the test suite).

    Python None is written as SQL NULL rather than the JSON literal `null`, so
    `IS NULL` filters behave the same for absent localized titles everywhere.
    """

    impl = JSONB
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB(none_as_null=True))
        return dialect.type_descriptor(JSON(none_as_null=True))
