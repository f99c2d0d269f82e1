from __future__ import annotations

from datetime import date
from uuid import uuid4

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cropcare.db.models.farming_plan import FarmingPlan
from cropcare.db.models.user import User
from cropcare.services.job_runner import run_cleanup_job
from cropcare.services.plan_cleanup import sweep_expired_plans


def _session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_fk(conn, record):  # pragma: no cover
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    FarmingPlan.__table__.create(bind=engine)
    return TestingSession


def _seed_plan(db_session, user_id, plan_id, cleanup_after):
    session = db_session()
    try:
        if session.get(User, user_id) is None:
            session.add(User(id=user_id))
            session.flush()
        session.add(
            FarmingPlan(
                user_id=user_id,
                id=plan_id,
                crop_type="cereal",
                crop_name="Rice",
                area_acres=1.0,
                planting_date=date(2024, 6, 1),
                expected_harvest_date=date(2024, 9, 29),
                cleanup_after_date=cleanup_after,
                status="active",
                source="heuristic",
            )
        )
        session.commit()
    finally:
        session.close()


def _plan_ids(db_session):
    session = db_session()
    try:
        return {row.id for row in session.query(FarmingPlan).all()}
    finally:
        session.close()


def test_sweep_respects_cleanup_boundary() -> None:
    db_session = _session()
    user_id = uuid4()
    _seed_plan(db_session, user_id, "rice-a", date(2024, 9, 30))

    session = db_session()
    try:
        assert sweep_expired_plans(session, today=date(2024, 9, 29)) == 0
        assert sweep_expired_plans(session, today=date(2024, 9, 30)) == 0
        assert _plan_ids(db_session) == {"rice-a"}

        assert sweep_expired_plans(session, today=date(2024, 10, 1)) == 1
        assert _plan_ids(db_session) == set()

        assert sweep_expired_plans(session, today=date(2024, 10, 1)) == 0
    finally:
        session.close()


def test_sweep_scoped_to_one_user() -> None:
    db_session = _session()
    owner = uuid4()
    other = uuid4()
    _seed_plan(db_session, owner, "rice-owner", date(2024, 1, 1))
    _seed_plan(db_session, other, "rice-other", date(2024, 1, 1))

    session = db_session()
    try:
        deleted = sweep_expired_plans(session, user_id=owner, today=date(2024, 6, 1))
    finally:
        session.close()

    assert deleted == 1
    assert _plan_ids(db_session) == {"rice-other"}


def test_cleanup_job_sweeps_all_users() -> None:
    db_session = _session()
    _seed_plan(db_session, uuid4(), "old-1", date(2024, 1, 1))
    _seed_plan(db_session, uuid4(), "old-2", date(2024, 2, 1))
    _seed_plan(db_session, uuid4(), "current", date(2024, 12, 1))

    session = db_session()
    try:
        result = run_cleanup_job(session, today=date(2024, 6, 1))
    finally:
        session.close()

    assert result.plans_deleted == 2
    assert _plan_ids(db_session) == {"current"}
