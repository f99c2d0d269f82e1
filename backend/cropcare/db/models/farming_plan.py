"""Farming plan ORM model."""
from __future__ import annotations

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Index, String, Text, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from cropcare.db.base import Base
from cropcare.db.types import JSONDocument


class FarmingPlan(Base):
    __tablename__ = "farming_plans"
    __table_args__ = (
        Index("ix_farming_plans_user_status", "user_id", "status"),
        Index("ix_farming_plans_cleanup_after", "cleanup_after_date"),
    )

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    id = Column(String(length=120), primary_key=True)
    crop_type = Column(Text, nullable=False)
    crop_name = Column(Text, nullable=False)
    crop_family = Column(String(length=32), nullable=False, server_default=sa_text("'generic'"))
    area_acres = Column(Float, nullable=False)
    planting_date = Column(Date, nullable=False)
    expected_harvest_date = Column(Date, nullable=False)
    cleanup_after_date = Column(Date, nullable=False)
    status = Column(String(length=20), nullable=False, server_default=sa_text("'active'"))
    # NULL until content is stored; "oracle" or "heuristic" afterwards.
    source = Column(String(length=20), nullable=True)
    title_i18n = Column(JSONDocument, nullable=True)
    overview_i18n = Column(JSONDocument, nullable=True)
    watering_rules = Column(JSONDocument, nullable=False, default=list)
    recurring_tasks = Column(JSONDocument, nullable=False, default=list)
    one_off_tasks = Column(JSONDocument, nullable=False, default=list)
    oracle_attempted_at = Column(DateTime(timezone=True), nullable=True)
    oracle_error = Column(Text, nullable=True)
    generated_at = Column(DateTime(timezone=True), nullable=True)
    notification_ids = Column(JSONDocument, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    @property
    def has_rule_content(self) -> bool:
        return bool(self.source) and bool(self.watering_rules or self.recurring_tasks or self.one_off_tasks)
