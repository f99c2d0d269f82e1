"""Schemas for the maintenance job endpoints."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class JobRunRequest(BaseModel):
    job: Literal["cleanup", "notifications"] = Field(description="Maintenance job to run inline.")


class JobRunResponse(BaseModel):
    job: str
    plans_processed: int = Field(description="Plans deleted (cleanup) or visited (notifications).")
    items_written: int = Field(description="Rows deleted or reminders scheduled.")
    request_id: str
