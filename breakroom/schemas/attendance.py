"""Pydantic schemas for attendance intervals and the derived state."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from breakroom.core.enums import AttendanceState
from breakroom.schemas.breaks import BreakRead, DailyEntitlement


class CheckInRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=500)


class AttendanceRead(BaseModel):
    id: int
    user_id: int
    clock_in_at: datetime
    clock_out_at: datetime | None
    notes: str | None = None

    model_config = {"from_attributes": True}


class AttendanceSnapshot(BaseModel):
    """Everything a worker's dashboard needs, recomputed per request."""

    state: AttendanceState
    attendance: AttendanceRead | None = None
    open_break: BreakRead | None = None
    work_duration_minutes: int = 0
    entitlements: DailyEntitlement
