"""Pydantic schemas for break requests, entitlements and eligibility."""

from __future__ import annotations

import datetime as dt
from datetime import datetime

from pydantic import BaseModel, Field, computed_field, field_validator

from breakroom.core.enums import BreakStatus, BreakType
from breakroom.db.legacy import normalize_break_type


# ── Requests ────────────────────────────────────────────────────────
class BreakRequestCreate(BaseModel):
    attendance_id: int
    break_type: BreakType
    team_id: int | None = None
    reason: str | None = Field(default=None, max_length=500)


class ModerationReason(BaseModel):
    reason: str | None = Field(default=None, max_length=500)

    @field_validator("reason")
    @classmethod
    def _strip(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


# ── Break rows ──────────────────────────────────────────────────────
class BreakRead(BaseModel):
    id: int
    user_id: int
    attendance_id: int
    team_id: int | None
    type: BreakType
    status: BreakStatus
    started_at: datetime | None
    ended_at: datetime | None
    approved_by: int | None = None
    approved_at: datetime | None = None
    denied_by: int | None = None
    denied_at: datetime | None = None
    denial_reason: str | None = None
    reason: str | None = None
    force_ended_by: int | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v: object) -> BreakType:
        return normalize_break_type(v)


class PendingBreakRead(BreakRead):
    user_name: str | None = None


class BreakStarted(BaseModel):
    break_id: int
    started_at: datetime


# ── Entitlements / eligibility ─────────────────────────────────────
class DailyEntitlement(BaseModel):
    user_id: int
    date: dt.date
    micro_used: int
    lunch_used: int
    micro_limit: int
    lunch_limit: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def micro_remaining(self) -> int:
        return max(0, self.micro_limit - self.micro_used)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def lunch_remaining(self) -> int:
        return max(0, self.lunch_limit - self.lunch_used)


class EligibilityResult(BaseModel):
    can_request: bool
    reason: str = ""
    work_duration_minutes: int = 0
    micro_remaining: int = 0
    lunch_remaining: int = 0


class RequestBreakResult(BaseModel):
    status: BreakStatus
    break_id: int
    instant_approval: bool
    balances: DailyEntitlement
