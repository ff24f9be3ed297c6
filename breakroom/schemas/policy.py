"""Pydantic schemas for the break policy and overage notifications."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class BreakPolicyRead(BaseModel):
    micro_break_daily_limit_minutes: int
    lunch_break_daily_limit_minutes: int
    min_minutes_before_break: int
    instant_approval_team_capacity: int
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class BreakPolicyUpdate(BaseModel):
    micro_break_daily_limit_minutes: int | None = Field(default=None, ge=0, le=24 * 60)
    lunch_break_daily_limit_minutes: int | None = Field(default=None, ge=0, le=24 * 60)
    min_minutes_before_break: int | None = Field(default=None, ge=0, le=24 * 60)
    instant_approval_team_capacity: int | None = Field(default=None, ge=0)


class AdminNotificationRead(BaseModel):
    id: int
    user_id: int
    user_name: str | None = None
    type: str
    category: str
    value_minutes: int
    threshold_minutes: int
    overage_minutes: int
    message: str | None
    entitlement_date: str
    break_id: int | None
    is_read: bool
    read_by: int | None = None
    read_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
