"""Pydantic schemas for productivity reports and health."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel

from breakroom.core.enums import BreakType


class DailyMetrics(BaseModel):
    user_id: int
    date: dt.date
    worked_minutes: int
    micro_break_minutes: int
    lunch_minutes: int
    effective_minutes: int
    break_count: int


class TeamDailyStats(BaseModel):
    team_id: int
    date: dt.date
    total_members_checked_in: int
    currently_working: int
    on_coffee_break: int
    on_wc_break: int
    on_lunch_break: int
    total_minutes_worked: int
    avg_minutes_per_person: float


class HealthResponse(BaseModel):
    db: bool


class DailyBreakdown(BaseModel):
    """One UTC day of a worker's time sheet."""

    work_date: dt.date
    first_clock_in: dt.datetime | None = None
    last_clock_out: dt.datetime | None = None
    worked_minutes: int
    micro_break_minutes: int
    lunch_minutes: int
    effective_minutes: int
    coffee_breaks: int
    wc_breaks: int
    lunch_breaks: int


class UserWorkSummary(BaseModel):
    user_id: int
    start_date: dt.date
    end_date: dt.date
    total_days_worked: int
    total_minutes_clocked: int
    total_break_minutes: int
    effective_minutes: int
    coffee_break_count: int
    wc_break_count: int
    lunch_break_count: int
    avg_daily_minutes: float


class BreakStatistics(BaseModel):
    break_type: BreakType
    total_breaks: int
    total_minutes: int
    avg_duration_minutes: float
    min_duration_minutes: int
    max_duration_minutes: int
