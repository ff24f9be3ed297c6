"""
Break policy model: singleton table for admin-configurable break rules.

Only one row should ever exist.  It is seeded from the settings defaults at
startup and reads fall back to those defaults until then.  The eligibility
evaluator and entitlement ledger read it on every decision, so a policy
change applies immediately.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer

from breakroom.db.base import Base


class BreakPolicy(Base):
    __tablename__ = "break_policy"

    id: int = Column(Integer, primary_key=True, default=1)  # type: ignore[assignment]
    micro_break_daily_limit_minutes: int = Column(Integer, nullable=False, default=30)  # type: ignore[assignment]
    lunch_break_daily_limit_minutes: int = Column(Integer, nullable=False, default=60)  # type: ignore[assignment]
    min_minutes_before_break: int = Column(Integer, nullable=False, default=60)  # type: ignore[assignment]
    instant_approval_team_capacity: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
