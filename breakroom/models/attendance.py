"""
Attendance interval & break request models: core business domain.

Two partial unique indexes carry the concurrency guarantees:

* ``uq_attendance_open_per_user``: one open shift per user.
* ``uq_breaks_open_per_attendance``: one pending/approved/active break per
  attendance interval.

Both are enforced by the datastore, so two racing inserts cannot both land.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (CheckConstraint, Column, DateTime, ForeignKey, Index,
                        Integer, String, text)

from breakroom.db.base import Base

_OPEN_BREAK_PREDICATE = "status IN ('pending', 'approved', 'active')"


class AttendanceInterval(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        Index("ix_attendance_user_clock_in", "user_id", "clock_in_at"),
        Index(
            "uq_attendance_open_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("clock_out_at IS NULL"),
            postgresql_where=text("clock_out_at IS NULL"),
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    clock_in_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    clock_out_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    notes: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )


class BreakRequest(Base):
    __tablename__ = "breaks"
    __table_args__ = (
        CheckConstraint("type IN ('coffee', 'wc', 'lunch')", name="ck_breaks_type"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'denied', 'active', 'completed')",
            name="ck_breaks_status",
        ),
        Index(
            "uq_breaks_open_per_attendance",
            "attendance_id",
            unique=True,
            sqlite_where=text(_OPEN_BREAK_PREDICATE),
            postgresql_where=text(_OPEN_BREAK_PREDICATE),
        ),
        Index("ix_breaks_user_started", "user_id", "started_at"),
        Index("ix_breaks_team_status", "team_id", "status"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    attendance_id: int = Column(Integer, ForeignKey("attendance.id"), nullable=False)  # type: ignore[assignment]
    team_id: int | None = Column(Integer, ForeignKey("teams.id"), nullable=True)  # type: ignore[assignment]
    type: str = Column(String(20), nullable=False)  # type: ignore[assignment]
    # coffee | wc | lunch  (legacy rows may still hold older values)
    status: str = Column(String(20), nullable=False, default="pending")  # type: ignore[assignment]
    # pending | approved | denied | active | completed
    started_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    ended_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    approved_by: int | None = Column(Integer, ForeignKey("users.id"), nullable=True)  # type: ignore[assignment]
    approved_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    denied_by: int | None = Column(Integer, ForeignKey("users.id"), nullable=True)  # type: ignore[assignment]
    denied_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    denial_reason: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    reason: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    force_ended_by: int | None = Column(Integer, ForeignKey("users.id"), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
