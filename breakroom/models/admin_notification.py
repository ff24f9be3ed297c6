"""
AdminNotification model: flags a daily break pool that went over its limit.

Written in the same transaction that completes the offending break so an
overage is never silently absorbed into the ledger.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (Boolean, Column, DateTime, ForeignKey, Index, Integer,
                        String)

from breakroom.db.base import Base


class AdminNotification(Base):
    __tablename__ = "admin_notifications"
    __table_args__ = (Index("ix_admin_notifications_user_date", "user_id", "entitlement_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    type: str = Column(String(40), nullable=False, default="entitlement_exceeded")  # type: ignore[assignment]
    category: str = Column(String(20), nullable=False)  # type: ignore[assignment]  # micro | lunch
    value_minutes: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    threshold_minutes: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    overage_minutes: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    message: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    entitlement_date: str = Column(String(10), nullable=False)  # type: ignore[assignment]  # YYYY-MM-DD
    break_id: int | None = Column(Integer, ForeignKey("breaks.id"), nullable=True)  # type: ignore[assignment]
    is_read: bool = Column(Boolean, default=False, server_default="false", nullable=False)  # type: ignore[assignment]
    read_by: int | None = Column(Integer, ForeignKey("users.id"), nullable=True)  # type: ignore[assignment]
    read_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
