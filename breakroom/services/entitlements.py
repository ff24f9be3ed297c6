"""
Entitlement ledger: daily break-minute consumption per pool.

Usage is never stored; it is summed from the day's break rows on every read,
so it cannot drift from the lifecycle's own records.  The only thing held in
a table is the policy (limits and thresholds) and the overage flags written
when a completed break leaves a pool above its limit.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.core.config import settings
from breakroom.core.enums import BreakPool, BreakStatus, pool_for
from breakroom.db.legacy import normalize_break_type
from breakroom.models.admin_notification import AdminNotification
from breakroom.models.attendance import BreakRequest
from breakroom.models.break_policy import BreakPolicy
from breakroom.schemas.breaks import DailyEntitlement
from breakroom.services.timekeeping import day_bounds, minutes_between, utcnow

logger = logging.getLogger(__name__)


# ── Policy ──────────────────────────────────────────────────────────
def default_break_policy() -> BreakPolicy:
    return BreakPolicy(
        id=1,
        micro_break_daily_limit_minutes=settings.MICRO_BREAK_DAILY_LIMIT_MINUTES,
        lunch_break_daily_limit_minutes=settings.LUNCH_BREAK_DAILY_LIMIT_MINUTES,
        min_minutes_before_break=settings.MIN_MINUTES_BEFORE_BREAK,
        instant_approval_team_capacity=settings.INSTANT_APPROVAL_TEAM_CAPACITY,
    )


async def get_break_policy(db: AsyncSession) -> BreakPolicy:
    """Fetch the singleton policy row.

    Reads never write: when the row has not been seeded yet the settings
    defaults are returned as an unsaved instance.
    """
    result = await db.execute(select(BreakPolicy).limit(1))
    return result.scalar_one_or_none() or default_break_policy()


async def seed_break_policy(db: AsyncSession) -> BreakPolicy:
    """Persist the default policy row if it does not exist yet."""
    result = await db.execute(select(BreakPolicy).limit(1))
    policy = result.scalar_one_or_none()
    if policy is None:
        policy = default_break_policy()
        db.add(policy)
        await db.commit()
        await db.refresh(policy)
        logger.info("Created default break policy")
    return policy


async def update_break_policy(db: AsyncSession, changes: dict[str, Any]) -> BreakPolicy:
    policy = await seed_break_policy(db)
    for field, value in changes.items():
        setattr(policy, field, value)
    await db.commit()
    await db.refresh(policy)
    logger.info("Break policy updated: %s", changes)
    return policy


def pool_limit(policy: BreakPolicy, pool: BreakPool) -> int:
    if pool is BreakPool.LUNCH:
        return policy.lunch_break_daily_limit_minutes
    return policy.micro_break_daily_limit_minutes


# ── Ledger ──────────────────────────────────────────────────────────
async def get_daily_entitlements(
    db: AsyncSession,
    user_id: int,
    on_date: date | None = None,
    *,
    now: datetime | None = None,
    policy: BreakPolicy | None = None,
) -> DailyEntitlement:
    """Minutes used and allowed per pool for *user_id* on *on_date* (UTC).

    A break counts on the day it started.  Denied requests never count and an
    open break is charged up to *now*.  Database errors propagate.
    """
    now = now or utcnow()
    on_date = on_date or now.date()
    if policy is None:
        policy = await get_break_policy(db)

    day_start, day_end = day_bounds(on_date)
    result = await db.execute(
        select(BreakRequest.type, BreakRequest.started_at, BreakRequest.ended_at).where(
            BreakRequest.user_id == user_id,
            BreakRequest.status != BreakStatus.DENIED.value,
            BreakRequest.started_at.is_not(None),
            BreakRequest.started_at >= day_start,
            BreakRequest.started_at < day_end,
        )
    )

    used = {BreakPool.MICRO: 0, BreakPool.LUNCH: 0}
    for raw_type, started_at, ended_at in result.all():
        pool = pool_for(normalize_break_type(raw_type))
        used[pool] += minutes_between(started_at, ended_at, now=now)

    return DailyEntitlement(
        user_id=user_id,
        date=on_date,
        micro_used=used[BreakPool.MICRO],
        lunch_used=used[BreakPool.LUNCH],
        micro_limit=pool_limit(policy, BreakPool.MICRO),
        lunch_limit=pool_limit(policy, BreakPool.LUNCH),
    )


def pool_usage(ledger: DailyEntitlement, pool: BreakPool) -> tuple[int, int]:
    """``(used, limit)`` for one pool of *ledger*."""
    if pool is BreakPool.LUNCH:
        return ledger.lunch_used, ledger.lunch_limit
    return ledger.micro_used, ledger.micro_limit


async def flag_overage(
    db: AsyncSession,
    user_id: int,
    break_id: int,
    raw_type: str,
    started_at: datetime,
    *,
    now: datetime | None = None,
) -> AdminNotification | None:
    """Record an admin notification if the break's pool is now over its limit.

    Called inside the transaction that completed the break; the caller
    commits.  Returns the notification, or ``None`` when within limits.
    """
    pool = pool_for(normalize_break_type(raw_type))
    ledger = await get_daily_entitlements(db, user_id, started_at.date(), now=now)
    used, limit = pool_usage(ledger, pool)
    if used <= limit:
        return None

    label = "micro/WC" if pool is BreakPool.MICRO else "lunch"
    notification = AdminNotification(
        user_id=user_id,
        type="entitlement_exceeded",
        category=pool.value,
        value_minutes=used,
        threshold_minutes=limit,
        overage_minutes=used - limit,
        message=f"Daily {label} allowance exceeded by {used - limit} min ({used}/{limit} min used)",
        entitlement_date=ledger.date.isoformat(),
        break_id=break_id,
        is_read=False,
    )
    db.add(notification)
    logger.warning(
        "User %d exceeded %s pool on %s: %d/%d min (break %d)",
        user_id,
        pool.value,
        ledger.date,
        used,
        limit,
        break_id,
    )
    return notification
