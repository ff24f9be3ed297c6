"""
Eligibility evaluator: may this worker ask for this break right now?

Rules run in order and the first failure supplies the reason:

1. the attendance interval must be the caller's and still open;
2. the interval must not already hold a pending, approved or active break;
3. the first break of a shift needs ``min_minutes_before_break`` of work;
4. the break's pool must not be exhausted for the day.

At request time only exhaustion is checked: how long the break will last is
unknown until it ends, and overage is flagged when it does.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.core.enums import (LIVE_BREAK_STATUSES, BreakPool, BreakStatus,
                                  BreakType, pool_for)
from breakroom.models.attendance import AttendanceInterval, BreakRequest
from breakroom.models.break_policy import BreakPolicy
from breakroom.schemas.breaks import DailyEntitlement, EligibilityResult
from breakroom.services.entitlements import (get_break_policy,
                                             get_daily_entitlements,
                                             pool_usage)
from breakroom.services.timekeeping import minutes_between, utcnow

NOT_CLOCKED_IN = "You must be clocked in to take a break"
BREAK_ALREADY_OPEN = "A break is already pending or active for this shift"


async def find_live_break(db: AsyncSession, attendance_id: int) -> BreakRequest | None:
    """The interval's pending, approved or active break, if any."""
    result = await db.execute(
        select(BreakRequest)
        .where(
            BreakRequest.attendance_id == attendance_id,
            BreakRequest.status.in_(LIVE_BREAK_STATUSES),
        )
        .order_by(BreakRequest.created_at.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def has_taken_break(db: AsyncSession, attendance_id: int) -> bool:
    """True once any break of this interval has actually started."""
    result = await db.execute(
        select(BreakRequest.id)
        .where(
            BreakRequest.attendance_id == attendance_id,
            BreakRequest.status.in_(
                (BreakStatus.ACTIVE.value, BreakStatus.COMPLETED.value)
            ),
        )
        .limit(1)
    )
    return result.first() is not None


def pool_exhausted_reason(pool: BreakPool, used: int, limit: int) -> str:
    if pool is BreakPool.LUNCH:
        return f"You have used all {limit} minutes of lunch break today ({used} min used)"
    return f"You have used all {limit} minutes of micro/WC breaks today ({used} min used)"


def check_pool(ledger: DailyEntitlement, break_type: BreakType) -> str | None:
    """Reason the break's pool is exhausted, or ``None`` if minutes remain."""
    pool = pool_for(break_type)
    used, limit = pool_usage(ledger, pool)
    if used >= limit:
        return pool_exhausted_reason(pool, used, limit)
    return None


async def can_request_break(
    db: AsyncSession,
    user_id: int,
    attendance_id: int,
    break_type: BreakType,
    on_date: date | None = None,
    *,
    now: datetime | None = None,
    policy: BreakPolicy | None = None,
) -> EligibilityResult:
    now = now or utcnow()
    if policy is None:
        policy = await get_break_policy(db)
    ledger = await get_daily_entitlements(db, user_id, on_date or now.date(), now=now, policy=policy)

    interval = await db.get(AttendanceInterval, attendance_id, populate_existing=True)
    owned = interval is not None and interval.user_id == user_id
    work_minutes = minutes_between(interval.clock_in_at, interval.clock_out_at, now=now) if owned else 0

    def verdict(reason: str = "") -> EligibilityResult:
        return EligibilityResult(
            can_request=not reason,
            reason=reason,
            work_duration_minutes=work_minutes,
            micro_remaining=ledger.micro_remaining,
            lunch_remaining=ledger.lunch_remaining,
        )

    if not owned or interval.clock_out_at is not None:
        return verdict(NOT_CLOCKED_IN)

    if await find_live_break(db, attendance_id) is not None:
        return verdict(BREAK_ALREADY_OPEN)

    floor = policy.min_minutes_before_break
    if work_minutes < floor and not await has_taken_break(db, attendance_id):
        remaining = floor - work_minutes
        return verdict(
            f"Breaks are available after {floor} minutes of work; "
            f"you can take your first break in {remaining} minute{'s' if remaining != 1 else ''}"
        )

    exhausted = check_pool(ledger, break_type)
    if exhausted:
        return verdict(exhausted)

    return verdict()
