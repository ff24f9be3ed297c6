"""
Attendance intervals: clock-in, clock-out and the derived worker state.

Clock-out closes the shift in one transaction: an active break is completed
at the same instant, a pending request is denied, and the interval itself is
closed with a guarded ``UPDATE ... WHERE clock_out_at IS NULL``.  An approved
break that was never started stays as it is; it can no longer start because
its interval is closed.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.core.enums import (AttendanceState, BreakStatus, BreakType,
                                  LIVE_BREAK_STATUSES)
from breakroom.core.exceptions import (AuthorizationError, NotFoundError,
                                       StateConflictError)
from breakroom.db.legacy import normalize_break_type
from breakroom.models.attendance import AttendanceInterval, BreakRequest
from breakroom.models.user import User
from breakroom.schemas.attendance import AttendanceRead, AttendanceSnapshot
from breakroom.schemas.breaks import BreakRead
from breakroom.services.eligibility import find_live_break
from breakroom.services.entitlements import get_daily_entitlements
from breakroom.services.lifecycle import (BreakRef, complete_break,
                                         lock_interval, transition)
from breakroom.services.relay import (publish_attendance_change,
                                      publish_break_change)
from breakroom.services.timekeeping import minutes_between, utcnow

logger = logging.getLogger(__name__)

OPEN_INTERVAL_INDEX = "uq_attendance_open_per_user"
SHIFT_ENDED_REASON = "Shift ended before the request was reviewed"


def _is_open_interval_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc)
    return OPEN_INTERVAL_INDEX in message or "attendance.user_id" in message


async def _team_of(db: AsyncSession, user_id: int) -> int | None:
    result = await db.execute(select(User.team_id).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_open_interval(db: AsyncSession, user_id: int) -> AttendanceInterval | None:
    result = await db.execute(
        select(AttendanceInterval)
        .where(
            AttendanceInterval.user_id == user_id,
            AttendanceInterval.clock_out_at.is_(None),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_latest_interval(db: AsyncSession, user_id: int) -> AttendanceInterval | None:
    result = await db.execute(
        select(AttendanceInterval)
        .where(AttendanceInterval.user_id == user_id)
        .order_by(AttendanceInterval.clock_in_at.desc(), AttendanceInterval.id.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _close_interval(db: AsyncSession, attendance_id: int, now: datetime) -> bool:
    result = await db.execute(
        update(AttendanceInterval)
        .where(
            AttendanceInterval.id == attendance_id,
            AttendanceInterval.clock_out_at.is_(None),
        )
        .values(clock_out_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ── Clock in / out ──────────────────────────────────────────────────
async def check_in(db: AsyncSession, user_id: int, notes: str | None = None) -> AttendanceInterval:
    if await get_open_interval(db, user_id) is not None:
        raise StateConflictError("Already clocked in")

    now = utcnow()
    interval = AttendanceInterval(user_id=user_id, clock_in_at=now, notes=notes, created_at=now)
    db.add(interval)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        if _is_open_interval_conflict(exc):
            raise StateConflictError("Already clocked in") from exc
        raise
    await db.refresh(interval)

    logger.info("User %d clocked in (attendance %d)", user_id, interval.id)
    publish_attendance_change(interval, await _team_of(db, user_id), "insert")
    return interval


async def check_out(
    db: AsyncSession,
    attendance_id: int,
    user_id: int | None = None,
) -> AttendanceInterval:
    """Close the interval and settle its live break in the same transaction.

    The interval is closed before the live break is looked up, so a break
    that started a moment earlier is seen and completed, and one that tries
    to start afterwards finds the shift closed.
    """
    interval = await lock_interval(db, attendance_id)
    if interval is None:
        await db.rollback()
        raise NotFoundError("Attendance record not found")
    if user_id is not None and interval.user_id != user_id:
        await db.rollback()
        raise AuthorizationError("You can only clock out of your own shift")
    if interval.clock_out_at is not None:
        await db.rollback()
        raise StateConflictError("Already clocked out")
    owner_id = interval.user_id

    now = utcnow()
    if not await _close_interval(db, attendance_id, now):
        await db.rollback()
        raise StateConflictError("Already clocked out")

    live = await find_live_break(db, attendance_id)
    settled: BreakRef | None = None
    if live is not None:
        ref = BreakRef.of(live)
        if ref.status == BreakStatus.ACTIVE.value:
            if await complete_break(db, ref, now):
                settled = ref
        elif ref.status == BreakStatus.PENDING.value:
            values = {"denied_at": now, "denial_reason": SHIFT_ENDED_REASON}
            if await transition(db, ref, BreakStatus.PENDING, BreakStatus.DENIED, values):
                settled = ref
        # A legacy-type retry rolls back the close above; re-applying it is
        # a no-op otherwise.
        await _close_interval(db, attendance_id, now)
    await db.commit()

    interval = await db.get(AttendanceInterval, attendance_id, populate_existing=True)
    logger.info("User %d clocked out (attendance %d)", owner_id, attendance_id)

    team_id = await _team_of(db, owner_id)
    if settled is not None:
        brk = await db.get(BreakRequest, settled.id, populate_existing=True)
        publish_break_change(brk)
    publish_attendance_change(interval, team_id)
    return interval


# ── Derived state ───────────────────────────────────────────────────
_BREAK_STATES = {
    (False, BreakStatus.PENDING.value): AttendanceState.BREAK_REQUESTED,
    (False, BreakStatus.APPROVED.value): AttendanceState.BREAK_APPROVED,
    (False, BreakStatus.ACTIVE.value): AttendanceState.ON_BREAK,
    (True, BreakStatus.PENDING.value): AttendanceState.LUNCH_REQUESTED,
    (True, BreakStatus.APPROVED.value): AttendanceState.LUNCH_APPROVED,
    (True, BreakStatus.ACTIVE.value): AttendanceState.ON_LUNCH,
}


def derive_state(
    interval: AttendanceInterval | None,
    open_break: BreakRequest | None,
) -> AttendanceState:
    """Project the worker's state from the latest interval and its live break."""
    if interval is None:
        return AttendanceState.NOT_CHECKED_IN
    if interval.clock_out_at is not None:
        return AttendanceState.CHECKED_OUT
    if open_break is None or open_break.status not in LIVE_BREAK_STATUSES:
        return AttendanceState.CHECKED_IN
    is_lunch = normalize_break_type(open_break.type) is BreakType.LUNCH
    return _BREAK_STATES[(is_lunch, open_break.status)]


async def get_attendance_snapshot(db: AsyncSession, user_id: int) -> AttendanceSnapshot:
    now = utcnow()
    interval = await get_latest_interval(db, user_id)
    open_break = None
    if interval is not None and interval.clock_out_at is None:
        open_break = await find_live_break(db, interval.id)

    return AttendanceSnapshot(
        state=derive_state(interval, open_break),
        attendance=AttendanceRead.model_validate(interval) if interval else None,
        open_break=BreakRead.model_validate(open_break) if open_break else None,
        work_duration_minutes=(
            minutes_between(interval.clock_in_at, interval.clock_out_at, now=now)
            if interval
            else 0
        ),
        entitlements=await get_daily_entitlements(db, user_id, now.date(), now=now),
    )
