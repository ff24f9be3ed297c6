"""
Break lifecycle state machine.

::

    pending ──approve──▶ approved ──start──▶ active ──end / force-end──▶ completed
       │                                       ▲
       ├──deny / cancel──▶ denied              │
       └──────────── instant approval ─────────┘

Every transition is a single state-guarded ``UPDATE ... WHERE status = :from``.
The datastore decides races: whichever write lands first wins, the other
matches zero rows and gets a :class:`StateConflictError`.  A write that did
not land is never reported as a transition.

A break only becomes active while its shift is open.  Writes that create or
start one lock the attendance row and re-check it inside the same
transaction, so a concurrent clock-out either sees the break and settles it
or closes the shift first and the break write is refused.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.core.enums import BreakStatus, BreakType, can_transition
from breakroom.core.exceptions import (AuthorizationError,
                                       BreakEligibilityError, NotFoundError,
                                       StateConflictError)
from breakroom.db.legacy import normalize_break_type, retry_with_normalized_type
from breakroom.models.attendance import AttendanceInterval, BreakRequest
from breakroom.models.user import User
from breakroom.schemas.breaks import (BreakStarted, EligibilityResult,
                                      RequestBreakResult)
from breakroom.services.eligibility import (BREAK_ALREADY_OPEN, NOT_CLOCKED_IN,
                                            can_request_break, check_pool)
from breakroom.services.entitlements import (flag_overage, get_break_policy,
                                             get_daily_entitlements)
from breakroom.services.moderation import (ensure_can_moderate,
                                           load_moderator,
                                           team_has_break_capacity)
from breakroom.services.relay import publish_break_change
from breakroom.services.timekeeping import utcnow

logger = logging.getLogger(__name__)

OPEN_BREAK_INDEX = "uq_breaks_open_per_attendance"
FORCE_END_DEFAULT_REASON = "Force ended by admin"
CANCEL_DEFAULT_REASON = "Cancelled by employee"


@dataclass(frozen=True)
class BreakRef:
    """Plain snapshot of a break row, safe to use after a rollback."""

    id: int
    user_id: int
    attendance_id: int
    team_id: int | None
    type: str
    status: str
    started_at: datetime | None

    @classmethod
    def of(cls, brk: BreakRequest) -> BreakRef:
        return cls(
            id=brk.id,
            user_id=brk.user_id,
            attendance_id=brk.attendance_id,
            team_id=brk.team_id,
            type=brk.type,
            status=brk.status,
            started_at=brk.started_at,
        )


def is_open_break_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc)
    return OPEN_BREAK_INDEX in message or "breaks.attendance_id" in message


# ── Low-level guarded writes ────────────────────────────────────────
async def load_break(db: AsyncSession, break_id: int) -> BreakRequest:
    brk = await db.get(BreakRequest, break_id, populate_existing=True)
    if brk is None:
        raise NotFoundError("Break request not found")
    return brk


def interval_is_open(attendance_id: int) -> ColumnElement[bool]:
    """``EXISTS`` guard: the shift has not been clocked out."""
    return (
        select(AttendanceInterval.id)
        .where(
            AttendanceInterval.id == attendance_id,
            AttendanceInterval.clock_out_at.is_(None),
        )
        .exists()
    )


async def lock_interval(db: AsyncSession, attendance_id: int) -> AttendanceInterval | None:
    """Read the shift with a row lock held until the transaction ends.

    Clock-out takes the same lock, so the two serialise on backends that
    support ``FOR UPDATE``; SQLite serialises writers on its own.
    """
    result = await db.execute(
        select(AttendanceInterval)
        .where(AttendanceInterval.id == attendance_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def transition(
    db: AsyncSession,
    ref: BreakRef,
    source: BreakStatus,
    target: BreakStatus,
    values: dict[str, Any],
    *guards: ColumnElement[bool],
) -> bool:
    """Move *ref* from *source* to *target*; False if the guard matched nothing.

    Extra *guards* join the ``WHERE`` clause.  Runs through the legacy-type
    shim so rows written by older clients can still change state.  Does not
    commit.
    """
    if not can_transition(source, target):
        raise ValueError(f"Illegal break transition {source.value} -> {target.value}")

    async def write(extra: dict[str, Any]) -> bool:
        result = await db.execute(
            update(BreakRequest)
            .where(BreakRequest.id == ref.id, BreakRequest.status == source.value, *guards)
            .values(status=target.value, **values, **extra)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    return await retry_with_normalized_type(db, write, ref.type)


async def complete_break(
    db: AsyncSession,
    ref: BreakRef,
    now: datetime,
    **values: Any,
) -> bool:
    """active → completed, then flag any pool overage.  Does not commit."""
    completed = await transition(
        db, ref, BreakStatus.ACTIVE, BreakStatus.COMPLETED, {"ended_at": now, **values}
    )
    if completed:
        await flag_overage(db, ref.user_id, ref.id, ref.type, ref.started_at or now, now=now)
    return completed


async def _commit_and_reload(db: AsyncSession, break_id: int, action: str = "update") -> BreakRequest:
    await db.commit()
    brk = await load_break(db, break_id)
    publish_break_change(brk, action)
    return brk


# ── Worker operations ───────────────────────────────────────────────
async def request_break(
    db: AsyncSession,
    user_id: int,
    attendance_id: int,
    break_type: BreakType | str,
    team_id: int | None = None,
    *,
    reason: str | None = None,
) -> RequestBreakResult:
    """Create a break request, instantly active when the team has capacity.

    Raises :class:`BreakEligibilityError` with the evaluator's reason when the
    worker may not take this break.
    """
    break_type = BreakType(break_type)
    now = utcnow()
    policy = await get_break_policy(db)

    eligibility: EligibilityResult = await can_request_break(
        db, user_id, attendance_id, break_type, now=now, policy=policy
    )
    if not eligibility.can_request:
        logger.info("Break request by user %d refused: %s", user_id, eligibility.reason)
        raise BreakEligibilityError(eligibility.reason, eligibility)

    user = await db.get(User, user_id)
    home_team = user.team_id if user is not None else None
    if team_id is None:
        team_id = home_team
    elif team_id != home_team:
        raise AuthorizationError("You can only request breaks for your own team")

    instant = await team_has_break_capacity(db, team_id, policy)
    status = BreakStatus.ACTIVE if instant else BreakStatus.PENDING
    brk = BreakRequest(
        user_id=user_id,
        attendance_id=attendance_id,
        team_id=team_id,
        type=break_type.value,
        status=status.value,
        started_at=now if instant else None,
        reason=reason,
        created_at=now,
    )
    db.add(brk)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        if is_open_break_conflict(exc):
            logger.info("Concurrent break request for attendance %d rejected", attendance_id)
            raise StateConflictError(BREAK_ALREADY_OPEN) from exc
        raise

    interval = await lock_interval(db, attendance_id)
    if interval is None or interval.clock_out_at is not None:
        await db.rollback()
        logger.info("Break request for attendance %d lost the race with clock-out", attendance_id)
        raise BreakEligibilityError(NOT_CLOCKED_IN)
    await db.commit()

    await db.refresh(brk)
    logger.info(
        "Break %d (%s) requested by user %d: %s",
        brk.id,
        break_type.value,
        user_id,
        status.value,
    )
    publish_break_change(brk, "insert")

    balances = await get_daily_entitlements(db, user_id, now.date(), policy=policy)
    return RequestBreakResult(
        status=status,
        break_id=brk.id,
        instant_approval=instant,
        balances=balances,
    )


async def start_approved_break(db: AsyncSession, break_id: int, user_id: int) -> BreakStarted:
    brk = await load_break(db, break_id)
    if brk.user_id != user_id:
        raise AuthorizationError("You can only start your own break")
    if brk.status != BreakStatus.APPROVED.value:
        raise StateConflictError("Break is not ready to start.")
    ref = BreakRef.of(brk)

    interval = await lock_interval(db, ref.attendance_id)
    if interval is None or interval.clock_out_at is not None:
        await db.rollback()
        raise BreakEligibilityError(NOT_CLOCKED_IN)

    now = utcnow()
    ledger = await get_daily_entitlements(db, user_id, now.date(), now=now)
    exhausted = check_pool(ledger, normalize_break_type(ref.type))
    if exhausted:
        await db.rollback()
        raise BreakEligibilityError(exhausted)

    started = await transition(
        db,
        ref,
        BreakStatus.APPROVED,
        BreakStatus.ACTIVE,
        {"started_at": now},
        interval_is_open(ref.attendance_id),
    )
    if not started:
        await db.rollback()
        interval = await db.get(AttendanceInterval, ref.attendance_id, populate_existing=True)
        if interval is None or interval.clock_out_at is not None:
            raise BreakEligibilityError(NOT_CLOCKED_IN)
        raise StateConflictError("Break is not ready to start.")

    brk = await _commit_and_reload(db, ref.id)
    logger.info("Break %d started by user %d", ref.id, user_id)
    return BreakStarted(break_id=brk.id, started_at=brk.started_at)


async def end_break(db: AsyncSession, break_id: int, user_id: int | None = None) -> BreakRequest:
    brk = await load_break(db, break_id)
    if user_id is not None and brk.user_id != user_id:
        raise AuthorizationError("You can only end your own break")
    ref = BreakRef.of(brk)

    if not await complete_break(db, ref, utcnow()):
        await db.rollback()
        raise StateConflictError("No active break found to end. It may have already been completed.")

    brk = await _commit_and_reload(db, ref.id)
    logger.info("Break %d ended by user %d", ref.id, ref.user_id)
    return brk


async def cancel_break_request(
    db: AsyncSession,
    break_id: int,
    user_id: int,
    reason: str | None = None,
) -> BreakRequest:
    """Withdraw the worker's own request before an admin has decided."""
    brk = await load_break(db, break_id)
    if brk.user_id != user_id:
        raise AuthorizationError("You can only cancel your own break request")
    ref = BreakRef.of(brk)

    values = {
        "denied_by": user_id,
        "denied_at": utcnow(),
        "denial_reason": reason or CANCEL_DEFAULT_REASON,
    }
    if not await transition(db, ref, BreakStatus.PENDING, BreakStatus.DENIED, values):
        await db.rollback()
        raise StateConflictError("No pending request found to cancel.")

    brk = await _commit_and_reload(db, ref.id)
    logger.info("Break %d cancelled by user %d", ref.id, user_id)
    return brk


# ── Admin operations ────────────────────────────────────────────────
async def _load_for_moderation(
    db: AsyncSession, break_id: int, admin_id: int
) -> tuple[BreakRef, User]:
    """Load the break and check authority before any write."""
    brk = await load_break(db, break_id)
    actor = await load_moderator(db, admin_id)
    ensure_can_moderate(actor, brk.team_id)
    return BreakRef.of(brk), actor


async def approve_break(db: AsyncSession, break_id: int, admin_id: int) -> BreakRequest:
    ref, actor = await _load_for_moderation(db, break_id, admin_id)

    values = {"approved_by": actor.id, "approved_at": utcnow()}
    if not await transition(db, ref, BreakStatus.PENDING, BreakStatus.APPROVED, values):
        await db.rollback()
        raise StateConflictError("This break request is no longer awaiting approval.")

    brk = await _commit_and_reload(db, ref.id)
    logger.info("Break %d approved by %d", ref.id, actor.id)
    return brk


async def deny_break(
    db: AsyncSession,
    break_id: int,
    admin_id: int,
    reason: str | None = None,
) -> BreakRequest:
    ref, actor = await _load_for_moderation(db, break_id, admin_id)

    values = {"denied_by": actor.id, "denied_at": utcnow(), "denial_reason": reason}
    if not await transition(db, ref, BreakStatus.PENDING, BreakStatus.DENIED, values):
        await db.rollback()
        raise StateConflictError("This break request is no longer awaiting approval.")

    brk = await _commit_and_reload(db, ref.id)
    logger.info("Break %d denied by %d (%s)", ref.id, actor.id, reason or "no reason")
    return brk


async def force_end_break(
    db: AsyncSession,
    break_id: int,
    admin_id: int,
    reason: str | None = None,
) -> BreakRequest:
    ref, actor = await _load_for_moderation(db, break_id, admin_id)

    completed = await complete_break(
        db,
        ref,
        utcnow(),
        reason=reason or FORCE_END_DEFAULT_REASON,
        force_ended_by=actor.id,
    )
    if not completed:
        await db.rollback()
        raise StateConflictError("Unable to force end this break. It may have already completed.")

    brk = await _commit_and_reload(db, ref.id)
    logger.info("Break %d force-ended by %d", ref.id, actor.id)
    return brk
