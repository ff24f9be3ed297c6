"""
Admin moderation surface: who may act on which break requests.

Admins moderate their own team, super admins moderate everyone, employees
moderate nobody.  Requests without a team can only be handled by a super
admin.  The approve / deny / force-end transitions themselves live in
:mod:`breakroom.services.lifecycle`; they call :func:`ensure_can_moderate`
before touching a row.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.core.enums import BreakStatus, Role
from breakroom.core.exceptions import (AuthorizationError, NotFoundError,
                                       StateConflictError)
from breakroom.models.admin_notification import AdminNotification
from breakroom.models.attendance import BreakRequest
from breakroom.models.break_policy import BreakPolicy
from breakroom.models.user import User
from breakroom.schemas.breaks import PendingBreakRead
from breakroom.schemas.policy import AdminNotificationRead
from breakroom.services.timekeeping import utcnow

logger = logging.getLogger(__name__)


def is_moderator(actor: User) -> bool:
    return actor.role in (Role.ADMIN.value, Role.SUPER_ADMIN.value)


def ensure_can_moderate(actor: User, team_id: int | None) -> None:
    """Raise :class:`AuthorizationError` unless *actor* covers *team_id*."""
    if not actor.is_active:
        raise AuthorizationError("Inactive accounts cannot moderate break requests")
    if actor.role == Role.SUPER_ADMIN.value:
        return
    if actor.role != Role.ADMIN.value:
        raise AuthorizationError("Only admins can moderate break requests")
    if team_id is None or actor.team_id != team_id:
        raise AuthorizationError("You can only moderate break requests for your own team")


async def load_moderator(db: AsyncSession, admin_id: int) -> User:
    actor = await db.get(User, admin_id)
    if actor is None:
        raise AuthorizationError("Unknown moderator")
    return actor


# ── Instant-approval signal ─────────────────────────────────────────
async def team_on_break_count(db: AsyncSession, team_id: int) -> int:
    result = await db.execute(
        select(func.count(BreakRequest.id)).where(
            BreakRequest.team_id == team_id,
            BreakRequest.status == BreakStatus.ACTIVE.value,
        )
    )
    return int(result.scalar_one())


async def team_has_break_capacity(
    db: AsyncSession, team_id: int | None, policy: BreakPolicy
) -> bool:
    """True when a new break for *team_id* may start without moderation.

    Instant approval needs a team and a positive capacity, and is granted
    while fewer than ``instant_approval_team_capacity`` teammates are on an
    active break.
    """
    capacity = policy.instant_approval_team_capacity or 0
    if team_id is None or capacity <= 0:
        return False
    return await team_on_break_count(db, team_id) < capacity


# ── Pending queue ───────────────────────────────────────────────────
def _resolve_scope(actor: User, admin_team_id: int | None) -> int | None:
    """Team filter to apply for *actor*; ``None`` means every team."""
    if actor.role == Role.SUPER_ADMIN.value:
        return admin_team_id
    if actor.role != Role.ADMIN.value:
        raise AuthorizationError("Only admins can view pending break requests")
    if actor.team_id is None:
        raise AuthorizationError("You are not assigned to a team")
    if admin_team_id is not None and admin_team_id != actor.team_id:
        raise AuthorizationError("You can only view requests for your own team")
    return actor.team_id


async def get_pending_break_requests(
    db: AsyncSession,
    actor: User,
    admin_team_id: int | None = None,
) -> list[PendingBreakRead]:
    team_id = _resolve_scope(actor, admin_team_id)
    query = (
        select(BreakRequest, User.full_name, User.email)
        .join(User, User.id == BreakRequest.user_id)
        .where(BreakRequest.status == BreakStatus.PENDING.value)
        .order_by(BreakRequest.created_at.asc(), BreakRequest.id.asc())
    )
    if team_id is not None:
        query = query.where(BreakRequest.team_id == team_id)

    result = await db.execute(query)
    pending = []
    for brk, full_name, email in result.all():
        item = PendingBreakRead.model_validate(brk)
        item.user_name = full_name or email
        pending.append(item)
    return pending


# ── Overage notifications ───────────────────────────────────────────
async def list_admin_notifications(
    db: AsyncSession,
    actor: User,
    include_read: bool = False,
) -> list[AdminNotificationRead]:
    team_id = _resolve_scope(actor, None)
    query = (
        select(AdminNotification, User.full_name, User.email)
        .join(User, User.id == AdminNotification.user_id)
        .order_by(AdminNotification.created_at.desc(), AdminNotification.id.desc())
    )
    if team_id is not None:
        query = query.where(User.team_id == team_id)
    if not include_read:
        query = query.where(AdminNotification.is_read.is_(False))

    result = await db.execute(query)
    notifications = []
    for note, full_name, email in result.all():
        item = AdminNotificationRead.model_validate(note)
        item.user_name = full_name or email
        notifications.append(item)
    return notifications


async def acknowledge_notification(
    db: AsyncSession,
    notification_id: int,
    actor: User,
) -> AdminNotification:
    note = await db.get(AdminNotification, notification_id)
    if note is None:
        raise NotFoundError("Notification not found")
    subject = await db.get(User, note.user_id)
    ensure_can_moderate(actor, subject.team_id if subject else None)

    result = await db.execute(
        update(AdminNotification)
        .where(AdminNotification.id == notification_id, AdminNotification.is_read.is_(False))
        .values(is_read=True, read_by=actor.id, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise StateConflictError("This notification has already been acknowledged")
    await db.commit()
    await db.refresh(note)
    logger.info("Notification %d acknowledged by %d", notification_id, actor.id)
    return note
