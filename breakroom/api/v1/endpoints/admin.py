"""
Admin moderation endpoints.

``require_admin`` lets admins and super admins in; whether the actor covers
the break's team is decided per request by the moderation service, so a
cross-team attempt is a 403 rather than a 404.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.api.v1.deps import get_db, require_admin
from breakroom.models.admin_notification import AdminNotification
from breakroom.models.attendance import BreakRequest
from breakroom.models.user import User
from breakroom.schemas.breaks import (BreakRead, ModerationReason,
                                      PendingBreakRead)
from breakroom.schemas.policy import AdminNotificationRead
from breakroom.services import lifecycle, moderation

router = APIRouter(prefix="/admin", tags=["admin"])


# ── Break queue ─────────────────────────────────────────────────────
@router.get("/breaks/pending", response_model=list[PendingBreakRead])
async def pending_breaks(
    team_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> list[PendingBreakRead]:
    return await moderation.get_pending_break_requests(db, admin, team_id)


@router.post("/breaks/{break_id}/approve", response_model=BreakRead)
async def approve_break(
    break_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> BreakRequest:
    return await lifecycle.approve_break(db, break_id, admin.id)


@router.post("/breaks/{break_id}/deny", response_model=BreakRead)
async def deny_break(
    break_id: int,
    body: Optional[ModerationReason] = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> BreakRequest:
    return await lifecycle.deny_break(db, break_id, admin.id, body.reason if body else None)


@router.post("/breaks/{break_id}/force-end", response_model=BreakRead)
async def force_end_break(
    break_id: int,
    body: Optional[ModerationReason] = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> BreakRequest:
    """End someone's active break now; the minutes taken so far are charged."""
    return await lifecycle.force_end_break(db, break_id, admin.id, body.reason if body else None)


# ── Overage notifications ───────────────────────────────────────────
@router.get("/notifications", response_model=list[AdminNotificationRead])
async def notifications(
    include_read: bool = Query(default=False),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> list[AdminNotificationRead]:
    return await moderation.list_admin_notifications(db, admin, include_read)


@router.post("/notifications/{notification_id}/acknowledge", response_model=AdminNotificationRead)
async def acknowledge_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> AdminNotification:
    return await moderation.acknowledge_notification(db, notification_id, admin)
