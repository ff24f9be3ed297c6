"""
Attendance endpoints: clock in, clock out and the worker's live state.

Workers act on their own shift only.  Check-in is rate limited per client IP
because kiosks and phones both hit it.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.api.v1.deps import get_current_active_user, get_db
from breakroom.core.config import settings
from breakroom.core.rate_limit import limiter
from breakroom.models.attendance import AttendanceInterval
from breakroom.models.user import User
from breakroom.schemas.attendance import (AttendanceRead, AttendanceSnapshot,
                                          CheckInRequest)
from breakroom.services import attendance as attendance_service

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post("/check-in", response_model=AttendanceRead, status_code=201)
@limiter.limit(settings.CHECK_IN_RATE_LIMIT)
async def check_in(
    request: Request,
    body: Optional[CheckInRequest] = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> AttendanceInterval:
    """Open a new attendance interval; 409 if one is already open."""
    notes = body.notes if body else None
    return await attendance_service.check_in(db, user.id, notes=notes)


@router.post("/{attendance_id}/check-out", response_model=AttendanceRead)
async def check_out(
    attendance_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> AttendanceInterval:
    """Close the interval, ending an active break and denying a pending one."""
    return await attendance_service.check_out(db, attendance_id, user.id)


@router.get("/state", response_model=AttendanceSnapshot)
async def attendance_state(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> AttendanceSnapshot:
    return await attendance_service.get_attendance_snapshot(db, user.id)
