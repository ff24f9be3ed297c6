"""
Worker break endpoints: eligibility, balances, request, start, end, cancel.

Every mutation is a single guarded transition in
:mod:`breakroom.services.lifecycle`; a stale client gets 409, a refused
request gets 422 with the reason and the current balances.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.api.v1.deps import get_current_active_user, get_db
from breakroom.core.config import settings
from breakroom.core.enums import BreakType
from breakroom.core.rate_limit import limiter
from breakroom.models.attendance import BreakRequest
from breakroom.models.user import User
from breakroom.schemas.breaks import (BreakRead, BreakRequestCreate,
                                      BreakStarted, DailyEntitlement,
                                      EligibilityResult, ModerationReason,
                                      RequestBreakResult)
from breakroom.services import lifecycle
from breakroom.services.eligibility import can_request_break
from breakroom.services.entitlements import get_daily_entitlements

router = APIRouter(prefix="/breaks", tags=["breaks"])


@router.get("/eligibility", response_model=EligibilityResult)
async def break_eligibility(
    attendance_id: int = Query(...),
    break_type: BreakType = Query(...),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> EligibilityResult:
    """Whether the caller may request *break_type* right now, and why not."""
    return await can_request_break(db, user.id, attendance_id, break_type)


@router.get("/entitlements", response_model=DailyEntitlement)
async def daily_entitlements(
    on_date: Optional[date] = Query(default=None, alias="date"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> DailyEntitlement:
    return await get_daily_entitlements(db, user.id, on_date)


@router.post("", response_model=RequestBreakResult, status_code=201)
@limiter.limit(settings.BREAK_REQUEST_RATE_LIMIT)
async def request_break(
    request: Request,
    body: BreakRequestCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> RequestBreakResult:
    return await lifecycle.request_break(
        db,
        user.id,
        body.attendance_id,
        body.break_type,
        body.team_id,
        reason=body.reason,
    )


@router.post("/{break_id}/start", response_model=BreakStarted)
async def start_break(
    break_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> BreakStarted:
    """Start a break an admin has approved."""
    return await lifecycle.start_approved_break(db, break_id, user.id)


@router.post("/{break_id}/end", response_model=BreakRead)
async def end_break(
    break_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> BreakRequest:
    return await lifecycle.end_break(db, break_id, user.id)


@router.post("/{break_id}/cancel", response_model=BreakRead)
async def cancel_break(
    break_id: int,
    body: Optional[ModerationReason] = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> BreakRequest:
    """Withdraw the caller's own pending request."""
    reason = body.reason if body else None
    return await lifecycle.cancel_break_request(db, break_id, user.id, reason)
