"""
Reporting endpoints, health check and the caller's identity.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.api.v1.deps import get_current_active_user, get_db, require_admin
from breakroom.core.exceptions import AuthorizationError, NotFoundError
from breakroom.models.user import User
from breakroom.schemas.reports import (BreakStatistics, DailyBreakdown,
                                       DailyMetrics, HealthResponse,
                                       TeamDailyStats, UserWorkSummary)
from breakroom.schemas.user import UserRead
from breakroom.services.moderation import ensure_can_moderate, is_moderator
from breakroom.services.reports import (get_break_statistics,
                                        get_daily_metrics,
                                        get_team_daily_stats,
                                        get_user_daily_breakdown,
                                        get_user_work_summary)

router = APIRouter(tags=["reports"])
logger = logging.getLogger(__name__)


@router.get("/reports/daily", response_model=DailyMetrics)
async def daily_metrics(
    on_date: Optional[date] = Query(default=None, alias="date"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> DailyMetrics:
    """Worked, break and effective minutes for the caller."""
    return await get_daily_metrics(db, user.id, on_date)


@router.get("/reports/team/{team_id}/daily", response_model=TeamDailyStats)
async def team_daily_stats(
    team_id: int,
    on_date: Optional[date] = Query(default=None, alias="date"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> TeamDailyStats:
    ensure_can_moderate(admin, team_id)
    return await get_team_daily_stats(db, team_id, on_date)


# ── Date-range reports ──────────────────────────────────────────────
async def _report_subject(db: AsyncSession, caller: User, user_id: Optional[int]) -> int:
    """Workers see their own reports; admins also see their team's."""
    if user_id is None or user_id == caller.id:
        return caller.id
    if not is_moderator(caller):
        raise AuthorizationError("You can only view your own reports")
    target = await db.get(User, user_id)
    if target is None:
        raise NotFoundError("User not found")
    ensure_can_moderate(caller, target.team_id)
    return target.id


@router.get("/reports/summary", response_model=UserWorkSummary)
async def work_summary(
    start: date = Query(...),
    end: date = Query(...),
    user_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    caller: User = Depends(get_current_active_user),
) -> UserWorkSummary:
    """Days worked, minutes clocked and break counts over a date range."""
    subject = await _report_subject(db, caller, user_id)
    return await get_user_work_summary(db, subject, start, end)


@router.get("/reports/breakdown", response_model=list[DailyBreakdown])
async def daily_breakdown(
    start: date = Query(...),
    end: date = Query(...),
    user_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    caller: User = Depends(get_current_active_user),
) -> list[DailyBreakdown]:
    subject = await _report_subject(db, caller, user_id)
    return await get_user_daily_breakdown(db, subject, start, end)


@router.get("/reports/breaks", response_model=list[BreakStatistics])
async def break_statistics(
    start: date = Query(...),
    end: date = Query(...),
    user_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    caller: User = Depends(get_current_active_user),
) -> list[BreakStatistics]:
    """Per-type duration statistics of completed breaks."""
    subject = await _report_subject(db, caller, user_id)
    return await get_break_statistics(db, subject, start, end)


# ── Health / identity ───────────────────────────────────────────────
@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Public health check: DB connectivity."""
    result = HealthResponse(db=False)
    try:
        await db.execute(select(1))
        result.db = True
    except Exception as e:
        logger.error("Health check DB failure: %s", e)
    return result


@router.get("/me", response_model=UserRead)
async def read_me(user: User = Depends(get_current_active_user)) -> User:
    return user
