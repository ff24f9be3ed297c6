"""
Productivity reports.

Each report fetches the period's rows in one query per table and aggregates
in Python.  A shift or break counts on the UTC day it started; open ones are
charged up to now.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.core.enums import BreakPool, BreakStatus, BreakType, pool_for
from breakroom.core.exceptions import ReportRangeError
from breakroom.db.legacy import normalize_break_type
from breakroom.models.attendance import AttendanceInterval, BreakRequest
from breakroom.models.user import User
from breakroom.schemas.reports import (BreakStatistics, DailyBreakdown,
                                       DailyMetrics, TeamDailyStats,
                                       UserWorkSummary)
from breakroom.services.timekeeping import (day_bounds, ensure_utc,
                                            minutes_between, utcnow)

logger = logging.getLogger(__name__)


async def _worked_minutes_by_user(
    db: AsyncSession,
    on_date: date,
    now: datetime,
    user_ids: list[int] | None = None,
) -> tuple[dict[int, int], set[int]]:
    """Worked minutes per user for *on_date*, plus who is still clocked in."""
    day_start, day_end = day_bounds(on_date)
    query = select(
        AttendanceInterval.user_id,
        AttendanceInterval.clock_in_at,
        AttendanceInterval.clock_out_at,
    ).where(
        AttendanceInterval.clock_in_at >= day_start,
        AttendanceInterval.clock_in_at < day_end,
    )
    if user_ids is not None:
        query = query.where(AttendanceInterval.user_id.in_(user_ids))

    worked: dict[int, int] = defaultdict(int)
    still_in: set[int] = set()
    for user_id, clock_in_at, clock_out_at in (await db.execute(query)).all():
        worked[user_id] += minutes_between(clock_in_at, clock_out_at, now=now)
        if clock_out_at is None:
            still_in.add(user_id)
    return dict(worked), still_in


async def get_daily_metrics(
    db: AsyncSession,
    user_id: int,
    on_date: date | None = None,
) -> DailyMetrics:
    now = utcnow()
    on_date = on_date or now.date()
    worked, _ = await _worked_minutes_by_user(db, on_date, now, [user_id])

    day_start, day_end = day_bounds(on_date)
    result = await db.execute(
        select(BreakRequest.type, BreakRequest.started_at, BreakRequest.ended_at).where(
            BreakRequest.user_id == user_id,
            BreakRequest.status != BreakStatus.DENIED.value,
            BreakRequest.started_at >= day_start,
            BreakRequest.started_at < day_end,
        )
    )
    breaks = result.all()
    spent = {BreakPool.MICRO: 0, BreakPool.LUNCH: 0}
    for raw_type, started_at, ended_at in breaks:
        spent[pool_for(normalize_break_type(raw_type))] += minutes_between(started_at, ended_at, now=now)

    worked_minutes = worked.get(user_id, 0)
    return DailyMetrics(
        user_id=user_id,
        date=on_date,
        worked_minutes=worked_minutes,
        micro_break_minutes=spent[BreakPool.MICRO],
        lunch_minutes=spent[BreakPool.LUNCH],
        effective_minutes=max(0, worked_minutes - spent[BreakPool.MICRO] - spent[BreakPool.LUNCH]),
        break_count=len(breaks),
    )


async def get_team_daily_stats(
    db: AsyncSession,
    team_id: int,
    on_date: date | None = None,
) -> TeamDailyStats:
    """Presence and break counts for one team on *on_date*."""
    now = utcnow()
    on_date = on_date or now.date()

    member_ids = list(
        (await db.execute(select(User.id).where(User.team_id == team_id, User.is_active.is_(True))))
        .scalars()
        .all()
    )
    worked, still_in = await _worked_minutes_by_user(db, on_date, now, member_ids)

    on_break: dict[BreakType, set[int]] = defaultdict(set)
    if member_ids:
        result = await db.execute(
            select(BreakRequest.user_id, BreakRequest.type).where(
                BreakRequest.user_id.in_(member_ids),
                BreakRequest.status == BreakStatus.ACTIVE.value,
            )
        )
        for user_id, raw_type in result.all():
            on_break[normalize_break_type(raw_type)].add(user_id)

    resting = set().union(*on_break.values()) if on_break else set()
    total_minutes = sum(worked.values())
    checked_in = len(worked)

    logger.debug("Team %d stats for %s: %d checked in", team_id, on_date, checked_in)
    return TeamDailyStats(
        team_id=team_id,
        date=on_date,
        total_members_checked_in=checked_in,
        currently_working=len(still_in - resting),
        on_coffee_break=len(on_break[BreakType.COFFEE]),
        on_wc_break=len(on_break[BreakType.WC]),
        on_lunch_break=len(on_break[BreakType.LUNCH]),
        total_minutes_worked=total_minutes,
        avg_minutes_per_person=round(total_minutes / max(1, checked_in), 1),
    )


# ── Date-range reports ──────────────────────────────────────────────
MAX_REPORT_DAYS = 366


@dataclass
class _Day:
    first_clock_in: datetime | None = None
    last_clock_out: datetime | None = None
    still_clocked_in: bool = False
    worked_minutes: int = 0
    spent: dict[BreakPool, int] = field(
        default_factory=lambda: {BreakPool.MICRO: 0, BreakPool.LUNCH: 0}
    )
    counts: Counter = field(default_factory=Counter)


def _range_bounds(start_date: date, end_date: date) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` covering both dates inclusively."""
    if end_date < start_date:
        raise ReportRangeError("The end date must not be before the start date")
    if (end_date - start_date).days >= MAX_REPORT_DAYS:
        raise ReportRangeError(f"Reports cover at most {MAX_REPORT_DAYS} days")
    return day_bounds(start_date)[0], day_bounds(end_date)[1]


async def get_user_daily_breakdown(
    db: AsyncSession,
    user_id: int,
    start_date: date,
    end_date: date,
) -> list[DailyBreakdown]:
    """Day-by-day time sheet for *user_id*, oldest first.

    Only days with a clock-in or a started break appear.
    """
    now = utcnow()
    range_start, range_end = _range_bounds(start_date, end_date)
    days: dict[date, _Day] = defaultdict(_Day)

    intervals = await db.execute(
        select(AttendanceInterval.clock_in_at, AttendanceInterval.clock_out_at)
        .where(
            AttendanceInterval.user_id == user_id,
            AttendanceInterval.clock_in_at >= range_start,
            AttendanceInterval.clock_in_at < range_end,
        )
        .order_by(AttendanceInterval.clock_in_at)
    )
    for clock_in_at, clock_out_at in intervals.all():
        clock_in_at = ensure_utc(clock_in_at)
        day = days[clock_in_at.date()]
        if day.first_clock_in is None:
            day.first_clock_in = clock_in_at
        if clock_out_at is None:
            day.still_clocked_in = True
        else:
            clock_out_at = ensure_utc(clock_out_at)
            if day.last_clock_out is None or clock_out_at > day.last_clock_out:
                day.last_clock_out = clock_out_at
        day.worked_minutes += minutes_between(clock_in_at, clock_out_at, now=now)

    breaks = await db.execute(
        select(BreakRequest.type, BreakRequest.started_at, BreakRequest.ended_at).where(
            BreakRequest.user_id == user_id,
            BreakRequest.status != BreakStatus.DENIED.value,
            BreakRequest.started_at >= range_start,
            BreakRequest.started_at < range_end,
        )
    )
    for raw_type, started_at, ended_at in breaks.all():
        break_type = normalize_break_type(raw_type)
        day = days[ensure_utc(started_at).date()]
        day.spent[pool_for(break_type)] += minutes_between(started_at, ended_at, now=now)
        day.counts[break_type] += 1

    rows = []
    for work_date in sorted(days):
        day = days[work_date]
        micro, lunch = day.spent[BreakPool.MICRO], day.spent[BreakPool.LUNCH]
        rows.append(
            DailyBreakdown(
                work_date=work_date,
                first_clock_in=day.first_clock_in,
                last_clock_out=None if day.still_clocked_in else day.last_clock_out,
                worked_minutes=day.worked_minutes,
                micro_break_minutes=micro,
                lunch_minutes=lunch,
                effective_minutes=max(0, day.worked_minutes - micro - lunch),
                coffee_breaks=day.counts[BreakType.COFFEE],
                wc_breaks=day.counts[BreakType.WC],
                lunch_breaks=day.counts[BreakType.LUNCH],
            )
        )
    return rows


async def get_user_work_summary(
    db: AsyncSession,
    user_id: int,
    start_date: date,
    end_date: date,
) -> UserWorkSummary:
    """Totals of :func:`get_user_daily_breakdown` over the range."""
    rows = await get_user_daily_breakdown(db, user_id, start_date, end_date)
    days_worked = sum(1 for row in rows if row.first_clock_in is not None)
    clocked = sum(row.worked_minutes for row in rows)
    return UserWorkSummary(
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
        total_days_worked=days_worked,
        total_minutes_clocked=clocked,
        total_break_minutes=sum(row.micro_break_minutes + row.lunch_minutes for row in rows),
        effective_minutes=sum(row.effective_minutes for row in rows),
        coffee_break_count=sum(row.coffee_breaks for row in rows),
        wc_break_count=sum(row.wc_breaks for row in rows),
        lunch_break_count=sum(row.lunch_breaks for row in rows),
        avg_daily_minutes=round(clocked / days_worked, 1) if days_worked else 0.0,
    )


async def get_break_statistics(
    db: AsyncSession,
    user_id: int,
    start_date: date,
    end_date: date,
) -> list[BreakStatistics]:
    """Duration statistics per break type over completed breaks."""
    range_start, range_end = _range_bounds(start_date, end_date)
    result = await db.execute(
        select(BreakRequest.type, BreakRequest.started_at, BreakRequest.ended_at).where(
            BreakRequest.user_id == user_id,
            BreakRequest.status == BreakStatus.COMPLETED.value,
            BreakRequest.started_at >= range_start,
            BreakRequest.started_at < range_end,
        )
    )
    durations: dict[BreakType, list[int]] = defaultdict(list)
    for raw_type, started_at, ended_at in result.all():
        durations[normalize_break_type(raw_type)].append(minutes_between(started_at, ended_at))

    return [
        BreakStatistics(
            break_type=break_type,
            total_breaks=len(durations[break_type]),
            total_minutes=sum(durations[break_type]),
            avg_duration_minutes=round(sum(durations[break_type]) / len(durations[break_type]), 1),
            min_duration_minutes=min(durations[break_type]),
            max_duration_minutes=max(durations[break_type]),
        )
        for break_type in BreakType
        if durations[break_type]
    ]
