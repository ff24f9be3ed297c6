"""Tests for the daily entitlement ledger and the break policy."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from breakroom.models.admin_notification import AdminNotification
from breakroom.models.break_policy import BreakPolicy
from breakroom.services.entitlements import (flag_overage, get_break_policy,
                                             get_daily_entitlements,
                                             seed_break_policy,
                                             update_break_policy)
from conftest import ago


@pytest.mark.asyncio
async def test_empty_day_has_full_balances(db_session, factory):
    user = await factory.user()
    ledger = await get_daily_entitlements(db_session, user.id)
    assert (ledger.micro_used, ledger.lunch_used) == (0, 0)
    assert (ledger.micro_limit, ledger.lunch_limit) == (30, 60)
    assert (ledger.micro_remaining, ledger.lunch_remaining) == (30, 60)


@pytest.mark.asyncio
async def test_coffee_and_wc_share_the_micro_pool(db_session, factory):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=240)
    await factory.completed_break(shift, 10, type="coffee", ended_minutes_ago=150)
    await factory.completed_break(shift, 8, type="wc", ended_minutes_ago=100)
    await factory.completed_break(shift, 20, type="lunch", ended_minutes_ago=40)

    ledger = await get_daily_entitlements(db_session, user.id)
    assert ledger.micro_used == 18
    assert ledger.lunch_used == 20
    assert ledger.micro_remaining == 12
    assert ledger.lunch_remaining == 40


@pytest.mark.asyncio
async def test_denied_and_unstarted_requests_do_not_count(db_session, factory):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=120)
    await factory.brk(shift, status="denied", started_minutes_ago=50, ended_minutes_ago=30)
    await factory.brk(shift, status="pending")

    ledger = await get_daily_entitlements(db_session, user.id)
    assert ledger.micro_used == 0


@pytest.mark.asyncio
async def test_active_break_is_charged_up_to_now(db_session, factory):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=120)
    await factory.brk(shift, type="lunch", status="active", started_minutes_ago=12.5)

    ledger = await get_daily_entitlements(db_session, user.id)
    assert ledger.lunch_used == 12


@pytest.mark.asyncio
async def test_break_across_midnight_counts_on_the_day_it_started(db_session, factory, frozen_clock):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=800)
    # 23:40 to 00:20 UTC
    await factory.completed_break(shift, 40, type="coffee", ended_minutes_ago=700)
    today = frozen_clock.date()

    started_day = await get_daily_entitlements(db_session, user.id, today - timedelta(days=1))
    next_day = await get_daily_entitlements(db_session, user.id, today)
    assert started_day.micro_used == 40
    assert next_day.micro_used == 0


@pytest.mark.asyncio
async def test_other_users_and_other_days_are_ignored(db_session, factory):
    user = await factory.user()
    other = await factory.user()
    old_shift = await factory.shift(user, minutes_ago=3 * 24 * 60, closed_minutes_ago=3 * 24 * 60 - 480)
    await factory.completed_break(old_shift, 25, ended_minutes_ago=3 * 24 * 60 - 100)
    other_shift = await factory.shift(other)
    await factory.completed_break(other_shift, 15)

    ledger = await get_daily_entitlements(db_session, user.id)
    assert ledger.micro_used == 0


@pytest.mark.asyncio
async def test_remaining_never_goes_negative(db_session, factory):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=180)
    await factory.completed_break(shift, 45)

    ledger = await get_daily_entitlements(db_session, user.id)
    assert ledger.micro_used == 45
    assert ledger.micro_remaining == 0


@pytest.mark.asyncio
async def test_policy_row_drives_limits(db_session, factory):
    await factory.policy(micro_break_daily_limit_minutes=45, lunch_break_daily_limit_minutes=30)
    user = await factory.user()
    ledger = await get_daily_entitlements(db_session, user.id)
    assert (ledger.micro_limit, ledger.lunch_limit) == (45, 30)


@pytest.mark.asyncio
async def test_reading_policy_never_writes(db_session):
    policy = await get_break_policy(db_session)
    assert policy.micro_break_daily_limit_minutes == 30
    count = await db_session.execute(select(func.count(BreakPolicy.id)))
    assert count.scalar_one() == 0


@pytest.mark.asyncio
async def test_seed_then_update_policy(db_session):
    first = await seed_break_policy(db_session)
    again = await seed_break_policy(db_session)
    assert first.id == again.id

    updated = await update_break_policy(db_session, {"min_minutes_before_break": 30})
    assert updated.min_minutes_before_break == 30
    assert (await get_break_policy(db_session)).min_minutes_before_break == 30


@pytest.mark.asyncio
async def test_flag_overage_records_notification_only_when_over(db_session, factory):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=200)
    within = await factory.completed_break(shift, 20, ended_minutes_ago=120)
    assert await flag_overage(db_session, user.id, within.id, within.type, ago(140)) is None

    over = await factory.completed_break(shift, 15, type="wc")
    note = await flag_overage(db_session, user.id, over.id, over.type, ago(20))
    await db_session.commit()

    assert note is not None
    assert note.category == "micro"
    assert (note.value_minutes, note.threshold_minutes, note.overage_minutes) == (35, 30, 5)
    assert "exceeded by 5 min" in note.message
    rows = await db_session.execute(select(AdminNotification))
    assert len(rows.scalars().all()) == 1
