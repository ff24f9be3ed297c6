"""Tests for the break eligibility evaluator."""

import pytest

from breakroom.core.enums import BreakType
from breakroom.services.eligibility import (BREAK_ALREADY_OPEN, NOT_CLOCKED_IN,
                                            can_request_break)


@pytest.mark.asyncio
async def test_eligible_coffee_after_ninety_minutes(db_session, factory):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=90)

    result = await can_request_break(db_session, user.id, shift.id, BreakType.COFFEE)
    assert result.can_request is True
    assert result.reason == ""
    assert result.micro_remaining == 30
    assert result.work_duration_minutes == 90


@pytest.mark.asyncio
async def test_exhausted_micro_pool_refuses_wc(db_session, factory):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=180)
    await factory.completed_break(shift, 20, type="coffee", ended_minutes_ago=100)
    await factory.completed_break(shift, 10, type="wc", ended_minutes_ago=30)

    result = await can_request_break(db_session, user.id, shift.id, BreakType.WC)
    assert result.can_request is False
    assert "micro/WC" in result.reason
    assert "30 min used" in result.reason
    assert result.micro_remaining == 0


@pytest.mark.asyncio
async def test_exhausted_micro_pool_still_allows_lunch(db_session, factory):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=180)
    await factory.completed_break(shift, 30, type="coffee")

    result = await can_request_break(db_session, user.id, shift.id, BreakType.LUNCH)
    assert result.can_request is True
    assert result.lunch_remaining == 60


@pytest.mark.asyncio
async def test_first_break_needs_sixty_minutes_of_work(db_session, factory):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=10)

    result = await can_request_break(db_session, user.id, shift.id, BreakType.LUNCH)
    assert result.can_request is False
    assert "60 minutes" in result.reason
    assert "50 minutes" in result.reason
    assert result.work_duration_minutes == 10


@pytest.mark.asyncio
async def test_floor_does_not_apply_after_first_break(db_session, factory):
    user = await factory.user()
    await factory.policy(min_minutes_before_break=120)
    shift = await factory.shift(user, minutes_ago=100)
    await factory.completed_break(shift, 5)

    result = await can_request_break(db_session, user.id, shift.id, BreakType.COFFEE)
    assert result.can_request is True


@pytest.mark.asyncio
async def test_denied_request_does_not_count_as_first_break(db_session, factory):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=20)
    await factory.brk(shift, status="denied")

    result = await can_request_break(db_session, user.id, shift.id, BreakType.COFFEE)
    assert result.can_request is False
    assert "first break" in result.reason


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["pending", "approved", "active"])
async def test_live_break_blocks_another_request(db_session, factory, status):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=120)
    started = 5 if status == "active" else None
    await factory.brk(shift, status=status, started_minutes_ago=started)

    result = await can_request_break(db_session, user.id, shift.id, BreakType.LUNCH)
    assert result.can_request is False
    assert result.reason == BREAK_ALREADY_OPEN


@pytest.mark.asyncio
async def test_closed_interval_is_not_clocked_in(db_session, factory):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=300, closed_minutes_ago=10)

    result = await can_request_break(db_session, user.id, shift.id, BreakType.COFFEE)
    assert result.can_request is False
    assert result.reason == NOT_CLOCKED_IN


@pytest.mark.asyncio
async def test_someone_elses_interval_is_not_clocked_in(db_session, factory):
    owner = await factory.user()
    intruder = await factory.user()
    shift = await factory.shift(owner)

    result = await can_request_break(db_session, intruder.id, shift.id, BreakType.COFFEE)
    assert result.reason == NOT_CLOCKED_IN


@pytest.mark.asyncio
async def test_missing_interval_is_not_clocked_in(db_session, factory):
    user = await factory.user()
    result = await can_request_break(db_session, user.id, 9999, BreakType.COFFEE)
    assert result.can_request is False
    assert result.reason == NOT_CLOCKED_IN
    assert result.micro_remaining == 30
