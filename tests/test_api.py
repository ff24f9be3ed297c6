"""End-to-end tests through the HTTP API."""

import pytest
from httpx import AsyncClient

from conftest import auth_headers

API = "/api/v1"


@pytest.mark.asyncio
async def test_health_is_public(async_client: AsyncClient):
    resp = await async_client.get(f"{API}/health")
    assert resp.status_code == 200
    assert resp.json() == {"db": True}


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(async_client: AsyncClient):
    assert (await async_client.get(f"{API}/me")).status_code == 401
    resp = await async_client.get(f"{API}/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_returns_identity(async_client: AsyncClient, factory):
    team = await factory.team()
    user = await factory.user(team=team, name="Ada")
    resp = await async_client.get(f"{API}/me", headers=auth_headers(user))
    assert resp.status_code == 200
    body = resp.json()
    assert body["full_name"] == "Ada"
    assert body["team_id"] == team.id


@pytest.mark.asyncio
async def test_inactive_user_is_refused(async_client: AsyncClient, factory):
    user = await factory.user(is_active=False)
    resp = await async_client.get(f"{API}/attendance/state", headers=auth_headers(user))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_check_in_then_state(async_client: AsyncClient, factory):
    user = await factory.user()
    headers = auth_headers(user)

    resp = await async_client.post(f"{API}/attendance/check-in", json={"notes": "front desk"}, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["notes"] == "front desk"

    again = await async_client.post(f"{API}/attendance/check-in", headers=headers)
    assert again.status_code == 409
    assert again.json() == {"detail": "Already clocked in", "success": False, "error": "conflict"}

    state = await async_client.get(f"{API}/attendance/state", headers=headers)
    assert state.status_code == 200
    assert state.json()["state"] == "checked_in"
    assert state.json()["entitlements"]["micro_remaining"] == 30


@pytest.mark.asyncio
async def test_early_break_request_returns_reason_and_balances(async_client: AsyncClient, factory):
    user = await factory.user()
    shift = await factory.shift(user, minutes_ago=10)

    resp = await async_client.post(
        f"{API}/breaks",
        json={"attendance_id": shift.id, "break_type": "lunch"},
        headers=auth_headers(user),
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "eligibility"
    assert "60 minutes" in body["detail"]
    assert body["eligibility"]["lunch_remaining"] == 60


@pytest.mark.asyncio
async def test_unknown_break_type_fails_validation(async_client: AsyncClient, factory):
    user = await factory.user()
    shift = await factory.shift(user)
    resp = await async_client.post(
        f"{API}/breaks",
        json={"attendance_id": shift.id, "break_type": "nap"},
        headers=auth_headers(user),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_break_round_trip_through_moderation(async_client: AsyncClient, factory):
    team = await factory.team()
    admin = await factory.user("admin", team=team)
    user = await factory.user(team=team, name="Wanda Worker")
    shift = await factory.shift(user)
    worker = auth_headers(user)
    moderator = auth_headers(admin)

    eligibility = await async_client.get(
        f"{API}/breaks/eligibility",
        params={"attendance_id": shift.id, "break_type": "coffee"},
        headers=worker,
    )
    assert eligibility.json()["can_request"] is True

    created = await async_client.post(
        f"{API}/breaks",
        json={"attendance_id": shift.id, "break_type": "coffee", "reason": "refill"},
        headers=worker,
    )
    assert created.status_code == 201
    break_id = created.json()["break_id"]
    assert created.json()["status"] == "pending"

    pending = await async_client.get(f"{API}/admin/breaks/pending", headers=moderator)
    assert [(p["id"], p["user_name"]) for p in pending.json()] == [(break_id, "Wanda Worker")]

    forbidden = await async_client.post(f"{API}/admin/breaks/{break_id}/approve", headers=worker)
    assert forbidden.status_code == 403

    approved = await async_client.post(f"{API}/admin/breaks/{break_id}/approve", headers=moderator)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    twice = await async_client.post(f"{API}/admin/breaks/{break_id}/approve", headers=moderator)
    assert twice.status_code == 409

    started = await async_client.post(f"{API}/breaks/{break_id}/start", headers=worker)
    assert started.status_code == 200
    assert (await async_client.get(f"{API}/attendance/state", headers=worker)).json()["state"] == "on_break"

    ended = await async_client.post(f"{API}/breaks/{break_id}/end", headers=worker)
    assert ended.status_code == 200
    assert ended.json()["status"] == "completed"

    checkout = await async_client.post(f"{API}/attendance/{shift.id}/check-out", headers=worker)
    assert checkout.status_code == 200
    assert checkout.json()["clock_out_at"] is not None


@pytest.mark.asyncio
async def test_cross_team_moderation_is_forbidden(async_client: AsyncClient, factory):
    red = await factory.team("Red")
    blue = await factory.team("Blue")
    red_admin = await factory.user("admin", team=red)
    blue_worker = await factory.user(team=blue)
    shift = await factory.shift(blue_worker)
    brk = await factory.brk(shift, status="pending", team_id=blue.id)

    resp = await async_client.post(
        f"{API}/admin/breaks/{brk.id}/deny",
        json={"reason": "no"},
        headers=auth_headers(red_admin),
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "authorization"

    missing = await async_client.post(f"{API}/admin/breaks/999/deny", headers=auth_headers(red_admin))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_force_end_on_completed_break_is_conflict(async_client: AsyncClient, factory):
    team = await factory.team()
    admin = await factory.user("admin", team=team)
    user = await factory.user(team=team)
    shift = await factory.shift(user)
    active = await factory.brk(shift, status="active", started_minutes_ago=3, team_id=team.id)

    first = await async_client.post(f"{API}/admin/breaks/{active.id}/force-end", headers=auth_headers(admin))
    assert first.status_code == 200
    assert first.json()["force_ended_by"] == admin.id

    second = await async_client.post(f"{API}/admin/breaks/{active.id}/force-end", headers=auth_headers(admin))
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_break_policy_read_and_update(async_client: AsyncClient, factory):
    worker = await factory.user()
    admin = await factory.user("admin")
    owner = await factory.user("super_admin")

    read = await async_client.get(f"{API}/settings/break-policy", headers=auth_headers(worker))
    assert read.status_code == 200
    assert read.json()["micro_break_daily_limit_minutes"] == 30

    denied = await async_client.put(
        f"{API}/settings/break-policy",
        json={"micro_break_daily_limit_minutes": 45},
        headers=auth_headers(admin),
    )
    assert denied.status_code == 403

    invalid = await async_client.put(
        f"{API}/settings/break-policy",
        json={"lunch_break_daily_limit_minutes": -5},
        headers=auth_headers(owner),
    )
    assert invalid.status_code == 422

    updated = await async_client.put(
        f"{API}/settings/break-policy",
        json={"micro_break_daily_limit_minutes": 45},
        headers=auth_headers(owner),
    )
    assert updated.status_code == 200
    assert updated.json()["micro_break_daily_limit_minutes"] == 45
    assert updated.json()["lunch_break_daily_limit_minutes"] == 60

    balances = await async_client.get(f"{API}/breaks/entitlements", headers=auth_headers(worker))
    assert balances.json()["micro_limit"] == 45


@pytest.mark.asyncio
async def test_team_report_is_scoped(async_client: AsyncClient, factory):
    red = await factory.team("Red")
    blue = await factory.team("Blue")
    red_admin = await factory.user("admin", team=red)
    worker = await factory.user(team=red)
    await factory.shift(worker, minutes_ago=30)

    own = await async_client.get(f"{API}/reports/team/{red.id}/daily", headers=auth_headers(red_admin))
    assert own.status_code == 200
    assert own.json()["currently_working"] == 1

    other = await async_client.get(f"{API}/reports/team/{blue.id}/daily", headers=auth_headers(red_admin))
    assert other.status_code == 403

    mine = await async_client.get(f"{API}/reports/daily", headers=auth_headers(worker))
    assert mine.status_code == 200
    assert mine.json()["worked_minutes"] == 30


@pytest.mark.asyncio
async def test_range_reports_are_scoped(async_client: AsyncClient, factory, frozen_clock):
    red = await factory.team("Red")
    blue = await factory.team("Blue")
    red_admin = await factory.user("admin", team=red)
    blue_admin = await factory.user("admin", team=blue)
    worker = await factory.user(team=red)
    colleague = await factory.user(team=red)
    shift = await factory.shift(worker, minutes_ago=120, closed_minutes_ago=30)
    await factory.completed_break(shift, 10, ended_minutes_ago=60)
    day = frozen_clock.date().isoformat()
    span = {"start": day, "end": day}

    mine = await async_client.get(f"{API}/reports/summary", params=span, headers=auth_headers(worker))
    assert mine.status_code == 200
    assert mine.json()["total_minutes_clocked"] == 90
    assert mine.json()["coffee_break_count"] == 1

    rows = await async_client.get(f"{API}/reports/breakdown", params=span, headers=auth_headers(worker))
    assert [row["effective_minutes"] for row in rows.json()] == [80]

    stats = await async_client.get(
        f"{API}/reports/breaks", params={**span, "user_id": worker.id}, headers=auth_headers(red_admin)
    )
    assert stats.status_code == 200
    assert stats.json()[0]["break_type"] == "coffee"

    peer = await async_client.get(
        f"{API}/reports/summary", params={**span, "user_id": worker.id}, headers=auth_headers(colleague)
    )
    assert peer.status_code == 403
    foreign = await async_client.get(
        f"{API}/reports/summary", params={**span, "user_id": worker.id}, headers=auth_headers(blue_admin)
    )
    assert foreign.status_code == 403

    backwards = await async_client.get(
        f"{API}/reports/summary", params={"start": day, "end": "2000-01-01"}, headers=auth_headers(worker)
    )
    assert backwards.status_code == 400
