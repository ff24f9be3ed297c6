"""
WebSocket change feed.

Connect with ``/ws/changes?token=<access token>``.  Employees receive their
own attendance/break invalidations, admins their team's, super admins
everything.  Send ``ping`` to get ``pong``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.api.v1.deps import get_db, resolve_user
from breakroom.core.enums import Role
from breakroom.models.user import User
from breakroom.services.relay import Subscription, relay

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)


def subscription_scope(user: User) -> dict[str, Any]:
    """Relay filter for *user*'s role."""
    if user.role == Role.SUPER_ADMIN.value:
        return {"everything": True}
    if user.role == Role.ADMIN.value and user.team_id is not None:
        return {"user_id": user.id, "team_id": user.team_id}
    return {"user_id": user.id}


async def _forward(websocket: WebSocket, sub: Subscription) -> None:
    async for event in sub:
        await websocket.send_json(event.as_message())


async def _listen(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive_text()
        if message == "ping":
            await websocket.send_text("pong")


@router.websocket("/ws/changes")
async def change_feed(
    websocket: WebSocket,
    token: str = Query(default=""),
    db: AsyncSession = Depends(get_db),
) -> None:
    user = await resolve_user(db, token)
    # The feed never touches the database again.
    await db.close()
    if user is None or not user.is_active:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    sub = relay.subscribe(**subscription_scope(user))
    logger.info("Change feed opened for user %d", user.id)
    tasks = [
        asyncio.create_task(_forward(websocket, sub)),
        asyncio.create_task(_listen(websocket)),
    ]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Change feed for user %d failed: %s", user.id, exc)
    finally:
        for task in tasks:
            task.cancel()
        relay.unsubscribe(sub)
        logger.info("Change feed closed for user %d", user.id)
