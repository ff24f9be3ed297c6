"""
Real-time notification relay.

Services publish a :class:`ChangeEvent` after every committed write to the
``attendance`` or ``breaks`` tables.  Dashboards subscribe with a user or
team scope and receive invalidation messages only: the payload says *what*
changed, never the new state, so consumers always re-fetch.

Delivery is best-effort fan-out through bounded per-subscriber queues.  When
a slow consumer's queue fills up, pending events are dropped and replaced by a
single ``resync`` message telling it to reload everything.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from breakroom.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    table: str  # attendance | breaks
    action: str  # insert | update | delete | resync
    record_id: int | None = None
    user_id: int | None = None
    team_id: int | None = None

    def as_message(self) -> dict[str, Any]:
        return {"type": "invalidate", **asdict(self)}


RESYNC = ChangeEvent(table="*", action="resync")


@dataclass(eq=False)
class Subscription:
    """One consumer's view of the relay, iterated with ``async for``."""

    user_id: int | None = None
    team_id: int | None = None
    everything: bool = False
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(settings.RELAY_QUEUE_SIZE))

    def matches(self, event: ChangeEvent) -> bool:
        if self.everything or event.action == "resync":
            return True
        if self.user_id is not None and event.user_id == self.user_id:
            return True
        return self.team_id is not None and event.team_id == self.team_id

    def offer(self, event: ChangeEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            # Collapse the backlog; the consumer reloads from scratch anyway.
            while not self.queue.empty():
                self.queue.get_nowait()
            self.queue.put_nowait(RESYNC)
            logger.warning("Relay queue overflow for subscription %s", id(self))

    async def get(self) -> ChangeEvent:
        return await self.queue.get()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ChangeEvent:
        return await self.get()


class ChangeRelay:
    def __init__(self) -> None:
        self._subscriptions: set[Subscription] = set()

    def subscribe(
        self,
        user_id: int | None = None,
        team_id: int | None = None,
        everything: bool = False,
    ) -> Subscription:
        sub = Subscription(user_id=user_id, team_id=team_id, everything=everything)
        self._subscriptions.add(sub)
        logger.debug("Relay subscription added (user=%s team=%s all=%s)", user_id, team_id, everything)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subscriptions.discard(sub)

    def publish(self, event: ChangeEvent) -> int:
        """Fan *event* out to every matching subscriber; returns the count."""
        delivered = 0
        for sub in list(self._subscriptions):
            if sub.matches(event):
                sub.offer(event)
                delivered += 1
        return delivered

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)


relay = ChangeRelay()


def publish_break_change(brk: Any, action: str = "update") -> None:
    relay.publish(
        ChangeEvent(
            table="breaks",
            action=action,
            record_id=brk.id,
            user_id=brk.user_id,
            team_id=brk.team_id,
        )
    )


def publish_attendance_change(interval: Any, team_id: int | None, action: str = "update") -> None:
    relay.publish(
        ChangeEvent(
            table="attendance",
            action=action,
            record_id=interval.id,
            user_id=interval.user_id,
            team_id=team_id,
        )
    )
