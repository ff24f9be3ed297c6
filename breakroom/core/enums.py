"""Domain enumerations shared by models, schemas and services."""

from __future__ import annotations

import enum


class BreakType(str, enum.Enum):
    COFFEE = "coffee"
    WC = "wc"
    LUNCH = "lunch"


class BreakStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    ACTIVE = "active"
    COMPLETED = "completed"


class BreakPool(str, enum.Enum):
    MICRO = "micro"
    LUNCH = "lunch"


class Role(str, enum.Enum):
    EMPLOYEE = "employee"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class AttendanceState(str, enum.Enum):
    NOT_CHECKED_IN = "not_checked_in"
    CHECKED_IN = "checked_in"
    BREAK_REQUESTED = "break_requested"
    BREAK_APPROVED = "break_approved"
    ON_BREAK = "on_break"
    LUNCH_REQUESTED = "lunch_requested"
    LUNCH_APPROVED = "lunch_approved"
    ON_LUNCH = "on_lunch"
    CHECKED_OUT = "checked_out"


# A worker holds at most one break in these states per attendance interval.
LIVE_BREAK_STATUSES = (
    BreakStatus.PENDING.value,
    BreakStatus.APPROVED.value,
    BreakStatus.ACTIVE.value,
)

# Every legal edge of the break lifecycle.
ALLOWED_TRANSITIONS: dict[BreakStatus, frozenset[BreakStatus]] = {
    BreakStatus.PENDING: frozenset(
        {BreakStatus.APPROVED, BreakStatus.DENIED, BreakStatus.ACTIVE}
    ),
    BreakStatus.APPROVED: frozenset({BreakStatus.ACTIVE}),
    BreakStatus.ACTIVE: frozenset({BreakStatus.COMPLETED}),
    BreakStatus.DENIED: frozenset(),
    BreakStatus.COMPLETED: frozenset(),
}


def pool_for(break_type: BreakType) -> BreakPool:
    """coffee and wc share the micro pool; lunch has its own."""
    return BreakPool.LUNCH if break_type is BreakType.LUNCH else BreakPool.MICRO


def can_transition(current: BreakStatus, target: BreakStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]
