"""
Backward-compatibility shim for break types written by older clients.

Earlier releases stored ``micro``, ``bathroom``, ``scheduled`` and
``emergency`` in ``breaks.type``.  Those values are mapped onto the current
three-way enum on read, and every write path that may touch such a row goes
through :func:`retry_with_normalized_type`.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.core.enums import BreakType

logger = logging.getLogger(__name__)

T = TypeVar("T")

BREAK_TYPE_CONSTRAINT = "ck_breaks_type"

_LEGACY_TYPES = {
    "bathroom": BreakType.WC,
    "micro": BreakType.COFFEE,
    "scheduled": BreakType.COFFEE,
    "emergency": BreakType.COFFEE,
}


def normalize_break_type(value: Any) -> BreakType:
    """Map any stored or submitted break type onto the supported enum.

    Unknown values fall back to coffee, the broadest micro-pool type.
    """
    if isinstance(value, BreakType):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        try:
            return BreakType(key)
        except ValueError:
            return _LEGACY_TYPES.get(key, BreakType.COFFEE)
    return BreakType.COFFEE


def is_legacy_break_type_error(exc: BaseException) -> bool:
    """True when *exc* is the type check constraint rejecting a stale value."""
    if not isinstance(exc, IntegrityError):
        return False
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return BREAK_TYPE_CONSTRAINT in message or "break_type_enum" in message


async def retry_with_normalized_type(
    session: AsyncSession,
    write: Callable[[dict[str, Any]], Awaitable[T]],
    stored_type: Any,
) -> T:
    """Run *write*; on a legacy-type rejection retry exactly once.

    *write* receives extra column values to merge into its UPDATE.  The first
    attempt passes none; the retry passes the normalised ``type``.  Any other
    failure, or a failing retry, surfaces the original error.
    """
    try:
        return await write({})
    except IntegrityError as exc:
        if not is_legacy_break_type_error(exc):
            raise
        await session.rollback()
        normalized = normalize_break_type(stored_type)
        logger.warning(
            "Legacy break type %r rejected on write, retrying as %s",
            stored_type,
            normalized.value,
        )
        try:
            return await write({"type": normalized.value})
        except IntegrityError:
            await session.rollback()
            raise exc
