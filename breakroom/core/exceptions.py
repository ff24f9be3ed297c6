"""
Domain errors and global exception handlers.

Service functions raise the ``BreakroomError`` subclasses below; every one
carries the human-readable ``reason`` that the caller renders verbatim.
The handlers at the bottom translate them (and raw database errors) into
JSON responses without leaking stack traces.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


# ── Domain errors ───────────────────────────────────────────────────
class BreakroomError(Exception):
    """Base class for failures that carry a reason for the end user."""

    status_code = 400
    kind = "error"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.reason, "success": False, "error": self.kind}


class BreakEligibilityError(BreakroomError):
    """The worker may not take this break right now (validation failure)."""

    status_code = 422
    kind = "eligibility"

    def __init__(self, reason: str, eligibility: Any | None = None) -> None:
        super().__init__(reason)
        self.eligibility = eligibility

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.eligibility is not None:
            payload["eligibility"] = self.eligibility.model_dump(mode="json")
        return payload


class AuthorizationError(BreakroomError):
    """Actor's role or team scope does not cover the target."""

    status_code = 403
    kind = "authorization"


class NotFoundError(BreakroomError):
    status_code = 404
    kind = "not_found"


class StateConflictError(BreakroomError):
    """A state-guarded write matched zero rows."""

    status_code = 409
    kind = "conflict"


class ReportRangeError(BreakroomError):
    status_code = 400
    kind = "invalid_range"


# ── Handlers ────────────────────────────────────────────────────────
async def _breakroom_error_handler(_request: Request, exc: BreakroomError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
        headers=getattr(exc, "headers", None),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content={"detail": "Database constraint violation", "success": False},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(BreakroomError, _breakroom_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
