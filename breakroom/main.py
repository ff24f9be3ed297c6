"""
Breakroom: Application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `services/` package; `api/` only adapts it to HTTP.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import select

from breakroom.api.v1.api import api_router
from breakroom.core.config import settings
from breakroom.core.enums import Role
from breakroom.core.exceptions import register_exception_handlers
from breakroom.core.rate_limit import limiter
from breakroom.db.base import Base
from breakroom.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from breakroom.models.admin_notification import AdminNotification  # noqa: F401
from breakroom.models.attendance import AttendanceInterval, BreakRequest  # noqa: F401
from breakroom.models.break_policy import BreakPolicy  # noqa: F401
from breakroom.models.user import Team, User  # noqa: F401
from breakroom.services.entitlements import seed_break_policy

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    async with async_session_factory() as session:
        # Seed default super admin on first run
        result = await session.execute(
            select(User).where(User.email == settings.FIRST_ADMIN_EMAIL)
        )
        if result.scalar_one_or_none() is None:
            session.add(
                User(
                    email=settings.FIRST_ADMIN_EMAIL,
                    full_name="System Administrator",
                    role=Role.SUPER_ADMIN.value,
                )
            )
            await session.commit()
            logger.info("Default super admin created: %s", settings.FIRST_ADMIN_EMAIL)

        await seed_break_policy(session)

    logger.info("Breakroom v%s started", settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Attendance and break tracking",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting (check-in, break requests)
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
