"""
V1 API router aggregator: wires all endpoint modules together.
"""

from fastapi import APIRouter

from breakroom.api.v1.endpoints import (admin, attendance, breaks, realtime,
                                        reports, settings)

api_router = APIRouter()

# Clock in / out, live state
api_router.include_router(attendance.router)

# Worker break lifecycle
api_router.include_router(breaks.router)

# Moderation queue, force-end, overage notifications
api_router.include_router(admin.router)

# Break policy
api_router.include_router(settings.router)

# Reports, health, identity
api_router.include_router(reports.router)

# Change feed
api_router.include_router(realtime.router)
