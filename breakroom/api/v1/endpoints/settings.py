"""
Break policy endpoints: admin-configurable caps and thresholds.

Singleton pattern: one row in ``break_policy``.  GET returns it (or the
settings defaults if it was never saved), PUT updates it.  Everyone may read
the limits; only a super admin changes them, since they apply company-wide.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from breakroom.api.v1.deps import (get_current_active_user, get_db,
                                   require_super_admin)
from breakroom.models.break_policy import BreakPolicy
from breakroom.models.user import User
from breakroom.schemas.policy import BreakPolicyRead, BreakPolicyUpdate
from breakroom.services.entitlements import (get_break_policy,
                                             update_break_policy)

router = APIRouter(prefix="/settings", tags=["settings"])
logger = logging.getLogger(__name__)


@router.get("/break-policy", response_model=BreakPolicyRead)
async def read_break_policy(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> BreakPolicy:
    """Get the current break limits."""
    return await get_break_policy(db)


@router.put("/break-policy", response_model=BreakPolicyRead)
async def put_break_policy(
    body: BreakPolicyUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
) -> BreakPolicy:
    """Update daily pool limits, the first-break floor or team capacity."""
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    logger.info("Break policy change requested by %d", admin.id)
    return await update_break_policy(db, changes)
