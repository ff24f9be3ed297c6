"""Pydantic schemas for the acting user."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class UserRead(BaseModel):
    id: int
    email: str
    full_name: str | None
    role: str
    team_id: int | None
    is_active: bool
    created_at: datetime | None

    model_config = {"from_attributes": True}
