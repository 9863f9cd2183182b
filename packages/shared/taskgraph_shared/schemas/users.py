"""User directory schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import PageParams, Role


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    role: Role
    created_at: datetime


class UserFilters(PageParams):
    role: Optional[Role] = None
    search: Optional[str] = Field(default=None, max_length=255)
