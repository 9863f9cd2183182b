"""User model."""

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import IntIDMixin


class User(IntIDMixin, SQLModel, table=True):
    __tablename__ = "users"

    name: str = Field(nullable=False, max_length=255)
    email: str = Field(unique=True, index=True, nullable=False, max_length=255)
    role: str = Field(default="User", nullable=False, index=True)  # Manager | User
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
