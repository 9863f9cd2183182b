"""Task model."""

from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from .base import IntIDMixin, TimestampMixin

TASK_CODE_PREFIX = "TSK-"
TASK_CODE_LENGTH = 12


class Task(IntIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'canceled')",
            name="chk_tasks_status",
        ),
        CheckConstraint(
            "completed_at IS NULL OR canceled_at IS NULL",
            name="chk_tasks_single_terminal_timestamp",
        ),
        sa.Index("idx_tasks_status_due_date", "status", "due_date"),
        sa.Index("idx_tasks_assigned_status", "assigned_to", "status"),
    )

    code: str = Field(unique=True, index=True, nullable=False, max_length=16)
    title: str = Field(nullable=False, max_length=255)
    description: Optional[str] = Field(default=None, sa_type=sa.Text)
    status: str = Field(default="pending", nullable=False, index=True)  # pending | in_progress | completed | canceled
    due_date: Optional[date] = Field(default=None, index=True)
    assigned_to: Optional[int] = Field(
        default=None, foreign_key="users.id", index=True, ondelete="SET NULL"
    )
    created_by: int = Field(foreign_key="users.id", nullable=False, index=True, ondelete="RESTRICT")
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    canceled_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    deleted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True), index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
