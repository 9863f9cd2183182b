"""Task dependency edge: ``task_id`` cannot complete before ``depends_on_task_id``."""

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import IntIDMixin, TimestampMixin


class TaskDependency(IntIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "task_dependencies"
    __table_args__ = (
        UniqueConstraint("task_id", "depends_on_task_id", name="uq_task_dependencies_pair"),
        CheckConstraint("task_id != depends_on_task_id", name="no_self_dependency"),
    )

    task_id: int = Field(foreign_key="tasks.id", nullable=False, index=True, ondelete="CASCADE")
    depends_on_task_id: int = Field(
        foreign_key="tasks.id", nullable=False, index=True, ondelete="CASCADE"
    )
