"""Task-related Pydantic schemas shared by the server and API clients."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .common import PageParams, SkipReason, TaskStatus


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

class UserSummary(BaseModel):
    id: int
    name: str
    email: str


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

class TaskBase(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[date] = None


class TaskCreate(TaskBase):
    assigned_to: Optional[int] = None


class TaskUpdate(BaseModel):
    """Partial update. Only fields explicitly sent are applied."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[date] = None
    assigned_to: Optional[int] = None

    @model_validator(mode="after")
    def _title_not_null(self) -> "TaskUpdate":
        if "title" in self.model_fields_set and self.title is None:
            raise ValueError("title cannot be null")
        return self


class TaskRead(BaseModel):
    code: str
    title: str
    description: Optional[str] = None
    status: TaskStatus
    due_date: Optional[date] = None
    assignee: Optional[UserSummary] = None
    creator: Optional[UserSummary] = None
    dependency_codes: List[str] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TaskFilters(PageParams):
    """Query filters and paging for GET /tasks."""
    status: Optional[TaskStatus] = None
    assigned_to: Optional[int] = None
    due_date_from: Optional[date] = None
    due_date_to: Optional[date] = None
    search: Optional[str] = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def _due_range(self) -> "TaskFilters":
        if self.due_date_from and self.due_date_to and self.due_date_to < self.due_date_from:
            raise ValueError("due_date_to must be after or equal to due_date_from")
        return self


# ---------------------------------------------------------------------------
# Status & assignment
# ---------------------------------------------------------------------------

class TaskStatusUpdate(BaseModel):
    """Request body for PATCH /tasks/{code}/status."""
    status: TaskStatus


class TaskAssign(BaseModel):
    """Request body for POST /tasks/{code}/assign."""
    user_id: int


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

class DependencyAdd(BaseModel):
    """Request body for POST /tasks/{code}/dependencies (task codes)."""
    dependency_ids: List[str] = Field(min_length=1)


class DependencyRead(BaseModel):
    code: str
    title: str
    status: TaskStatus
    due_date: Optional[date] = None
    is_completed: bool
    assignee: Optional[UserSummary] = None


class DependencySkip(BaseModel):
    code: str
    reason: SkipReason
    message: str


class DependencyBatchRead(BaseModel):
    task: TaskRead
    added: List[str] = Field(default_factory=list)
    skipped: List[DependencySkip] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class DependencyStatsRead(BaseModel):
    total: int
    completed: int
    pending: int
    in_progress: int
    canceled: int
    remaining: int
    completion_percentage: float
    can_be_completed: bool


class TaskDetailRead(TaskRead):
    dependencies: List[DependencyRead] = Field(default_factory=list)
    dependencies_stats: DependencyStatsRead
    dependencies_summary: str
