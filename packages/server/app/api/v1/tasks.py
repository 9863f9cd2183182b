"""
Task endpoints: CRUD, status, assignment, dependencies.

Statuses: pending, in_progress, completed, canceled (any to any)
- Completion gate: a task cannot be completed until all its dependencies are.
- Dependencies are added in batches of task codes; self, duplicate and
  cyclic candidates are skipped without failing the request.
- Managers see and change everything; other users see tasks assigned to
  them and may only update their status.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.core.errors import Rejection, raise_for_rejection
from app.core.locks import graph_write_lock
from app.core.responses import envelope
from app.models.task import Task
from app.services import dependencies as dependency_service
from app.services import tasks as task_service
from taskgraph_shared.schemas.common import Pagination
from taskgraph_shared.schemas.tasks import (
    DependencyAdd,
    TaskAssign,
    TaskCreate,
    TaskFilters,
    TaskStatusUpdate,
    TaskUpdate,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _task_or_404(session: AsyncSession, code: str) -> Task:
    task = await task_service.get_task_by_code(session, code)
    if not task:
        raise_for_rejection(Rejection.not_found("Task"))
    return task


def _unwrap(result):
    if isinstance(result, Rejection):
        raise_for_rejection(result)
    return result


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------


@router.get("")
async def list_tasks_endpoint(
    filters: Annotated[TaskFilters, Query()],
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """List tasks. Non-Managers only see tasks assigned to them."""
    tasks, total = await task_service.list_tasks(session, auth, filters)
    return envelope(
        await task_service.enrich_tasks(session, tasks, auth),
        "Tasks retrieved successfully",
        pagination=Pagination.build(filters.page, filters.per_page, total),
    )


@router.post("", status_code=201)
async def create_task_endpoint(
    task_in: TaskCreate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a new task (Managers only)."""
    task = _unwrap(await task_service.create_task(session, auth, task_in))
    await session.commit()
    return envelope(
        await task_service.enrich_task(session, task, auth),
        "Task created successfully",
        status_code=201,
    )


@router.get("/{code}")
async def get_task_endpoint(
    code: str,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Task details with dependencies and completion stats."""
    task = await _task_or_404(session, code)
    details = _unwrap(await task_service.get_task_details(session, auth, task))
    return envelope(details, "Task retrieved successfully")


@router.api_route("/{code}", methods=["PUT", "PATCH"])
async def update_task_endpoint(
    code: str,
    task_in: TaskUpdate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Update title, description, due date or assignee (Managers only)."""
    task = await _task_or_404(session, code)
    task = _unwrap(await task_service.update_task(session, auth, task, task_in))
    await session.commit()
    return envelope(await task_service.enrich_task(session, task, auth), "Task updated successfully")


@router.delete("/{code}")
async def delete_task_endpoint(
    code: str,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Soft-delete a task (Managers only)."""
    task = await _task_or_404(session, code)
    _unwrap(await task_service.delete_task(session, auth, task))
    await session.commit()
    return envelope(message="Task deleted successfully")


# ---------------------------------------------------------------------------
# Status & assignment
# ---------------------------------------------------------------------------


@router.patch("/{code}/status")
async def update_status_endpoint(
    code: str,
    body: TaskStatusUpdate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Change status. Completion requires every dependency to be completed."""
    task = await _task_or_404(session, code)
    task = _unwrap(await task_service.transition_task(session, auth, task, body.status))
    await session.commit()
    return envelope(await task_service.enrich_task(session, task, auth), "Task status updated successfully")


@router.post("/{code}/assign")
async def assign_task_endpoint(
    code: str,
    body: TaskAssign,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Assign a task to a user (Managers only)."""
    task = await _task_or_404(session, code)
    task = _unwrap(await task_service.assign_task(session, auth, task, body.user_id))
    await session.commit()
    return envelope(await task_service.enrich_task(session, task, auth), "Task assigned successfully")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


@router.get("/{code}/dependencies")
async def list_dependencies_endpoint(
    code: str,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Direct dependencies, filtered to what the caller may see."""
    task = await _task_or_404(session, code)
    dependencies = _unwrap(await dependency_service.list_dependencies(session, auth, task))
    return envelope(dependencies, "Dependencies retrieved successfully")


@router.get("/{code}/dependents")
async def list_dependents_endpoint(
    code: str,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Tasks that depend on this one (Managers only)."""
    task = await _task_or_404(session, code)
    dependents = _unwrap(await dependency_service.list_dependents(session, auth, task))
    return envelope(dependents, "Dependents retrieved successfully")


@router.post("/{code}/dependencies")
async def add_dependencies_endpoint(
    code: str,
    body: DependencyAdd,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Add dependencies by task code. Partial success returns 200 with details."""
    task = await _task_or_404(session, code)
    async with graph_write_lock(session):
        batch = _unwrap(
            await dependency_service.add_dependencies(session, auth, task, body.dependency_ids)
        )
        await session.commit()

    if batch.skipped or batch.errors:
        return envelope(batch, "Dependencies processed with some issues")
    return envelope(batch, "Dependencies added successfully", status_code=201)


@router.delete("/{code}/dependencies/{dependency_code}")
async def remove_dependency_endpoint(
    code: str,
    dependency_code: str,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Remove one dependency edge (Managers only)."""
    task = await _task_or_404(session, code)
    async with graph_write_lock(session):
        _unwrap(await dependency_service.remove_dependency(session, auth, task, dependency_code))
        await session.commit()
    return envelope(await task_service.enrich_task(session, task, auth), "Dependency removed successfully")
