"""
Task service layer: business logic for tasks addressed by their public code.

Handles:
- Task CRUD with soft deletion
- Role-scoped listing with filters and pagination
- Status transitions (delegated to the status guard)
- Enrichment of task data for API responses, including dependency stats

All functions return domain objects or a ``Rejection``; none of them raise
for expected outcomes.
"""

from __future__ import annotations

import secrets
import string
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional, Sequence, Union

import structlog
from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import Rejection
from app.models.dependency import TaskDependency
from app.models.task import TASK_CODE_LENGTH, TASK_CODE_PREFIX, Task
from app.models.user import User
from app.services.dependency_graph import DependencyGraph
from app.services.permissions import Action, Actor, authorize, scope_task_query, visible_dependencies
from app.services.stats import calculate_dependency_stats, summarize
from app.services.status_guard import StatusTransitionGuard
from taskgraph_shared.schemas.common import TaskStatus
from taskgraph_shared.schemas.tasks import (
    DependencyRead,
    DependencyStatsRead,
    TaskCreate,
    TaskDetailRead,
    TaskFilters,
    TaskRead,
    TaskUpdate,
    UserSummary,
)

log = structlog.get_logger()

CODE_ALPHABET = string.ascii_uppercase + string.digits


# ---------------------------------------------------------------------------
# Codes & lookups
# ---------------------------------------------------------------------------


def generate_task_code() -> str:
    return TASK_CODE_PREFIX + "".join(secrets.choice(CODE_ALPHABET) for _ in range(TASK_CODE_LENGTH))


async def _code_taken(session: AsyncSession, code: str) -> bool:
    # Soft-deleted rows still hold their code; codes are never reused.
    result = await session.execute(select(func.count()).select_from(Task).where(Task.code == code))
    return result.scalar_one() > 0


async def generate_unique_task_code(session: AsyncSession) -> str:
    while True:
        code = generate_task_code()
        if not await _code_taken(session, code):
            return code


async def get_task_by_code(
    session: AsyncSession, code: str, *, include_deleted: bool = False
) -> Optional[Task]:
    stmt = select(Task).where(Task.code == code)
    if not include_deleted:
        stmt = stmt.where(Task.deleted_at.is_(None))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_tasks_by_codes(session: AsyncSession, codes: Sequence[str]) -> dict[str, Task]:
    """Resolve live tasks by code in one query."""
    if not codes:
        return {}
    result = await session.execute(
        select(Task).where(Task.code.in_(set(codes)), Task.deleted_at.is_(None))
    )
    return {t.code: t for t in result.scalars().all()}


async def _user_exists(session: AsyncSession, user_id: int) -> bool:
    return await session.get(User, user_id) is not None


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


def to_user_summary(user: Optional[User]) -> Optional[UserSummary]:
    if user is None:
        return None
    return UserSummary(id=user.id, name=user.name, email=user.email)


async def load_users(session: AsyncSession, user_ids: set[int]) -> dict[int, User]:
    ids = {uid for uid in user_ids if uid is not None}
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}


async def _dependency_codes(
    session: AsyncSession, task_ids: list[int], actor: Optional[Actor]
) -> dict[int, list[str]]:
    if not task_ids:
        return {}
    result = await session.execute(
        select(TaskDependency.task_id, Task.code, Task.assigned_to)
        .join(Task, Task.id == TaskDependency.depends_on_task_id)
        .where(TaskDependency.task_id.in_(task_ids))
        .order_by(TaskDependency.id)
    )
    rows = result.all()
    if actor is not None:
        rows = visible_dependencies(actor, rows)
    codes: dict[int, list[str]] = defaultdict(list)
    for row in rows:
        codes[row.task_id].append(row.code)
    return codes


def _task_read(task: Task, users: dict[int, User], dependency_codes: list[str]) -> TaskRead:
    return TaskRead(
        code=task.code,
        title=task.title,
        description=task.description,
        status=TaskStatus(task.status),
        due_date=task.due_date,
        assignee=to_user_summary(users.get(task.assigned_to)),
        creator=to_user_summary(users.get(task.created_by)),
        dependency_codes=dependency_codes,
        completed_at=task.completed_at,
        canceled_at=task.canceled_at,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


async def enrich_tasks(
    session: AsyncSession, tasks: Sequence[Task], actor: Optional[Actor] = None
) -> list[TaskRead]:
    """Convert Task rows to TaskRead with people and dependency codes, batched.

    With an ``actor``, dependency codes are limited to what that actor may
    see. Without one the codes are unfiltered.
    """
    if not tasks:
        return []
    users = await load_users(session, {t.assigned_to for t in tasks} | {t.created_by for t in tasks})
    codes = await _dependency_codes(session, [t.id for t in tasks], actor)
    return [_task_read(t, users, codes.get(t.id, [])) for t in tasks]


async def enrich_task(
    session: AsyncSession, task: Task, actor: Optional[Actor] = None
) -> TaskRead:
    return (await enrich_tasks(session, [task], actor))[0]


def to_dependency_read(dependency: Task, users: dict[int, User]) -> DependencyRead:
    return DependencyRead(
        code=dependency.code,
        title=dependency.title,
        status=TaskStatus(dependency.status),
        due_date=dependency.due_date,
        is_completed=dependency.status == TaskStatus.COMPLETED.value,
        assignee=to_user_summary(users.get(dependency.assigned_to)),
    )


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


async def list_tasks(
    session: AsyncSession,
    actor: Actor,
    filters: TaskFilters,
) -> tuple[list[Task], int]:
    """Role-scoped, filtered, paginated listing. Returns (tasks, total)."""
    stmt = scope_task_query(actor, select(Task).where(Task.deleted_at.is_(None)))

    if filters.status:
        stmt = stmt.where(Task.status == filters.status.value)
    if filters.assigned_to is not None:
        stmt = stmt.where(Task.assigned_to == filters.assigned_to)
    if filters.due_date_from:
        stmt = stmt.where(Task.due_date >= filters.due_date_from)
    if filters.due_date_to:
        stmt = stmt.where(Task.due_date <= filters.due_date_to)
    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

    total_result = await session.execute(select(func.count()).select_from(stmt.subquery()))
    total = total_result.scalar_one()

    stmt = (
        stmt.order_by(Task.due_date.asc().nulls_last(), Task.created_at.desc(), Task.id.desc())
        .offset((filters.page - 1) * filters.per_page)
        .limit(filters.per_page)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all()), total


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_task(
    session: AsyncSession, actor: Actor, task_in: TaskCreate
) -> Union[Task, Rejection]:
    rejection = authorize(actor, Action.CREATE)
    if rejection:
        return rejection
    if task_in.assigned_to is not None and not await _user_exists(session, task_in.assigned_to):
        return Rejection.validation_failed("assigned_to", "The selected user does not exist.")

    task = Task(
        code=await generate_unique_task_code(session),
        title=task_in.title,
        description=task_in.description,
        due_date=task_in.due_date,
        assigned_to=task_in.assigned_to,
        created_by=actor.user_id,
        status=TaskStatus.PENDING.value,
    )
    session.add(task)
    await session.flush()
    log.info("task.created", task_code=task.code, actor_id=actor.user_id)
    return task


async def update_task(
    session: AsyncSession, actor: Actor, task: Task, task_in: TaskUpdate
) -> Union[Task, Rejection]:
    rejection = authorize(actor, Action.UPDATE, task)
    if rejection:
        return rejection

    data = task_in.model_dump(exclude_unset=True)
    assignee = data.get("assigned_to")
    if assignee is not None and not await _user_exists(session, assignee):
        return Rejection.validation_failed("assigned_to", "The selected user does not exist.")

    for key, value in data.items():
        setattr(task, key, value)

    session.add(task)
    await session.flush()
    log.info("task.updated", task_code=task.code, fields=sorted(data), actor_id=actor.user_id)
    return task


async def delete_task(session: AsyncSession, actor: Actor, task: Task) -> Optional[Rejection]:
    """Soft delete. Dependency edges touching the task are left in place."""
    rejection = authorize(actor, Action.DELETE, task)
    if rejection:
        return rejection
    task.deleted_at = datetime.now(timezone.utc)
    session.add(task)
    await session.flush()
    log.info("task.deleted", task_code=task.code, actor_id=actor.user_id)
    return None


async def assign_task(
    session: AsyncSession, actor: Actor, task: Task, user_id: int
) -> Union[Task, Rejection]:
    rejection = authorize(actor, Action.ASSIGN, task)
    if rejection:
        return rejection
    if not await _user_exists(session, user_id):
        return Rejection.validation_failed("user_id", "The selected user does not exist.")

    task.assigned_to = user_id
    session.add(task)
    await session.flush()
    log.info("task.assigned", task_code=task.code, assignee_id=user_id, actor_id=actor.user_id)
    return task


async def transition_task(
    session: AsyncSession, actor: Actor, task: Task, to_status: TaskStatus
) -> Union[Task, Rejection]:
    return await StatusTransitionGuard(session).transition(actor, task, to_status)


# ---------------------------------------------------------------------------
# Details
# ---------------------------------------------------------------------------


async def get_task_details(
    session: AsyncSession, actor: Actor, task: Task
) -> Union[TaskDetailRead, Rejection]:
    """Task with its (role-filtered) dependencies and completion stats.

    Stats are computed over the filtered list, so for non-Managers they are
    informational; the completion gate always uses the full set.
    """
    rejection = authorize(actor, Action.VIEW, task)
    if rejection:
        return rejection

    dependencies = visible_dependencies(actor, await DependencyGraph(session).dependencies_of(task.id))
    stats = calculate_dependency_stats(dependencies)
    users = await load_users(session, {d.assigned_to for d in dependencies})
    base = await enrich_task(session, task, actor)

    return TaskDetailRead(
        **base.model_dump(),
        dependencies=[to_dependency_read(d, users) for d in dependencies],
        dependencies_stats=DependencyStatsRead(**stats.as_dict()),
        dependencies_summary=summarize(stats),
    )
