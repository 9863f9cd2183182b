"""
Dependency operations addressed by task code.

Codes are resolved to internal ids once, here, and results are translated
back to codes before leaving the service layer.
"""

from __future__ import annotations

from typing import Optional, Sequence, Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Rejection
from app.models.task import Task
from app.services.dependency_graph import DependencyGraph
from app.services.permissions import Action, Actor, authorize, visible_dependencies
from app.services.tasks import (
    enrich_task,
    get_task_by_code,
    get_tasks_by_codes,
    load_users,
    to_dependency_read,
)
from taskgraph_shared.schemas.tasks import DependencyBatchRead, DependencyRead, DependencySkip

log = structlog.get_logger()


async def list_dependencies(
    session: AsyncSession, actor: Actor, task: Task
) -> Union[list[DependencyRead], Rejection]:
    """Direct dependencies the actor may see. Access to the task is checked first."""
    rejection = authorize(actor, Action.VIEW_DEPENDENCIES, task)
    if rejection:
        return rejection

    dependencies = visible_dependencies(actor, await DependencyGraph(session).dependencies_of(task.id))
    users = await load_users(session, {d.assigned_to for d in dependencies})
    return [to_dependency_read(d, users) for d in dependencies]


async def list_dependents(
    session: AsyncSession, actor: Actor, task: Task
) -> Union[list[DependencyRead], Rejection]:
    """Tasks blocked by ``task``. Managers only."""
    rejection = authorize(actor, Action.MANAGE_DEPENDENCIES, task)
    if rejection:
        return rejection

    dependents = await DependencyGraph(session).dependents_of(task.id)
    users = await load_users(session, {d.assigned_to for d in dependents})
    return [to_dependency_read(d, users) for d in dependents]


async def add_dependencies(
    session: AsyncSession, actor: Actor, task: Task, dependency_codes: Sequence[str]
) -> Union[DependencyBatchRead, Rejection]:
    """Batch-add dependencies by code. Partial success is the normal outcome.

    Unknown codes become error strings; self, duplicate and cycle candidates
    become skips. Callers must hold ``graph_write_lock`` until commit.
    """
    rejection = authorize(actor, Action.MANAGE_DEPENDENCIES, task)
    if rejection:
        return rejection

    resolved = await get_tasks_by_codes(session, dependency_codes)

    candidate_ids: list[int] = []
    code_by_id: dict[int, str] = {}
    missing_codes: list[str] = []
    for code in dependency_codes:
        dependency = resolved.get(code)
        if dependency is None:
            missing_codes.append(code)
            continue
        candidate_ids.append(dependency.id)
        code_by_id[dependency.id] = code

    batch = await DependencyGraph(session).add_edges_batch(task.id, candidate_ids)
    # A task soft-deleted after lookup comes back from the graph as missing.
    missing_codes.extend(code_by_id[i] for i in batch.missing)
    errors = [
        f"Dependency task {code} not found" for code in dict.fromkeys(missing_codes)
    ]

    log.info(
        "task.dependencies_processed",
        task_code=task.code,
        added=len(batch.added),
        skipped=len(batch.skipped),
        errors=len(errors),
        actor_id=actor.user_id,
    )
    return DependencyBatchRead(
        task=await enrich_task(session, task, actor),
        added=[code_by_id[i] for i in batch.added],
        skipped=[
            DependencySkip(
                code=code_by_id[s.candidate_id],
                reason=s.reason.skip_reason,
                message=s.message,
            )
            for s in batch.skipped
        ],
        errors=errors,
    )


async def remove_dependency(
    session: AsyncSession, actor: Actor, task: Task, dependency_code: str
) -> Optional[Rejection]:
    rejection = authorize(actor, Action.MANAGE_DEPENDENCIES, task)
    if rejection:
        return rejection

    # Edges to soft-deleted tasks survive deletion, so they must stay removable.
    dependency = await get_task_by_code(session, dependency_code, include_deleted=True)
    if dependency is None:
        return Rejection.not_found("Dependency task")

    removed = await DependencyGraph(session).remove_edge(task.id, dependency.id)
    if not removed:
        return Rejection.not_found("Dependency")

    log.info(
        "task.dependency_removed",
        task_code=task.code,
        dependency_code=dependency_code,
        actor_id=actor.user_id,
    )
    return None
