"""
Dependency graph over tasks.

The only component allowed to mutate ``task_dependencies``. Every insert is
checked for self-reference, duplication and cycles first, so the edge set
stays acyclic. Edge semantics: ``task -> depends_on`` means the task cannot
complete before ``depends_on`` does.

Outcomes of ``add_edge`` are returned, not raised, so a batch can keep going
after a rejected candidate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

import structlog
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.dependency import TaskDependency
from app.models.task import Task
from taskgraph_shared.schemas.common import SkipReason

log = structlog.get_logger()


class EdgeOutcome(str, Enum):
    ADDED = "added"
    NOT_FOUND = "not_found"
    SELF_REFERENCE = SkipReason.SELF_REFERENCE.value
    DUPLICATE = SkipReason.DUPLICATE.value
    CYCLE = SkipReason.CYCLE.value

    @property
    def skip_reason(self) -> SkipReason:
        return SkipReason(self.value)


SKIP_MESSAGES = {
    EdgeOutcome.SELF_REFERENCE: "Cannot add self as dependency",
    EdgeOutcome.DUPLICATE: "Dependency already exists",
    EdgeOutcome.CYCLE: "Circular dependency detected",
}


@dataclass(frozen=True)
class SkippedEdge:
    candidate_id: int
    reason: EdgeOutcome

    @property
    def message(self) -> str:
        return SKIP_MESSAGES[self.reason]


@dataclass
class BatchResult:
    added: list[int] = field(default_factory=list)
    skipped: list[SkippedEdge] = field(default_factory=list)
    missing: list[int] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.skipped and not self.missing


class DependencyGraph:
    """Edge queries and validated mutations bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def task_exists(self, task_id: int) -> bool:
        """Live (not soft-deleted) task lookup used before creating an edge."""
        result = await self.session.execute(
            select(func.count()).select_from(Task).where(
                Task.id == task_id, Task.deleted_at.is_(None)
            )
        )
        return result.scalar_one() > 0

    async def edge_exists(self, task_id: int, candidate_id: int) -> bool:
        result = await self.session.execute(
            select(func.count()).select_from(TaskDependency).where(
                TaskDependency.task_id == task_id,
                TaskDependency.depends_on_task_id == candidate_id,
            )
        )
        return result.scalar_one() > 0

    async def _depends_on_ids(self, task_id: int) -> list[int]:
        result = await self.session.execute(
            select(TaskDependency.depends_on_task_id).where(TaskDependency.task_id == task_id)
        )
        return [row[0] for row in result.all()]

    async def would_create_cycle(self, task_id: int, candidate_id: int) -> bool:
        """True iff ``candidate_id`` already reaches ``task_id`` via depends-on edges.

        Iterative DFS from the candidate. The visited set bounds the walk to
        O(V+E) and lets it terminate even on data that already holds a cycle.
        """
        stack = [candidate_id]
        visited: set[int] = set()
        while stack:
            node = stack.pop()
            if node in visited:
                continue
            visited.add(node)
            for nxt in await self._depends_on_ids(node):
                if nxt == task_id:
                    return True
                if nxt not in visited:
                    stack.append(nxt)
        return False

    async def dependencies_of(self, task_id: int) -> list[Task]:
        """Tasks ``task_id`` directly depends on (soft-deleted ones included)."""
        result = await self.session.execute(
            select(Task)
            .join(TaskDependency, TaskDependency.depends_on_task_id == Task.id)
            .where(TaskDependency.task_id == task_id)
            .order_by(TaskDependency.id)
        )
        return list(result.scalars().all())

    async def dependents_of(self, task_id: int) -> list[Task]:
        """Tasks that directly depend on ``task_id``."""
        result = await self.session.execute(
            select(Task)
            .join(TaskDependency, TaskDependency.task_id == Task.id)
            .where(TaskDependency.depends_on_task_id == task_id)
            .order_by(TaskDependency.id)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Mutations (callers hold graph_write_lock until commit)
    # ------------------------------------------------------------------

    async def add_edge(self, task_id: int, candidate_id: int) -> EdgeOutcome:
        """Validate and insert ``task_id -> candidate_id``. First failing check wins."""
        if not await self.task_exists(candidate_id):
            return EdgeOutcome.NOT_FOUND
        if candidate_id == task_id:
            return EdgeOutcome.SELF_REFERENCE
        if await self.edge_exists(task_id, candidate_id):
            return EdgeOutcome.DUPLICATE
        if await self.would_create_cycle(task_id, candidate_id):
            return EdgeOutcome.CYCLE

        self.session.add(TaskDependency(task_id=task_id, depends_on_task_id=candidate_id))
        await self.session.flush()
        return EdgeOutcome.ADDED

    async def add_edges_batch(self, task_id: int, candidate_ids: Sequence[int]) -> BatchResult:
        """Apply ``add_edge`` to each candidate independently.

        Not atomic: accepted candidates stay added when siblings are rejected.
        A candidate repeated within the request is reported as a duplicate.
        """
        result = BatchResult()
        seen: set[int] = set()
        for candidate_id in candidate_ids:
            if candidate_id in seen:
                result.skipped.append(SkippedEdge(candidate_id, EdgeOutcome.DUPLICATE))
                continue
            seen.add(candidate_id)

            outcome = await self.add_edge(task_id, candidate_id)
            if outcome is EdgeOutcome.ADDED:
                result.added.append(candidate_id)
            elif outcome is EdgeOutcome.NOT_FOUND:
                result.missing.append(candidate_id)
            else:
                result.skipped.append(SkippedEdge(candidate_id, outcome))

        log.info(
            "graph.batch_processed",
            task_id=task_id,
            added=len(result.added),
            skipped=len(result.skipped),
            missing=len(result.missing),
        )
        return result

    async def remove_edge(self, task_id: int, candidate_id: int) -> bool:
        """Delete the edge; False when there was nothing to delete."""
        result = await self.session.execute(
            delete(TaskDependency).where(
                TaskDependency.task_id == task_id,
                TaskDependency.depends_on_task_id == candidate_id,
            )
        )
        await self.session.flush()
        return (result.rowcount or 0) > 0
