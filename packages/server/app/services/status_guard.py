"""
Status transitions with the dependency completion gate.

Any status may move to any other status. Moving to ``completed`` is refused
while any dependency (unfiltered, regardless of who is asking) is not
completed. Accepted transitions keep ``completed_at`` and ``canceled_at``
mutually exclusive.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Rejection
from app.models.task import Task
from app.services.dependency_graph import DependencyGraph
from app.services.permissions import Action, Actor, authorize
from app.services.stats import calculate_dependency_stats
from taskgraph_shared.schemas.common import TaskStatus

log = structlog.get_logger()

INCOMPLETE_DEPENDENCIES_MESSAGE = "Cannot complete task. All dependencies must be completed first"


def apply_status(task: Task, status: TaskStatus, now: Optional[datetime] = None) -> Task:
    """Set ``status`` and its timestamp side effects. No gating here."""
    now = now or datetime.now(timezone.utc)
    task.status = status.value
    if status == TaskStatus.COMPLETED:
        task.completed_at = now
        task.canceled_at = None
    elif status == TaskStatus.CANCELED:
        task.canceled_at = now
        task.completed_at = None
    else:
        task.completed_at = None
        task.canceled_at = None
    return task


class StatusTransitionGuard:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.graph = DependencyGraph(session)

    async def can_complete(self, task: Task) -> bool:
        dependencies = await self.graph.dependencies_of(task.id)
        return calculate_dependency_stats(dependencies).can_be_completed

    async def transition(
        self, actor: Actor, task: Task, to_status: TaskStatus
    ) -> Union[Task, Rejection]:
        rejection = authorize(actor, Action.UPDATE_STATUS, task)
        if rejection:
            return rejection

        if to_status == TaskStatus.COMPLETED and not await self.can_complete(task):
            log.info("task.completion_blocked", task_code=task.code, actor_id=actor.user_id)
            return Rejection.business_rule(INCOMPLETE_DEPENDENCIES_MESSAGE)

        previous = task.status
        apply_status(task, to_status)
        self.session.add(task)
        await self.session.flush()

        log.info(
            "task.status_changed",
            task_code=task.code,
            from_status=previous,
            to_status=to_status.value,
            actor_id=actor.user_id,
        )
        return task
