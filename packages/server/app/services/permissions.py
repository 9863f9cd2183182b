"""
Permission policy and role-scoped views.

``evaluate`` is the single place that decides whether an actor may perform
an action on a task. The view helpers project task and dependency sets down
to what an actor may see; they never change which edges exist.

Rules:
- Managers: every action, full visibility
- Other users: view, status update and dependency view, only on tasks
  currently assigned to them
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Protocol, TypeVar

from sqlmodel import select

from app.core.errors import DEFAULT_FORBIDDEN_MESSAGE, Rejection
from app.models.task import Task
from taskgraph_shared.schemas.common import Role


class Actor(Protocol):
    user_id: int
    role: str


class Assignable(Protocol):
    assigned_to: Optional[int]


T = TypeVar("T", bound=Assignable)


class Action(str, Enum):
    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    UPDATE_STATUS = "update_status"
    DELETE = "delete"
    ASSIGN = "assign"
    MANAGE_DEPENDENCIES = "manage_dependencies"
    VIEW_DEPENDENCIES = "view_dependencies"
    LIST_USERS = "list_users"


# Actions a non-Manager may take on a task assigned to them.
ASSIGNEE_ACTIONS = frozenset({Action.VIEW, Action.UPDATE_STATUS, Action.VIEW_DEPENDENCIES})

DENIAL_MESSAGES = {
    Action.VIEW: "You do not have permission to view this task",
    Action.CREATE: "Only managers can create tasks",
    Action.UPDATE: "Only managers can update tasks",
    Action.UPDATE_STATUS: "You do not have permission to update this task status",
    Action.DELETE: "Only managers can delete tasks",
    Action.ASSIGN: "Only managers can assign tasks",
    Action.MANAGE_DEPENDENCIES: "Only managers can manage task dependencies",
    Action.VIEW_DEPENDENCIES: "You do not have permission to view this task's dependencies",
    Action.LIST_USERS: "Only managers can list users",
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def as_rejection(self) -> Optional[Rejection]:
        if self.allowed:
            return None
        return Rejection.forbidden(self.reason or DEFAULT_FORBIDDEN_MESSAGE)


ALLOW = Decision(allowed=True)


def is_manager(actor: Actor) -> bool:
    return actor.role == Role.MANAGER.value


def is_assignee(actor: Actor, task: Optional[Assignable]) -> bool:
    return task is not None and task.assigned_to is not None and task.assigned_to == actor.user_id


def evaluate(actor: Actor, action: Action, task: Optional[Assignable] = None) -> Decision:
    """Decide whether ``actor`` may perform ``action`` (on ``task`` if given)."""
    if is_manager(actor):
        return ALLOW
    if action in ASSIGNEE_ACTIONS and is_assignee(actor, task):
        return ALLOW
    return Decision(allowed=False, reason=DENIAL_MESSAGES.get(action))


def authorize(actor: Actor, action: Action, task: Optional[Assignable] = None) -> Optional[Rejection]:
    """Shorthand returning a FORBIDDEN rejection, or None when allowed."""
    return evaluate(actor, action, task).as_rejection()


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


def visible_tasks(actor: Actor, tasks: Iterable[T]) -> list[T]:
    """Tasks the actor may see in a listing."""
    if is_manager(actor):
        return list(tasks)
    return [t for t in tasks if is_assignee(actor, t)]


def visible_dependencies(actor: Actor, dependencies: Iterable[T]) -> list[T]:
    """Dependencies of an already-visible task that the actor may see."""
    return visible_tasks(actor, dependencies)


def scope_task_query(actor: Actor, stmt=None):
    """Apply the listing rule to a ``select(Task)`` statement."""
    if stmt is None:
        stmt = select(Task)
    if is_manager(actor):
        return stmt
    return stmt.where(Task.assigned_to == actor.user_id)
