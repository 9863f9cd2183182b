"""Completion statistics over a set of dependency tasks."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable, Protocol

from taskgraph_shared.schemas.common import TaskStatus


class HasStatus(Protocol):
    status: str


@dataclass(frozen=True)
class DependencyStats:
    total: int
    completed: int
    pending: int
    in_progress: int
    canceled: int
    remaining: int
    completion_percentage: float
    can_be_completed: bool

    def as_dict(self) -> dict:
        return asdict(self)


def calculate_dependency_stats(dependencies: Iterable[HasStatus]) -> DependencyStats:
    """
    Count dependencies per status and derive completion figures.

    ``can_be_completed`` is the same rule the status guard enforces: no
    dependency may be in any status other than completed. Callers decide
    whether the input is the full dependency set (authoritative) or a
    permission-filtered one (informational).
    """
    counts = {status.value: 0 for status in TaskStatus}
    total = 0
    for dep in dependencies:
        total += 1
        status = dep.status.value if isinstance(dep.status, TaskStatus) else dep.status
        counts[status] = counts.get(status, 0) + 1

    completed = counts[TaskStatus.COMPLETED.value]
    percentage = round(completed / total * 100, 2) if total > 0 else 100.0

    return DependencyStats(
        total=total,
        completed=completed,
        pending=counts[TaskStatus.PENDING.value],
        in_progress=counts[TaskStatus.IN_PROGRESS.value],
        canceled=counts[TaskStatus.CANCELED.value],
        remaining=total - completed,
        completion_percentage=percentage,
        can_be_completed=(total - completed) == 0,
    )


def summarize(stats: DependencyStats) -> str:
    if stats.total == 0:
        return "No dependencies"
    return (
        f"{stats.completed} of {stats.total} dependencies completed "
        f"({stats.remaining} remaining) - {stats.completion_percentage:.0f}%"
    )
