"""
Shared fixtures: a throwaway SQLite database, users of both roles, an ASGI
client and helpers for building tasks and dependency edges directly.
"""

from __future__ import annotations

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="taskgraph-tests-")
os.environ["TG_DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/test.db"
os.environ["TG_ENVIRONMENT"] = "testing"
os.environ["TG_LOG_FORMAT"] = "text"

from datetime import date
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.auth import create_access_token
from app.core.database import async_session_factory, drop_db, engine, init_db
from app.main import app
from app.models.dependency import TaskDependency
from app.models.task import Task
from app.models.user import User
from app.services.tasks import generate_task_code
from taskgraph_shared.schemas.common import Role, TaskStatus


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
async def database():
    await init_db()
    yield
    await drop_db()
    await engine.dispose()


@pytest.fixture
async def session(database):
    async with async_session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def _create_user(session, name: str, email: str, role: Role) -> User:
    user = User(name=name, email=email, role=role.value)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def manager(session) -> User:
    return await _create_user(session, "Maria Manager", "maria@example.com", Role.MANAGER)


@pytest.fixture
async def member(session) -> User:
    return await _create_user(session, "Uma User", "uma@example.com", Role.USER)


@pytest.fixture
async def other_member(session) -> User:
    return await _create_user(session, "Otto Other", "otto@example.com", Role.USER)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


# ---------------------------------------------------------------------------
# Tasks & edges
# ---------------------------------------------------------------------------


async def make_task(
    session,
    creator: User,
    title: str = "Task",
    *,
    status: TaskStatus = TaskStatus.PENDING,
    assignee: Optional[User] = None,
    due_date: Optional[date] = None,
) -> Task:
    task = Task(
        code=generate_task_code(),
        title=title,
        status=status.value,
        created_by=creator.id,
        assigned_to=assignee.id if assignee else None,
        due_date=due_date,
    )
    session.add(task)
    await session.commit()
    await session.refresh(task)
    return task


async def link(session, task: Task, depends_on: Task) -> None:
    """Insert an edge directly, bypassing validation."""
    session.add(TaskDependency(task_id=task.id, depends_on_task_id=depends_on.id))
    await session.commit()


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
async def client(database):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
