"""
Serialization of dependency-edge writes.

Cycle detection and edge insertion are two steps against shared state, so two
requests adding edges that are acyclic on their own but cyclic together could
both pass validation. Every edge mutation therefore runs inside
``graph_write_lock`` and commits before leaving it.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings

log = structlog.get_logger()
settings = get_settings()

_graph_lock: Optional[asyncio.Lock] = None
_graph_lock_loop: Optional[asyncio.AbstractEventLoop] = None


def _lock_for_running_loop() -> asyncio.Lock:
    """The in-process writer lock, created for the event loop it is used on."""
    global _graph_lock, _graph_lock_loop
    loop = asyncio.get_running_loop()
    if _graph_lock is None or _graph_lock_loop is not loop:
        _graph_lock = asyncio.Lock()
        _graph_lock_loop = loop
    return _graph_lock


@asynccontextmanager
async def graph_write_lock(session: AsyncSession) -> AsyncIterator[None]:
    """Single-writer section for validate-then-insert on the edge set.

    In-process writers queue on an ``asyncio.Lock``. On PostgreSQL a
    transaction-scoped advisory lock extends this across workers; it is
    released when the caller commits or rolls back.
    """
    async with _lock_for_running_loop():
        bind = session.bind
        if bind is not None and bind.dialect.name == "postgresql":
            await session.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": settings.graph_lock_key},
            )
        log.debug("graph.write_lock.acquired")
        yield
