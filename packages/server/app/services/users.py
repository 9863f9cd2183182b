"""
User directory service: read-only listing used by Managers to pick assignees.
"""

from __future__ import annotations

from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.user import User
from taskgraph_shared.schemas.users import UserFilters


async def list_users(session: AsyncSession, filters: UserFilters) -> tuple[list[User], int]:
    stmt = select(User)
    if filters.role:
        stmt = stmt.where(User.role == filters.role.value)
    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    total_result = await session.execute(select(func.count()).select_from(stmt.subquery()))
    total = total_result.scalar_one()

    stmt = (
        stmt.order_by(User.name.asc(), User.id.asc())
        .offset((filters.page - 1) * filters.per_page)
        .limit(filters.per_page)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all()), total
