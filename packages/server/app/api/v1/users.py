"""
User directory endpoint.

GET    /api/v1/users    List users (Managers only), filterable by role and search
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.core.errors import raise_for_rejection
from app.core.responses import envelope
from app.services import users as user_service
from app.services.permissions import Action, authorize
from taskgraph_shared.schemas.common import Pagination, Role
from taskgraph_shared.schemas.users import UserFilters, UserRead

router = APIRouter()


@router.get("")
async def list_users(
    filters: Annotated[UserFilters, Query()],
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """List users for assignment pickers (Managers only)."""
    rejection = authorize(auth, Action.LIST_USERS)
    if rejection:
        raise_for_rejection(rejection)

    users, total = await user_service.list_users(session, filters)
    return envelope(
        [
            UserRead(id=u.id, name=u.name, email=u.email, role=Role(u.role), created_at=u.created_at)
            for u in users
        ],
        "Users retrieved successfully",
        pagination=Pagination.build(filters.page, filters.per_page, total),
    )
