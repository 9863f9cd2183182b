"""
API v1 Router
"""

from fastapi import APIRouter
from . import tasks, users

router = APIRouter()

router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(users.router, prefix="/users", tags=["Users"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/tasks",
            "/tasks/{code}/status",
            "/tasks/{code}/assign",
            "/tasks/{code}/dependencies",
            "/tasks/{code}/dependents",
            "/users",
        ],
    }
