from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"


TASK_STATUS_VALUES: list[str] = [s.value for s in TaskStatus]


class Role(str, Enum):
    MANAGER = "Manager"
    USER = "User"


class SkipReason(str, Enum):
    DUPLICATE = "duplicate"
    SELF_REFERENCE = "self_reference"
    CYCLE = "cycle"


DEFAULT_PER_PAGE = 15
MAX_PER_PAGE = 100


class PageParams(BaseModel):
    """Query parameters shared by every paginated listing."""
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE)


class Pagination(BaseModel):
    current_page: int
    per_page: int
    total: int
    last_page: int
    has_more_pages: bool
    from_: Optional[int] = None
    to: Optional[int] = None

    @classmethod
    def build(cls, page: int, per_page: int, total: int) -> "Pagination":
        last_page = max(1, -(-total // per_page))
        first = (page - 1) * per_page + 1
        last = min(page * per_page, total)
        in_range = total > 0 and first <= total
        return cls(
            current_page=page,
            per_page=per_page,
            total=total,
            last_page=last_page,
            has_more_pages=page < last_page,
            from_=first if in_range else None,
            to=last if in_range else None,
        )

    def as_response(self) -> dict:
        data = self.model_dump()
        data["from"] = data.pop("from_")
        return data


class ApiResponse(BaseModel):
    """Envelope shared by every endpoint."""
    success: bool
    message: str
    data: Optional[Any] = None
    errors: Optional[dict[str, list[str]]] = None
    pagination: Optional[dict] = None
