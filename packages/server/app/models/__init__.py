# SQLModel definitions: imported here so metadata is populated for Alembic and init_db.
from .base import IntIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .task import Task  # noqa: F401
from .dependency import TaskDependency  # noqa: F401
