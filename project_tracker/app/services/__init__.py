"""
Service layer.

Each service encapsulates the ownership-scoped operations for one
entity.  Services receive the record store (and, for users, the
password hasher) at construction instead of importing a global
connection.
"""

from .project_service import ProjectService
from .task_service import TaskService
from .user_service import UserService

__all__ = ["ProjectService", "TaskService", "UserService"]
