"""
Pydantic schema definitions for service results and payloads.

Read models are the public projections returned by the services;
update models are optional typed forms of the sparse update payloads.
"""

from .project import ProjectRead, ProjectUpdate
from .task import TaskPriority, TaskRead, TaskStatus, TaskUpdate
from .user import UserRead, UserUpdate

__all__ = [
    "ProjectRead",
    "ProjectUpdate",
    "TaskPriority",
    "TaskRead",
    "TaskStatus",
    "TaskUpdate",
    "UserRead",
    "UserUpdate",
]
