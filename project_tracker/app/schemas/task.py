"""
Pydantic models for tasks.

A task always belongs to a project and is visible only to that
project's owner.  ``status`` and ``priority`` are enumerated; they are
set when the task is created and are not part of the update payload.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskRead(BaseModel):
    """Public projection of a task."""

    id: int
    project_id: int
    title: str
    assigned_to: Optional[int] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    created_at: datetime

    model_config = {
        "from_attributes": True,
    }


class TaskUpdate(BaseModel):
    title: Optional[str] = None
