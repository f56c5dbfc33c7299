"""
Business logic for tasks.

Tasks carry no owner column of their own: a task is visible to a user
only through a project that user owns.  Every statement therefore
restricts ``project_id`` to the acting user's projects, and creation
checks project ownership explicitly because the foreign key alone only
proves that the project exists.

Only the title can be changed after creation; status, priority and
assignee are fixed when the task is created.
"""

import logging
from typing import Any, List, Optional

from ..core.errors import NotFoundError, ValidationError
from ..core.update_builder import FieldRule, clean_required
from ..core.validation import is_non_empty, strip_text
from ..schemas.task import TaskPriority, TaskRead
from .base import ScopedEntityService

logger = logging.getLogger(__name__)

OWNED_PROJECTS = "project_id IN (SELECT id FROM projects WHERE user_id = {})"

CREATE_TITLE = FieldRule("title", "title", strip_text, is_non_empty, "Title is required to create task")

UPDATE_RULES = (
    FieldRule("title", "title", strip_text, is_non_empty, "Title cannot be empty"),
)


class TaskService(ScopedEntityService):
    """Tasks inside projects owned by the caller."""

    table = "tasks"
    projection = "id, project_id, title, assigned_to, status, priority, created_at"
    scope = "id = {0} AND " + OWNED_PROJECTS.format("{1}")
    read_model = TaskRead
    label = "Task"
    update_rules = UPDATE_RULES

    async def _user_exists(self, user_id: Any) -> bool:
        try:
            result = await self.execute("SELECT id FROM users WHERE id = ?1", (user_id,))
        except NotFoundError:
            return False
        return bool(result.rows)

    async def create_task(
        self,
        project_id: Any,
        acting_user_id: Any,
        title: Any,
        *,
        assigned_to: Optional[int] = None,
        priority: Optional[Any] = None,
    ) -> TaskRead:
        """Add a task to a project the acting user owns.

        Raises
        ------
        ValidationError
            Missing ids or title, or an unknown priority.
        NotFoundError
            The project does not exist or is not owned by the caller,
            or ``assigned_to`` is not an existing user.
        """
        self.require_ids(project_id=project_id, acting_user_id=acting_user_id)
        title = clean_required(CREATE_TITLE, title)
        try:
            priority = TaskPriority(priority) if priority is not None else TaskPriority.MEDIUM
        except ValueError:
            raise ValidationError(
                f"priority must be one of {', '.join(p.value for p in TaskPriority)}",
                field="priority",
            ) from None

        owned = await self.execute(
            "SELECT id FROM projects WHERE id = ?1 AND user_id = ?2",
            (project_id, acting_user_id),
            missing_reference="Project not found",
        )
        if not owned.rows:
            raise NotFoundError("Project not found")

        try:
            result = await self.execute(
                "INSERT INTO tasks (project_id, title, assigned_to, priority) "
                f"VALUES (?1, ?2, ?3, ?4) RETURNING {self.projection}",
                (project_id, title, assigned_to, priority.value),
                missing_reference="Project not found",
            )
        except NotFoundError:
            # SQLite does not say which foreign key failed; the project may
            # also have been deleted since the ownership check.
            if assigned_to is not None and not await self._user_exists(assigned_to):
                raise NotFoundError("Assigned user not found") from None
            raise
        task = TaskRead(**result.first())
        logger.info("Task %s added to project %s", task.id, project_id)
        return task

    async def get_task(self, task_id: Any, acting_user_id: Any) -> TaskRead:
        self.require_ids(task_id=task_id, acting_user_id=acting_user_id)
        return await self.fetch_scoped(task_id, acting_user_id)

    async def list_tasks_by_project(self, project_id: Any, acting_user_id: Any) -> List[TaskRead]:
        """Tasks of an owned project, newest first."""
        self.require_ids(project_id=project_id, acting_user_id=acting_user_id)
        return await self.list_where(
            "project_id = ?1 AND " + OWNED_PROJECTS.format("?2"),
            (project_id, acting_user_id),
            "No task found",
        )

    async def list_tasks_by_assignee(self, assigned_to: Any, acting_user_id: Any) -> List[TaskRead]:
        """Tasks assigned to ``assigned_to`` in the caller's projects, newest first."""
        self.require_ids(assigned_to=assigned_to, acting_user_id=acting_user_id)
        return await self.list_where(
            "assigned_to = ?1 AND " + OWNED_PROJECTS.format("?2"),
            (assigned_to, acting_user_id),
            "No task found",
        )

    async def update_task(self, task_id: Any, acting_user_id: Any, updates: Any) -> TaskRead:
        self.require_ids(task_id=task_id, acting_user_id=acting_user_id)
        task = await self.update_scoped(task_id, acting_user_id, updates)
        logger.info("Task updated: %s", task_id)
        return task

    async def delete_task(self, task_id: Any, acting_user_id: Any) -> None:
        self.require_ids(task_id=task_id, acting_user_id=acting_user_id)
        await self.delete_scoped(task_id, acting_user_id)
        logger.info("Task deleted: %s", task_id)
