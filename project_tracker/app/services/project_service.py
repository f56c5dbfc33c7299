"""
Business logic for projects.

A project belongs to exactly one user for its whole life.  Names are
unique per owner; the database enforces that and a violation is
reported as ``ConflictError`` on the ``name`` field.  Owner existence
on create is left to the foreign key.
"""

import logging
from typing import Any, List, Optional

from ..core.update_builder import FieldRule, clean_field, clean_required
from ..core.validation import is_non_empty, optional_text, strip_text
from ..schemas.project import ProjectRead
from .base import ScopedEntityService

logger = logging.getLogger(__name__)

CREATE_NAME = FieldRule("name", "name", strip_text, is_non_empty, "Project name is required")
DESCRIPTION = FieldRule("description", "description", optional_text)

UPDATE_RULES = (
    FieldRule("name", "name", strip_text, is_non_empty, "Project name cannot be empty"),
    DESCRIPTION,
)


class ProjectService(ScopedEntityService):
    """Create, read, update and delete projects owned by the caller."""

    table = "projects"
    projection = "id, name, user_id, description"
    scope = "id = {0} AND user_id = {1}"
    read_model = ProjectRead
    label = "Project"
    update_rules = UPDATE_RULES
    conflicts = {
        ("user_id", "name"): ("name", "Project name already exists for this user"),
    }

    async def create_project(self, name: Any, user_id: Any, description: Optional[str] = None) -> ProjectRead:
        """Create a project owned by ``user_id``.

        Raises
        ------
        ValidationError
            Missing name or owner id.
        NotFoundError
            The owner does not exist.
        ConflictError
            The owner already has a project with this name.
        """
        name = clean_required(CREATE_NAME, name)
        self.require_ids(user_id=user_id)
        description = clean_field(DESCRIPTION, description)

        result = await self.execute(
            f"INSERT INTO projects (name, user_id, description) VALUES (?1, ?2, ?3) RETURNING {self.projection}",
            (name, user_id, description),
            missing_reference="User not found",
        )
        project = ProjectRead(**result.first())
        logger.info("Project %s created for user %s", project.id, user_id)
        return project

    async def get_project(self, project_id: Any, acting_user_id: Any) -> ProjectRead:
        self.require_ids(project_id=project_id, acting_user_id=acting_user_id)
        project = await self.fetch_scoped(project_id, acting_user_id)
        logger.info("Project retrieved: %s", project_id)
        return project

    async def list_projects(self, acting_user_id: Any) -> List[ProjectRead]:
        """Return the caller's projects, most recently created first."""
        self.require_ids(acting_user_id=acting_user_id)
        return await self.list_where("user_id = ?1", (acting_user_id,), "No project found")

    async def update_project(self, project_id: Any, acting_user_id: Any, updates: Any) -> ProjectRead:
        """Update ``name`` and/or ``description`` of an owned project."""
        self.require_ids(project_id=project_id, acting_user_id=acting_user_id)
        project = await self.update_scoped(project_id, acting_user_id, updates)
        logger.info("Project updated: %s", project_id)
        return project

    async def delete_project(self, project_id: Any, acting_user_id: Any) -> None:
        """Delete an owned project together with its tasks."""
        self.require_ids(project_id=project_id, acting_user_id=acting_user_id)
        await self.delete_scoped(project_id, acting_user_id)
        logger.info("Project deleted: %s", project_id)
