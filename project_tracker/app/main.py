"""
Main entrypoint for the Project Tracker service layer.

``create_services`` performs the one-time setup a transport layer
needs (logging, record store, migrations, password hasher) and returns
the three entity services wired to the same store::

    services = create_services()
    user = await services.users.create_user("Alice", "alice@example.com", "Passw0rd1")
    ...
    services.close()

Settings come from :mod:`project_tracker.app.core.config` unless an
explicit ``Settings`` instance is passed.
"""

from dataclasses import dataclass
from typing import Optional

from .core.config import Settings, settings as default_settings
from .core.db import RecordStore, create_store
from .core.logging_config import setup_logging
from .core.security import PasswordHasher
from .services.project_service import ProjectService
from .services.task_service import TaskService
from .services.user_service import UserService


@dataclass
class Services:
    """Entity services sharing one record store."""

    store: RecordStore
    users: UserService
    projects: ProjectService
    tasks: TaskService

    def close(self) -> None:
        self.store.close()


def create_services(config: Optional[Settings] = None, *, store: Optional[RecordStore] = None) -> Services:
    """Create and configure the service layer.

    Parameters
    ----------
    config : Settings, optional
        Defaults to the module-level ``settings``.
    store : RecordStore, optional
        Use an existing store instead of building one from ``config``.
        Migrations are not applied to a store passed in.
    """
    config = config or default_settings
    # Initialise logging before anything else so that store setup can
    # already log applied migrations.
    setup_logging(config.log_level, config.log_file)

    store = store or create_store(config)
    hasher = PasswordHasher(config.password_hash_iterations)
    return Services(
        store=store,
        users=UserService(store, hasher),
        projects=ProjectService(store),
        tasks=TaskService(store),
    )
