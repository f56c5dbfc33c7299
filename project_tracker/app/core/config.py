"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables, so no ``pydantic_settings`` dependency is
needed.  Defaults are provided for all fields.  Tests and embedding
applications may also construct ``Settings`` explicitly and pass it
to :func:`project_tracker.app.core.db.create_store`.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Project Tracker")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: Optional[str] = os.getenv("LOG_FILE") or None

    # Path to the SQLite database file.  Relative paths are resolved
    # against the project root by the ``db`` module; ``:memory:`` keeps
    # everything in a single pooled connection.
    database_url: str = os.getenv("DATABASE_URL", "project_tracker.db")

    # Upper bound on simultaneously open store connections.
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "10"))

    # Seconds a writer waits on a locked database before failing.
    db_timeout: float = float(os.getenv("DB_TIMEOUT", "30"))

    password_hash_iterations: int = int(os.getenv("PASSWORD_HASH_ITERATIONS", "100000"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Because the dataclass
# computes values at class definition time, environment variables
# should be set before importing this module.
settings = Settings()
