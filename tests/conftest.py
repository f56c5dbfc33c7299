import asyncio

import pytest

from project_tracker.app.core.db import RecordStore, init_db
from project_tracker.app.core.security import PasswordHasher
from project_tracker.app.services import ProjectService, TaskService, UserService

# Low cost so the suite stays fast; the digest records the count.
TEST_ITERATIONS = 1_000


def run(coro):
    return asyncio.run(coro)


@pytest.fixture()
def db_path(tmp_path):
    return str(tmp_path / "tracker_test.db")


@pytest.fixture()
def store(db_path):
    store = RecordStore(db_path, pool_size=4, timeout=10.0)
    init_db(store)
    try:
        yield store
    finally:
        store.close()


@pytest.fixture()
def hasher():
    return PasswordHasher(TEST_ITERATIONS)


@pytest.fixture()
def users(store, hasher):
    return UserService(store, hasher)


@pytest.fixture()
def projects(store):
    return ProjectService(store)


@pytest.fixture()
def tasks(store):
    return TaskService(store)


@pytest.fixture()
def alice(users):
    return run(users.create_user("Alice", "alice@example.com", "Passw0rd1"))


@pytest.fixture()
def bob(users):
    return run(users.create_user("Bob", "bob@example.com", "Secr3tPass"))
