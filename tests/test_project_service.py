import pytest

from project_tracker.app.core.db import OTHER, QueryResult, StorageError
from project_tracker.app.core.errors import ConflictError, InternalError, NotFoundError, ValidationError
from project_tracker.app.schemas import ProjectRead, ProjectUpdate
from project_tracker.app.services import ProjectService

from .conftest import run


class SpyStore:
    """Records statements instead of running them."""

    def __init__(self):
        self.statements = []

    async def execute(self, sql, args=()):
        self.statements.append((sql, list(args)))
        return QueryResult()


class BrokenStore:
    """Fails every statement the way a damaged database file would."""

    async def execute(self, sql, args=()):
        raise StorageError(OTHER, "disk I/O error")


def test_create_and_get(projects, alice):
    project = run(projects.create_project("  Roadmap ", alice.id, " Q3 goals "))
    assert isinstance(project, ProjectRead)
    assert project.name == "Roadmap"
    assert project.description == "Q3 goals"
    assert project.user_id == alice.id
    assert run(projects.get_project(project.id, alice.id)) == project


def test_create_without_description(projects, alice):
    project = run(projects.create_project("Plain", alice.id))
    assert project.description is None


@pytest.mark.parametrize("name", ["", "   ", None])
def test_create_requires_name(projects, alice, name):
    with pytest.raises(ValidationError) as exc:
        run(projects.create_project(name, alice.id))
    assert exc.value.field == "name"


def test_create_requires_owner_id(projects):
    with pytest.raises(ValidationError):
        run(projects.create_project("Orphan", None))


def test_create_for_missing_owner_is_not_found(projects):
    with pytest.raises(NotFoundError) as exc:
        run(projects.create_project("Orphan", 9999))
    assert exc.value.message == "User not found"


def test_duplicate_name_per_owner_conflicts(projects, alice, bob):
    run(projects.create_project("Shared", alice.id))
    with pytest.raises(ConflictError) as exc:
        run(projects.create_project("Shared", alice.id))
    assert exc.value.field == "name"
    assert exc.value.fields == ("user_id", "name")
    assert exc.value.to_dict()["fields"] == ["user_id", "name"]
    # Another owner may reuse the name.
    assert run(projects.create_project("Shared", bob.id)).user_id == bob.id


def test_rename_to_existing_name_conflicts(projects, alice):
    run(projects.create_project("One", alice.id))
    two = run(projects.create_project("Two", alice.id))
    with pytest.raises(ConflictError) as exc:
        run(projects.update_project(two.id, alice.id, {"name": "One"}))
    assert exc.value.field == "name"
    assert run(projects.get_project(two.id, alice.id)).name == "Two"


def test_update_fields(projects, alice):
    project = run(projects.create_project("Draft", alice.id, "old"))
    updated = run(projects.update_project(project.id, alice.id, {"description": "  new  "}))
    assert updated.name == "Draft"
    assert updated.description == "new"
    updated = run(projects.update_project(project.id, alice.id, ProjectUpdate(name="Final")))
    assert updated.name == "Final"
    assert updated.description == "new"


def test_update_rejects_empty_name(projects, alice):
    project = run(projects.create_project("Keep", alice.id))
    with pytest.raises(ValidationError) as exc:
        run(projects.update_project(project.id, alice.id, {"name": "  "}))
    assert exc.value.message == "Project name cannot be empty"


def test_update_owner_is_not_permitted(projects, alice, bob):
    project = run(projects.create_project("Mine", alice.id))
    with pytest.raises(ValidationError):
        run(projects.update_project(project.id, alice.id, {"user_id": bob.id}))
    assert run(projects.get_project(project.id, alice.id)).user_id == alice.id


def test_ownership_isolation(projects, alice, bob):
    project = run(projects.create_project("Private", alice.id))
    with pytest.raises(NotFoundError):
        run(projects.get_project(project.id, bob.id))
    with pytest.raises(NotFoundError):
        run(projects.update_project(project.id, bob.id, {"name": "Stolen"}))
    with pytest.raises(NotFoundError):
        run(projects.delete_project(project.id, bob.id))
    assert run(projects.get_project(project.id, alice.id)).name == "Private"


def test_delete_twice(projects, alice):
    project = run(projects.create_project("Temp", alice.id))
    run(projects.delete_project(project.id, alice.id))
    with pytest.raises(NotFoundError):
        run(projects.delete_project(project.id, alice.id))
    with pytest.raises(NotFoundError):
        run(projects.update_project(project.id, alice.id, {"name": "Back"}))


def test_list_projects_newest_first(projects, alice, bob):
    first = run(projects.create_project("First", alice.id))
    second = run(projects.create_project("Second", alice.id))
    run(projects.create_project("Other", bob.id))
    assert [p.id for p in run(projects.list_projects(alice.id))] == [second.id, first.id]


def test_list_projects_empty_is_not_found(projects, alice):
    with pytest.raises(NotFoundError):
        run(projects.list_projects(alice.id))


def test_update_statement_shape_and_arguments():
    spy = SpyStore()
    service = ProjectService(spy)
    with pytest.raises(NotFoundError):
        run(service.update_project(3, 8, {"description": "d", "name": "n"}))
    sql, args = spy.statements[0]
    assert sql == (
        "UPDATE projects SET name = ?1, description = ?2 "
        "WHERE id = ?3 AND user_id = ?4 RETURNING id, name, user_id, description"
    )
    assert args == ["n", "d", 3, 8]


def test_delete_statement_always_scoped_by_owner():
    spy = SpyStore()
    service = ProjectService(spy)
    with pytest.raises(NotFoundError):
        run(service.delete_project(3, 8))
    sql, args = spy.statements[0]
    assert "user_id = ?2" in sql
    assert args == [3, 8]


@pytest.mark.parametrize("payload", [{}, {"owner": 1}])
def test_empty_update_never_reaches_store(payload):
    spy = SpyStore()
    with pytest.raises(ValidationError):
        run(ProjectService(spy).update_project(1, 1, payload))
    assert spy.statements == []


def test_storage_failure_is_internal_error():
    with pytest.raises(InternalError) as exc:
        run(ProjectService(BrokenStore()).get_project(1, 1))
    assert not isinstance(exc.value, StorageError)
    assert isinstance(exc.value.__cause__, StorageError)
    assert exc.value.to_dict() == {"code": "INTERNAL_ERROR", "message": "Project storage operation failed"}


def test_closed_store_is_internal_error(store, projects, alice):
    run(projects.create_project("Kept", alice.id))
    store.close()
    with pytest.raises(InternalError):
        run(projects.list_projects(alice.id))


def test_id_beyond_integer_range_is_not_found(projects, alice):
    huge = 2**70
    with pytest.raises(NotFoundError) as exc:
        run(projects.get_project(huge, alice.id))
    assert exc.value.message == "Project not found"
    with pytest.raises(NotFoundError):
        run(projects.delete_project(huge, alice.id))
    with pytest.raises(NotFoundError):
        run(projects.get_project(1, huge))
    with pytest.raises(NotFoundError) as exc:
        run(projects.create_project("Orphan", huge))
    assert exc.value.message == "User not found"
