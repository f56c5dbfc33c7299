import asyncio

import pytest

from project_tracker.app.core.errors import (
    ConflictError,
    InvalidCredentialError,
    NotFoundError,
    ValidationError,
)
from project_tracker.app.schemas import UserRead, UserUpdate

from .conftest import run


def test_register_normalizes_and_hides_password(users):
    user = run(users.create_user("  Alice ", " Alice@Example.com ", "Passw0rd1"))
    assert isinstance(user, UserRead)
    assert user.name == "Alice"
    assert user.email == "alice@example.com"

    fetched = run(users.get_user(user.id, user.id))
    assert fetched.model_dump() == {"id": user.id, "name": "Alice", "email": "alice@example.com"}
    assert "password" not in fetched.model_dump()
    assert "password_hash" not in fetched.model_dump()


def test_password_is_stored_hashed(users, store, alice):
    row = store.execute_sync("SELECT password_hash FROM users WHERE id = ?1", (alice.id,)).first()
    assert row["password_hash"] != "Passw0rd1"
    assert row["password_hash"].startswith("pbkdf2_sha256$")


@pytest.mark.parametrize(
    "name, email, password, field",
    [
        ("", "a@example.com", "Passw0rd1", "name"),
        (None, "a@example.com", "Passw0rd1", "name"),
        ("A", "not-an-email", "Passw0rd1", "email"),
        ("A", None, "Passw0rd1", "email"),
        ("A", "a@example.com", "short1A", "password"),
        ("A", "a@example.com", "alllowercase1", "password"),
        ("A", "a@example.com", "NoDigitsHere", "password"),
        ("A", "a@example.com", None, "password"),
    ],
)
def test_register_validation(users, name, email, password, field):
    with pytest.raises(ValidationError) as exc:
        run(users.create_user(name, email, password))
    assert exc.value.field == field


def test_register_duplicate_email_conflicts(users, alice):
    with pytest.raises(ConflictError) as exc:
        run(users.create_user("Other", "  ALICE@example.com", "Passw0rd1"))
    assert exc.value.field == "email"


def test_concurrent_registration_same_email(users):
    async def register_twice():
        return await asyncio.gather(
            users.create_user("One", "same@example.com", "Passw0rd1"),
            users.create_user("Two", "SAME@example.com ", "Passw0rd2"),
            return_exceptions=True,
        )

    results = run(register_twice())
    successes = [r for r in results if isinstance(r, UserRead)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 1
    assert conflicts[0].field == "email"


def test_login(users, alice):
    user = run(users.authenticate(" ALICE@example.com", "Passw0rd1"))
    assert user == alice


@pytest.mark.parametrize(
    "email, password",
    [("alice@example.com", "wrong"), ("nobody@example.com", "Passw0rd1"), (None, "x")],
)
def test_login_failures_look_the_same(users, alice, email, password):
    with pytest.raises(InvalidCredentialError) as exc:
        run(users.authenticate(email, password))
    assert exc.value.message == "Invalid credentials"


def test_get_user_of_someone_else_is_not_found(users, alice, bob):
    with pytest.raises(NotFoundError):
        run(users.get_user(alice.id, bob.id))


def test_get_user_requires_ids(users):
    with pytest.raises(ValidationError):
        run(users.get_user(None, 1))


def test_update_name_and_email(users, alice):
    updated = run(users.update_user(alice.id, alice.id, {"name": " Alicia ", "email": "ALICIA@example.com"}))
    assert updated.name == "Alicia"
    assert updated.email == "alicia@example.com"
    assert run(users.get_user(alice.id, alice.id)) == updated


def test_update_accepts_pydantic_payload(users, alice):
    updated = run(users.update_user(alice.id, alice.id, UserUpdate(name="Al")))
    assert updated.name == "Al"
    assert updated.email == "alice@example.com"


def test_update_email_conflict(users, alice, bob):
    with pytest.raises(ConflictError) as exc:
        run(users.update_user(bob.id, bob.id, {"email": "alice@example.com"}))
    assert exc.value.field == "email"
    assert run(users.get_user(bob.id, bob.id)).email == "bob@example.com"


@pytest.mark.parametrize("payload", [{}, {"foo": "bar"}, {"password_hash": "x"}])
def test_update_without_permitted_fields(users, alice, payload):
    with pytest.raises(ValidationError) as exc:
        run(users.update_user(alice.id, alice.id, payload))
    assert exc.value.message == "No fields to update"


def test_update_other_user_is_not_found(users, alice, bob):
    with pytest.raises(NotFoundError):
        run(users.update_user(alice.id, bob.id, {"name": "Mallory"}))
    assert run(users.get_user(alice.id, alice.id)).name == "Alice"


def test_password_rotation(users, alice):
    run(
        users.update_user(
            alice.id,
            alice.id,
            {"new_password": "N3wPassword", "current_password": "Passw0rd1"},
        )
    )
    assert run(users.authenticate("alice@example.com", "N3wPassword")).id == alice.id
    with pytest.raises(InvalidCredentialError):
        run(users.authenticate("alice@example.com", "Passw0rd1"))


def test_password_rotation_with_wrong_current_password_keeps_hash(users, store, alice):
    before = store.execute_sync("SELECT password_hash FROM users WHERE id = ?1", (alice.id,)).first()
    with pytest.raises(InvalidCredentialError):
        run(
            users.update_user(
                alice.id,
                alice.id,
                {"name": "Changed", "new_password": "N3wPassword", "current_password": "wrong"},
            )
        )
    after = store.execute_sync("SELECT password_hash FROM users WHERE id = ?1", (alice.id,)).first()
    assert before == after
    user = run(users.authenticate("alice@example.com", "Passw0rd1"))
    assert user.name == "Alice"


def test_password_rotation_for_other_user_is_not_found(users, alice, bob):
    with pytest.raises(NotFoundError):
        run(
            users.update_user(
                alice.id,
                bob.id,
                {"new_password": "N3wPassword", "current_password": "Secr3tPass"},
            )
        )


def test_delete_requires_password(users, alice):
    with pytest.raises(ValidationError):
        run(users.delete_user(alice.id, alice.id, ""))
    with pytest.raises(InvalidCredentialError):
        run(users.delete_user(alice.id, alice.id, "wrong"))
    assert run(users.get_user(alice.id, alice.id)).id == alice.id


def test_delete_twice(users, alice):
    assert run(users.delete_user(alice.id, alice.id, "Passw0rd1")) is None
    with pytest.raises(NotFoundError):
        run(users.delete_user(alice.id, alice.id, "Passw0rd1"))
    with pytest.raises(NotFoundError):
        run(users.update_user(alice.id, alice.id, {"name": "Ghost"}))


def test_delete_other_user_is_not_found(users, alice, bob):
    with pytest.raises(NotFoundError):
        run(users.delete_user(alice.id, bob.id, "Passw0rd1"))


def test_delete_cascades_projects_and_tasks(users, projects, tasks, store, alice):
    project = run(projects.create_project("Home", alice.id))
    run(tasks.create_task(project.id, alice.id, "Paint"))
    run(users.delete_user(alice.id, alice.id, "Passw0rd1"))
    assert store.execute_sync("SELECT COUNT(*) AS n FROM projects").first()["n"] == 0
    assert store.execute_sync("SELECT COUNT(*) AS n FROM tasks").first()["n"] == 0


def test_user_deleted_during_password_rotation_is_not_found(monkeypatch, users, store, alice):
    original = users.hasher.verify

    async def verify(secret, digest):
        ok = await original(secret, digest)
        # The account disappears after verification, before the UPDATE runs.
        store.execute_sync("DELETE FROM users WHERE id = ?1", (alice.id,))
        return ok

    monkeypatch.setattr(users.hasher, "verify", verify)
    with pytest.raises(NotFoundError) as exc:
        run(
            users.update_user(
                alice.id,
                alice.id,
                {"new_password": "N3wPassword", "current_password": "Passw0rd1"},
            )
        )
    assert exc.value.message == "User not found"
