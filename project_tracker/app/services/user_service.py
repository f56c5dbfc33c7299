"""
Business logic for users.

Users are stored with a PBKDF2 password digest and are only ever
returned through the public ``UserRead`` projection.  A user owns its
own row: every read, update and delete is scoped by
``id = acting user id``, and password changes or account deletion
additionally require the current password.
"""

import logging
from typing import Any, Optional

from ..core.db import RecordStore
from ..core.errors import InvalidCredentialError, ValidationError
from ..core.security import PasswordHasher
from ..core.update_builder import FieldRule, SecretRotation, clean_required
from ..core.validation import (
    PASSWORD_RULES,
    is_non_empty,
    is_strong_password,
    is_valid_email,
    normalize_email,
    strip_text,
)
from ..schemas.user import UserRead
from .base import ScopedEntityService

logger = logging.getLogger(__name__)

CREATE_NAME = FieldRule("name", "name", strip_text, is_non_empty, "Name is required")
CREATE_EMAIL = FieldRule("email", "email", normalize_email, is_valid_email, "Invalid email format")

UPDATE_RULES = (
    FieldRule("name", "name", strip_text, is_non_empty, "Name cannot be empty"),
    FieldRule("email", "email", normalize_email, is_valid_email, "Invalid email format"),
)

PASSWORD_ROTATION = SecretRotation()


class UserService(ScopedEntityService):
    """Registration, login and self-service profile management."""

    table = "users"
    projection = "id, name, email"
    scope = "id = {0} AND id = {1}"
    read_model = UserRead
    label = "User"
    update_rules = UPDATE_RULES
    conflicts = {("email",): ("email", "Email already in use")}

    def __init__(self, store: RecordStore, hasher: PasswordHasher) -> None:
        super().__init__(store)
        self.hasher = hasher

    async def _load_digest(self, user_id: Any, acting_user_id: Any) -> Optional[str]:
        row = (
            await self.execute(
                f"SELECT password_hash FROM users WHERE {self.scope_clause()}",
                (user_id, acting_user_id),
            )
        ).first()
        return row["password_hash"] if row else None

    async def create_user(self, name: Any, email: Any, password: Any) -> UserRead:
        """Register a new user.

        The name is trimmed, the email trimmed and lower-cased, and the
        password must satisfy the strength rules before it is hashed.

        Raises
        ------
        ValidationError
            Missing name, malformed email or weak password.
        ConflictError
            Another user already has this email (``field="email"``).
        """
        name = clean_required(CREATE_NAME, name)
        email = clean_required(CREATE_EMAIL, email)
        if not is_strong_password(password):
            raise ValidationError(PASSWORD_RULES, field="password")

        password_hash = await self.hasher.hash(password)
        result = await self.execute(
            f"INSERT INTO users (name, email, password_hash) VALUES (?1, ?2, ?3) RETURNING {self.projection}",
            (name, email, password_hash),
        )
        user = UserRead(**result.first())
        logger.info("New user registered: %s", user.id)
        return user

    async def authenticate(self, email: Any, password: Any) -> UserRead:
        """Validate credentials and return the user profile.

        Unknown emails and wrong passwords fail the same way so that
        callers cannot tell which emails are registered.
        """
        if not isinstance(email, str) or not isinstance(password, str):
            raise InvalidCredentialError("Invalid credentials")
        email = normalize_email(email)
        row = (
            await self.execute(
                "SELECT id, name, email, password_hash FROM users WHERE email = ?1",
                (email,),
            )
        ).first()
        if row is None:
            logger.warning("Login attempt: user not found")
            raise InvalidCredentialError("Invalid credentials")
        if not await self.hasher.verify(password, row["password_hash"]):
            logger.warning("Login attempt: incorrect password for user %s", row["id"])
            raise InvalidCredentialError("Invalid credentials")
        logger.info("User %s logged in", row["id"])
        return UserRead(id=row["id"], name=row["name"], email=row["email"])

    async def get_user(self, user_id: Any, acting_user_id: Any) -> UserRead:
        self.require_ids(user_id=user_id, acting_user_id=acting_user_id)
        return await self.fetch_scoped(user_id, acting_user_id)

    async def update_user(self, user_id: Any, acting_user_id: Any, updates: Any) -> UserRead:
        """Partially update a user's own profile.

        ``updates`` may contain ``name``, ``email`` and
        ``new_password`` (with ``current_password``).  Other keys are
        ignored.  The current password is checked against the stored
        digest before the new one is hashed.

        Raises
        ------
        ValidationError
            Invalid field, weak new password, missing current password
            or nothing to update.
        InvalidCredentialError
            ``current_password`` is wrong.
        NotFoundError
            The user does not exist, is not the acting user, or was
            deleted while the password was being verified.
        ConflictError
            The new email belongs to another user.
        """
        self.require_ids(user_id=user_id, acting_user_id=acting_user_id)

        async def load_digest() -> Optional[str]:
            return await self._load_digest(user_id, acting_user_id)

        user = await self.update_scoped(
            user_id,
            acting_user_id,
            updates,
            rotation=PASSWORD_ROTATION,
            load_digest=load_digest,
            hasher=self.hasher,
        )
        logger.info("User profile updated: %s", user_id)
        return user

    async def delete_user(self, user_id: Any, acting_user_id: Any, password: Any) -> None:
        """Delete the acting user's account after password verification.

        The user's projects and their tasks are removed with it.
        """
        self.require_ids(user_id=user_id, acting_user_id=acting_user_id)
        if not password or not isinstance(password, str):
            raise ValidationError("Password required for deletion", field="password")

        digest = await self._load_digest(user_id, acting_user_id)
        if digest is None:
            raise self.not_found()
        if not await self.hasher.verify(password, digest):
            logger.warning("Account deletion refused: incorrect password for user %s", user_id)
            raise InvalidCredentialError("Incorrect password", field="password")

        await self.delete_scoped(user_id, acting_user_id)
        logger.info("User account deleted: %s", user_id)
