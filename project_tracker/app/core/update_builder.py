"""
Partial-update builder shared by every entity service.

A service declares the fields a caller may change as an ordered tuple
of :class:`FieldRule`.  :func:`build_update` walks that tuple (not the
payload) so the column list and placeholder numbering of the resulting
statement depend only on which fields are present, never on payload
order or on caller supplied names.  Values are always passed as
parameters; the only text interpolated into SQL comes from the
declared rules and the service's own table description.

Password changes go through :class:`SecretRotation`: the current
secret is re-verified against the stored digest before the new one is
hashed and added as the last assignment.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel

from .errors import InvalidCredentialError, NotFoundError, ValidationError
from .validation import is_strong_password, keep


@dataclass(frozen=True)
class FieldRule:
    """A field that may appear in an update payload.

    Attributes
    ----------
    name : str
        Payload key.
    column : str
        Column written when the key is present.
    normalize : callable
        Applied first; raising ``TypeError`` marks the value invalid.
    check : callable, optional
        Predicate on the normalized value.
    message : str
        Reason reported when ``check`` fails.
    """

    name: str
    column: str
    normalize: Callable[[Any], Any] = keep
    check: Optional[Callable[[Any], bool]] = None
    message: str = "invalid value"


@dataclass(frozen=True)
class SecretRotation:
    """Describes how a secret column is replaced."""

    new_key: str = "new_password"
    current_key: str = "current_password"
    column: str = "password_hash"
    weak_message: str = "New password is too weak"
    missing_current_message: str = "Current password required to set new password"
    mismatch_message: str = "Current password is incorrect"
    not_found_message: str = "User not found"


@dataclass
class UpdateCommand:
    """Ordered ``column = ?n`` assignments and their parameter values."""

    assignments: List[Tuple[str, int]] = field(default_factory=list)
    values: List[Any] = field(default_factory=list)

    def add(self, column: str, value: Any) -> None:
        self.values.append(value)
        self.assignments.append((column, len(self.values)))

    @property
    def columns(self) -> List[str]:
        return [column for column, _ in self.assignments]

    @property
    def next_position(self) -> int:
        return len(self.values) + 1

    def set_clause(self) -> str:
        return ", ".join(f"{column} = ?{position}" for column, position in self.assignments)

    def statement(self, table: str, predicate: str, returning: str) -> str:
        """Render the full ``UPDATE`` statement.

        ``predicate`` uses ``{0}``, ``{1}``, ... for the row-identifying
        arguments; they are numbered after the value placeholders.
        """
        first = self.next_position
        key_positions = [f"?{first + offset}" for offset in range(predicate.count("{"))]
        where = predicate.format(*key_positions)
        return f"UPDATE {table} SET {self.set_clause()} WHERE {where} RETURNING {returning}"

    def arguments(self, *key_args: Any) -> List[Any]:
        return [*self.values, *key_args]


def as_payload(updates: Any) -> Dict[str, Any]:
    """Return the sparse payload as a plain dict.

    Pydantic models contribute only the fields the caller explicitly
    set, so ``UserUpdate(name="x")`` does not also clear ``email``.
    """
    if updates is None:
        return {}
    if isinstance(updates, BaseModel):
        return updates.model_dump(exclude_unset=True)
    if isinstance(updates, Mapping):
        return dict(updates)
    raise ValidationError("Update payload must be a mapping")


def clean_field(rule: FieldRule, value: Any) -> Any:
    """Normalize and check one value, raising ``ValidationError``."""
    try:
        normalized = rule.normalize(value)
    except TypeError:
        raise ValidationError(f"{rule.name} must be a string", field=rule.name) from None
    if rule.check is not None and not rule.check(normalized):
        raise ValidationError(rule.message, field=rule.name)
    return normalized


def clean_required(rule: FieldRule, value: Any) -> Any:
    """Like :func:`clean_field`, but a missing value fails ``rule.check``."""
    if value is None:
        raise ValidationError(rule.message, field=rule.name)
    return clean_field(rule, value)


def clean_fields(rules: Sequence[FieldRule], payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Clean every present permitted field, keyed by column."""
    return {
        rule.column: clean_field(rule, payload[rule.name])
        for rule in rules
        if rule.name in payload
    }


async def build_update(
    rules: Sequence[FieldRule],
    updates: Any,
    *,
    rotation: Optional[SecretRotation] = None,
    load_digest: Optional[Callable[[], Awaitable[Optional[str]]]] = None,
    hasher: Any = None,
) -> UpdateCommand:
    """Validate a sparse payload and assemble an :class:`UpdateCommand`.

    Parameters
    ----------
    rules : sequence of FieldRule
        Permitted fields in declaration order.
    updates : mapping or pydantic model
        Sparse payload; unknown keys are ignored.
    rotation : SecretRotation, optional
        Enables the secret-rotation sub-contract.
    load_digest : coroutine function, optional
        Returns the stored digest of the target row, or ``None`` if the
        row no longer exists.  Required with ``rotation``.
    hasher : PasswordHasher, optional
        Used to verify the current secret and hash the new one.
        Required with ``rotation``.

    Raises
    ------
    ValidationError
        A present field is invalid, or nothing permitted is present.
        Raised before any call to ``load_digest`` or ``hasher``.
    NotFoundError
        ``load_digest`` found no row.
    InvalidCredentialError
        The current secret does not match the stored digest.
    """
    payload = as_payload(updates)
    command = UpdateCommand()
    for column, value in clean_fields(rules, payload).items():
        command.add(column, value)

    rotating = rotation is not None and rotation.new_key in payload
    if not command.assignments and not rotating:
        raise ValidationError("No fields to update")

    if rotating:
        new_secret = payload[rotation.new_key]
        if not is_strong_password(new_secret):
            raise ValidationError(rotation.weak_message, field=rotation.new_key)
        current_secret = payload.get(rotation.current_key)
        if not current_secret or not isinstance(current_secret, str):
            raise ValidationError(rotation.missing_current_message, field=rotation.current_key)
        if load_digest is None or hasher is None:
            raise TypeError("secret rotation requires load_digest and hasher")
        digest = await load_digest()
        if digest is None:
            raise NotFoundError(rotation.not_found_message)
        if not await hasher.verify(current_secret, digest):
            raise InvalidCredentialError(rotation.mismatch_message, field=rotation.current_key)
        command.add(rotation.column, await hasher.hash(new_secret))

    return command
