"""
Domain error taxonomy.

Services raise these instead of bare ``ValueError`` so that a
transport layer can map each failure to a response by its ``code``
without parsing messages.  None of them are retried by the services.
"""

from typing import Any, Dict, Optional, Tuple


class ServiceError(Exception):
    """Base class for all errors raised by the service layer."""

    code = "SERVICE_ERROR"

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.field is not None:
            data["field"] = self.field
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, field={self.field!r})"


class ValidationError(ServiceError):
    """Missing, empty or malformed input; the caller must correct it."""

    code = "VALIDATION_ERROR"


class NotFoundError(ServiceError):
    """Row is absent or not owned by the acting user."""

    code = "NOT_FOUND"


class ConflictError(ServiceError):
    """A uniqueness constraint rejected the write.

    ``field`` is the payload field to correct; ``fields`` lists every
    column of the violated constraint, e.g. ``("user_id", "name")``.
    """

    code = "CONFLICT"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        fields: Tuple[str, ...] = (),
    ) -> None:
        super().__init__(message, field=field)
        self.fields = tuple(fields)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.fields:
            data["fields"] = list(self.fields)
        return data


class InvalidCredentialError(ServiceError):
    """Secret verification failed."""

    code = "INVALID_CREDENTIALS"


class InternalError(ServiceError):
    """Unexpected storage or hashing failure."""

    code = "INTERNAL_ERROR"
