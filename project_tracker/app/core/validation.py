"""
Per-field normalizers and predicates.

Normalizers take the raw payload value and return the value to store;
they raise ``TypeError`` when handed something that is not a string so
the update builder can report it against the offending field.
Predicates return ``True`` when a normalized value is acceptable.
"""

import re
from typing import Any, Optional

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

PASSWORD_MIN_LENGTH = 8
PASSWORD_RULES = "Password must be 8+ characters, include an uppercase letter and a number"


def _require_str(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected str, got {type(value).__name__}")
    return value


def strip_text(value: Any) -> str:
    return _require_str(value).strip()


def optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return strip_text(value)


def normalize_email(value: Any) -> str:
    return strip_text(value).lower()


def keep(value: Any) -> Any:
    return value


def is_non_empty(value: Any) -> bool:
    return bool(value)


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


def is_strong_password(password: Any) -> bool:
    """At least 8 characters, one uppercase letter and one digit."""
    if not isinstance(password, str):
        return False
    return (
        len(password) >= PASSWORD_MIN_LENGTH
        and re.search(r"[A-Z]", password) is not None
        and re.search(r"[0-9]", password) is not None
    )
