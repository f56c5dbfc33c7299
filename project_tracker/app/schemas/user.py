"""
Pydantic models for user data.

``UserRead`` is the public projection of a user: it never carries the
password hash.  ``UserUpdate`` is an optional typed form of the sparse
update payload; only fields explicitly set on it are applied.
"""

from typing import Optional

from pydantic import BaseModel, Field


class UserRead(BaseModel):
    """Schema for reading a user."""

    id: int
    name: str = Field(..., examples=["Alice"])
    email: str = Field(..., examples=["alice@example.com"])

    model_config = {
        "from_attributes": True,
    }


class UserUpdate(BaseModel):
    """Sparse update for a user profile.

    ``new_password`` requires ``current_password``; the current value is
    re-verified before the new one is stored.
    """

    name: Optional[str] = None
    email: Optional[str] = None
    new_password: Optional[str] = None
    current_password: Optional[str] = None
