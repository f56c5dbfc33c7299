"""Pydantic models for projects."""

from typing import Optional

from pydantic import BaseModel, Field


class ProjectRead(BaseModel):
    """Public projection of a project."""

    id: int
    name: str = Field(..., examples=["Website relaunch"])
    user_id: int
    description: Optional[str] = None

    model_config = {
        "from_attributes": True,
    }


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
