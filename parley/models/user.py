"""
User account models.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserCreate(BaseModel):
    """Create a user account."""

    username: str = Field(..., min_length=1, max_length=64)
    password_hash: str = Field(..., min_length=1, max_length=255)


class UserAccount(BaseModel):
    """User account stored in the database."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    password_hash: str
    created_at: datetime

    def summary(self) -> UserSummary:
        return UserSummary(id=self.id, username=self.username)


class UserSummary(BaseModel):
    """Public view of a user (search results, member lists)."""

    id: str
    username: str
