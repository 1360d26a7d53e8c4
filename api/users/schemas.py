"""
Users API schemas (request/response models) and the typed table row.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

UserRole = Literal["user", "admin", "moderator"]

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserRow(BaseModel):
    id: int
    email: str
    name: str
    role: str
    metadata: str | None = None
    created_at: int
    updated_at: int
    deleted_at: int | None = None


class UserRecord(BaseModel):
    """Write payload for the `users` table. Unknown columns are rejected."""

    model_config = ConfigDict(extra="forbid")

    email: str | None = None
    name: str | None = None
    role: UserRole | None = None
    metadata: str | None = None
    created_at: int | None = None
    updated_at: int | None = None
    deleted_at: int | None = None


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., min_length=3, max_length=320, pattern=_EMAIL_PATTERN)
    name: str = Field(..., min_length=1, max_length=200)
    role: UserRole = "user"
    metadata: dict[str, Any] | None = None


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str | None = Field(default=None, min_length=3, max_length=320, pattern=_EMAIL_PATTERN)
    name: str | None = Field(default=None, min_length=1, max_length=200)
    role: UserRole | None = None
    metadata: dict[str, Any] | None = None


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    role: str
    metadata: dict[str, Any] | None = None
    created_at: int
    updated_at: int


class UserListResponse(BaseModel):
    users: list[UserResponse]
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool
