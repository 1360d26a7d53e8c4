"""
Items API schemas (request/response models) and the typed table row.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ItemStatus = Literal["active", "inactive", "archived"]


class ItemRow(BaseModel):
    """One row of the `items` table as stored (JSON fields still encoded)."""

    id: int
    user_id: int
    title: str
    description: str | None = None
    status: str
    tags: str | None = None
    metadata: str | None = None
    created_at: int
    updated_at: int
    deleted_at: int | None = None


class ItemRecord(BaseModel):
    """Write payload for the `items` table. Unknown columns are rejected."""

    model_config = ConfigDict(extra="forbid")

    user_id: int | None = None
    title: str | None = None
    description: str | None = None
    status: ItemStatus | None = None
    tags: str | None = None
    metadata: str | None = None
    created_at: int | None = None
    updated_at: int | None = None
    deleted_at: int | None = None


class CreateItemRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: int = Field(..., ge=1)
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    status: ItemStatus = "active"
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


class UpdateItemRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    status: ItemStatus | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


class ItemResponse(BaseModel):
    id: int
    user_id: int
    title: str
    description: str | None = None
    status: str
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None
    created_at: int
    updated_at: int


class ItemListResponse(BaseModel):
    items: list[ItemResponse]
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool
