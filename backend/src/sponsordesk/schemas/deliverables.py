"""Request and response models for deliverable create/update."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator

from sponsordesk.models.exclusivity import Region


class DeliverablePlatform(StrEnum):
    INSTAGRAM = "INSTAGRAM"
    YOUTUBE = "YOUTUBE"
    TIKTOK = "TIKTOK"
    OTHER = "OTHER"


class DeliverableType(StrEnum):
    REEL = "REEL"
    POST = "POST"
    STORY = "STORY"
    SHORT = "SHORT"
    VIDEO = "VIDEO"
    OTHER = "OTHER"


class DeliverableStatus(StrEnum):
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    POSTED = "POSTED"
    CANCELLED = "CANCELLED"


class DeliverableCreate(BaseModel):
    deal_id: uuid.UUID
    deliverable_id: uuid.UUID | None = None
    conflict_session_id: str | None = Field(default=None, max_length=100)
    acknowledge_conflicts: bool = False
    category_path: str | None = Field(default=None, max_length=200)
    platform: DeliverablePlatform
    type: DeliverableType = DeliverableType.OTHER
    quantity: int = Field(default=1, gt=0)
    region: Region | None = None
    # Kept as text: an unparseable date skips detection instead of failing the request
    scheduled_at: str | None = None
    status: DeliverableStatus = DeliverableStatus.DRAFT


class DeliverableUpdate(BaseModel):
    conflict_session_id: str | None = Field(default=None, max_length=100)
    acknowledge_conflicts: bool = False
    category_path: str | None = Field(default=None, max_length=200)
    platform: DeliverablePlatform | None = None
    type: DeliverableType | None = None
    quantity: int | None = Field(default=None, gt=0)
    region: Region | None = None
    scheduled_at: str | None = None
    status: DeliverableStatus | None = None

    @model_validator(mode="after")
    def _require_a_field(self) -> "DeliverableUpdate":
        if not self.model_fields_set - {"conflict_session_id", "acknowledge_conflicts"}:
            raise ValueError("At least one field must be provided for update")
        return self


class DeliverableOut(BaseModel):
    id: uuid.UUID
    deal_id: uuid.UUID
    category_path: str | None
    platform: str
    type: str
    quantity: int
    region: str | None
    scheduled_at: datetime | None
    status: str
    created_at: datetime
    updated_at: datetime
