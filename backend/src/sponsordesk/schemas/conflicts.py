"""Value types and response models for exclusivity conflict detection."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from sponsordesk.models.conflict import ConflictSeverity, ConflictType
from sponsordesk.models.exclusivity import ExclusivityScope, Region
from sponsordesk.schemas.deliverables import DeliverableOut

OVERLAP_FACTS_VERSION = 1


class CategoryRelationship(StrEnum):
    EXACT = "EXACT"
    DESCENDANT = "DESCENDANT"


class WindowContainment(StrEnum):
    INTERIOR = "INTERIOR"
    BOUNDARY = "BOUNDARY"


class WorkflowState(StrEnum):
    NO_CONFLICT = "NO_CONFLICT"
    CONFLICTS_DETECTED_PENDING_ACK = "CONFLICTS_DETECTED_PENDING_ACK"
    CONFLICTS_ACKNOWLEDGED = "CONFLICTS_ACKNOWLEDGED"
    RESOLVED = "RESOLVED"


class ConflictStatusFilter(StrEnum):
    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"
    ALL = "ALL"


# --- Detection inputs and match facts ---


class CandidateAsset(BaseModel):
    """A deliverable being checked before it is committed."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    deal_id: uuid.UUID
    platform: str
    category: str | None = None
    region: Region | None = None
    scheduled_at: datetime | None = None


class _Facts(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class CategoryFacts(_Facts):
    candidate: str
    rule: str
    scope: ExclusivityScope
    relationship: CategoryRelationship


class WindowFacts(_Facts):
    scheduled_on: date
    start_date: date
    end_date: date
    containment: WindowContainment


class PlatformFacts(_Facts):
    candidate: str
    rule: list[str]
    matched: list[str]


class RegionFacts(_Facts):
    candidate: Region | None
    rule: list[str]
    restricted: bool


class OverlapFacts(_Facts):
    """Why a rule matched a candidate. Serialized into ``Conflict.overlap``."""

    version: Literal[1] = OVERLAP_FACTS_VERSION
    rule_id: uuid.UUID
    category: CategoryFacts
    window: WindowFacts
    platforms: PlatformFacts
    regions: RegionFacts
    correlation_id: str | None = None
    detected_at: datetime


# --- Responses ---


class ConflictOut(BaseModel):
    id: uuid.UUID
    type: ConflictType
    severity: ConflictSeverity
    overlap: dict[str, Any]
    suggested_resolutions: list[str]
    auto_resolved: bool
    conflicting_rule_id: uuid.UUID | None
    new_deal_or_deliverable_id: uuid.UUID
    correlation_id: str | None = None
    proceeded_despite_conflict: bool = False
    acknowledged_by: uuid.UUID | None = None
    acknowledged_at: datetime | None = None
    resolved_by: uuid.UUID | None = None
    resolved_at: datetime | None = None
    detected_at: datetime


class ConflictListItem(ConflictOut):
    target_deal_id: uuid.UUID | None = None
    target_deal_title: str | None = None
    target_brand_name: str | None = None
    target_deliverable_id: uuid.UUID | None = None
    conflicting_rule_deal_id: uuid.UUID | None = None
    conflicting_rule_deal_title: str | None = None
    conflicting_rule_brand_name: str | None = None


class ConflictsSummary(BaseModel):
    active_count: int
    by_severity: dict[ConflictSeverity, int]


class DetectionResult(BaseModel):
    state: WorkflowState
    created: DeliverableOut | None
    conflicts: list[ConflictOut]
    requires_acknowledgement: bool
    proceeded_despite_conflict: bool
