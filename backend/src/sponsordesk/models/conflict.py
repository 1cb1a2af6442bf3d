"""Persisted conflict records.

Each row is one rule/candidate overlap. Exclusivity conflicts are produced by
the detection workflow; the other types share the record shape and are
written by other parts of the dashboard.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel, Text


class ConflictType(StrEnum):
    EXCLUSIVITY = "EXCLUSIVITY"
    REVISION_LIMIT = "REVISION_LIMIT"
    APPROVAL_SLA = "APPROVAL_SLA"
    PAYMENT_DISPUTE = "PAYMENT_DISPUTE"


class ConflictSeverity(StrEnum):
    WARN = "WARN"
    BLOCK = "BLOCK"


class Conflict(SQLModel, table=True):
    __tablename__ = "conflicts"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    type: ConflictType = Field(index=True)
    severity: ConflictSeverity = Field(index=True)
    new_deal_or_deliverable_id: uuid.UUID = Field(index=True)
    conflicting_rule_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="exclusivity_rules.id",
        index=True,
        ondelete="SET NULL",
    )
    overlap: str = Field(default="{}", sa_column=Column(Text, nullable=False))
    suggested_resolutions: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    auto_resolved: bool = Field(default=False, index=True)

    # Audit trail kept outside the overlap payload
    correlation_id: str | None = None
    proceeded_despite_conflict: bool = False
    acknowledged_by: uuid.UUID | None = None
    acknowledged_at: datetime | None = None
    resolved_by: uuid.UUID | None = None
    resolved_at: datetime | None = None
    detected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
