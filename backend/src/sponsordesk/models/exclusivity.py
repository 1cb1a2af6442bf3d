"""Exclusivity rules attached to a deal.

A rule forbids competing content in a category, on a set of platforms and
regions, for a calendar window. Rules are replaced wholesale when the owning
deal is edited and are never patched in place.
"""

from __future__ import annotations

import uuid
from datetime import date
from enum import StrEnum

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel, Text


class ExclusivityScope(StrEnum):
    EXACT_CATEGORY = "EXACT_CATEGORY"
    PARENT_CATEGORY = "PARENT_CATEGORY"


class Platform(StrEnum):
    INSTAGRAM = "INSTAGRAM"
    YOUTUBE = "YOUTUBE"
    TIKTOK = "TIKTOK"


class Region(StrEnum):
    US = "US"
    IN = "IN"
    GLOBAL = "GLOBAL"


class ExclusivityRule(SQLModel, table=True):
    __tablename__ = "exclusivity_rules"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    deal_id: uuid.UUID = Field(foreign_key="deals.id", index=True, ondelete="CASCADE")
    category_path: str
    scope: ExclusivityScope
    start_date: date
    end_date: date
    platforms: list[str] = Field(sa_column=Column(JSON, nullable=False))
    regions: list[str] = Field(
        default_factory=lambda: [Region.GLOBAL.value],
        sa_column=Column(JSON, nullable=False),
    )
    notes: str | None = Field(default=None, sa_column=Column(Text))
