"""Request and response models for replacing a deal's exclusivity rules."""

from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field, model_validator

from sponsordesk.models.exclusivity import ExclusivityScope, Platform, Region


class ExclusivityRuleIn(BaseModel):
    category_path: str = Field(min_length=1, max_length=200)
    scope: ExclusivityScope
    start_date: date
    end_date: date
    platforms: list[Platform] = Field(min_length=1, max_length=3)
    regions: list[Region] = Field(default_factory=lambda: [Region.GLOBAL], min_length=1, max_length=3)
    notes: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _check_window(self) -> "ExclusivityRuleIn":
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        if not self.category_path.strip():
            raise ValueError("Category path must not be blank")
        return self


class ExclusivityRulesReplace(BaseModel):
    rules: list[ExclusivityRuleIn] = Field(default_factory=list)


class ExclusivityRuleOut(BaseModel):
    id: uuid.UUID
    deal_id: uuid.UUID
    category_path: str
    scope: ExclusivityScope
    start_date: date
    end_date: date
    platforms: list[str]
    regions: list[str]
    notes: str | None
