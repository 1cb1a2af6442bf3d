"""Deal-side tables the conflict engine reads for ownership checks.

Brand, deal and deliverable CRUD lives outside this service; only the
columns the engine needs to scope rules and persist candidates are kept.
"""

import uuid
from datetime import UTC, datetime

from sqlmodel import Field, Relationship, SQLModel


class Brand(SQLModel, table=True):
    __tablename__ = "brands"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(index=True)
    name: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Deal(SQLModel, table=True):
    __tablename__ = "deals"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(index=True)
    brand_id: uuid.UUID | None = Field(default=None, foreign_key="brands.id")
    title: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    brand: Brand | None = Relationship()
    deliverables: list["Deliverable"] = Relationship(back_populates="deal", cascade_delete=True)


class Deliverable(SQLModel, table=True):
    __tablename__ = "deliverables"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    deal_id: uuid.UUID = Field(foreign_key="deals.id", index=True, ondelete="CASCADE")
    category_path: str | None = None
    platform: str
    type: str = "OTHER"
    quantity: int = 1
    region: str | None = None
    scheduled_at: datetime | None = None
    posted_at: datetime | None = None
    status: str = "DRAFT"  # DRAFT | SCHEDULED | POSTED | CANCELLED
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    deal: Deal | None = Relationship(back_populates="deliverables")
