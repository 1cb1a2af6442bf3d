"""Request-level idempotency records keyed by (user, endpoint, key)."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Column, Field, SQLModel, Text


class IdempotencyKey(SQLModel, table=True):
    __tablename__ = "idempotency_keys"
    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", "key", name="idempotency_user_endpoint_key_uidx"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(index=True)
    endpoint: str
    key: str
    request_hash: str
    state: str = "IN_PROGRESS"  # IN_PROGRESS | COMPLETED
    response_status: int | None = None
    response_body: str | None = Field(default=None, sa_column=Column(Text))
    response_content_type: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime = Field(index=True)
