"""Request-level idempotency for mutating endpoints.

A client sends ``X-Idempotency-Key`` with a write. The first request claims
the key and its response is stored; an identical retry replays the stored
response instead of running the write again, so no duplicate deliverable or
conflict rows appear.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from fastapi import HTTPException
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from sponsordesk.config import settings
from sponsordesk.models.idempotency import IdempotencyKey

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "X-Idempotency-Key"
REPLAY_HEADER = "X-Idempotency-Replayed"

STATE_IN_PROGRESS = "IN_PROGRESS"
STATE_COMPLETED = "COMPLETED"

_JSON_CONTENT_TYPE = "application/json"


class IdempotencyConflictError(Exception):
    def __init__(self, code: str, message: str, retry_after: int | None = None) -> None:
        self.code = code
        self.retry_after = retry_after
        super().__init__(message)


def request_hash(payload: BaseModel) -> str:
    """SHA-256 of the canonical JSON form of a validated request body."""
    canonical = json.dumps(payload.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands datetimes back without tzinfo
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class IdempotencyGuard:
    """Claims, completes and releases one (user, endpoint, key) record."""

    def __init__(
        self,
        session: Session,
        user_id: uuid.UUID,
        endpoint: str,
        key: str,
        ttl: timedelta | None = None,
    ) -> None:
        self.session = session
        self.user_id = user_id
        self.endpoint = endpoint
        self.key = key
        self.ttl = ttl or timedelta(hours=settings.idempotency_ttl_hours)

    def _find(self) -> IdempotencyKey | None:
        return self.session.exec(
            select(IdempotencyKey).where(
                IdempotencyKey.user_id == self.user_id,
                IdempotencyKey.endpoint == self.endpoint,
                IdempotencyKey.key == self.key,
            )
        ).first()

    def _insert(self, digest: str, now: datetime) -> IdempotencyKey | None:
        record = IdempotencyKey(
            user_id=self.user_id,
            endpoint=self.endpoint,
            key=self.key,
            request_hash=digest,
            state=STATE_IN_PROGRESS,
            expires_at=now + self.ttl,
        )
        self.session.add(record)
        try:
            self.session.commit()
        except IntegrityError:
            # A concurrent request claimed the same key first
            self.session.rollback()
            return None
        self.session.refresh(record)
        return record

    def claim(self, digest: str) -> IdempotencyKey | Response:
        """Claim the key for a new request, or return the stored response to replay.

        Raises ``IdempotencyConflictError`` for a reused key with a different
        payload or while the original request is still running.
        """
        now = datetime.now(UTC)
        existing = self._find()
        if existing is not None and _as_utc(existing.expires_at) <= now:
            logger.info("Idempotency key %s expired, reclaiming", self.key)
            self.session.delete(existing)
            self.session.commit()
            existing = None

        if existing is None:
            record = self._insert(digest, now)
            if record is not None:
                return record
            existing = self._find()
            if existing is None:
                raise IdempotencyConflictError(
                    "IDEMPOTENCY_RECORD_NOT_FOUND",
                    "Previous idempotency state expired. Retry with a new key.",
                )

        if existing.request_hash != digest:
            raise IdempotencyConflictError(
                "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
                "Idempotency key was already used with a different request body.",
            )

        if existing.state == STATE_COMPLETED and existing.response_status is not None:
            logger.info("Replaying stored response for idempotency key %s", self.key)
            return Response(
                content=existing.response_body or "",
                status_code=existing.response_status,
                media_type=existing.response_content_type or _JSON_CONTENT_TYPE,
                headers={REPLAY_HEADER: "1"},
            )

        raise IdempotencyConflictError(
            "IDEMPOTENCY_REQUEST_IN_PROGRESS",
            "Matching request is already processing. Retry shortly.",
            retry_after=2,
        )

    def complete(self, record: IdempotencyKey, response: Response) -> None:
        now = datetime.now(UTC)
        row = self.session.get(IdempotencyKey, record.id)
        if row is None:
            return
        row.state = STATE_COMPLETED
        row.response_status = response.status_code
        row.response_body = bytes(response.body).decode("utf-8")
        row.response_content_type = response.media_type or _JSON_CONTENT_TYPE
        row.updated_at = now
        row.expires_at = now + self.ttl
        self.session.add(row)
        self.session.commit()

    def release(self, record: IdempotencyKey) -> None:
        row = self.session.get(IdempotencyKey, record.id)
        if row is not None:
            self.session.delete(row)
            self.session.commit()


def run_idempotent(
    session: Session,
    *,
    user_id: uuid.UUID,
    endpoint: str,
    key: str | None,
    payload: BaseModel,
    handler: Callable[[], BaseModel],
) -> Response:
    """Execute *handler* at most once per idempotency key and JSON-encode its result.

    Client errors (< 500) are stored and replayed like successes; server
    errors and unexpected exceptions release the key so the client can retry.
    """
    if not key:
        return JSONResponse(content=handler().model_dump(mode="json"))

    guard = IdempotencyGuard(session, user_id, endpoint, key)
    try:
        claimed = guard.claim(request_hash(payload))
    except IdempotencyConflictError as exc:
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        raise HTTPException(409, {"error": exc.code, "message": str(exc)}, headers=headers) from exc
    if isinstance(claimed, Response):
        return claimed

    try:
        response: Response = JSONResponse(content=handler().model_dump(mode="json"))
    except HTTPException as exc:
        if exc.status_code >= 500:
            guard.release(claimed)
            raise
        response = JSONResponse(
            content={"detail": exc.detail},
            status_code=exc.status_code,
            headers=exc.headers,
        )
    except Exception:
        guard.release(claimed)
        raise

    guard.complete(claimed, response)
    return response
