"""Detect → block-or-proceed → persist coordinator for deliverable writes.

One call runs detection and all resulting writes inside the caller's session
transaction and commits once. Any failure before the commit rolls the session
back, so neither the deliverable nor its conflict rows become visible.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlmodel import Session, select

from sponsordesk.config import settings
from sponsordesk.models.conflict import Conflict, ConflictType
from sponsordesk.models.deal import Deliverable
from sponsordesk.schemas.conflicts import CandidateAsset, WorkflowState
from sponsordesk.services.conflicts.engine import ConflictEngine
from sponsordesk.services.rule_repository import fetch_rules_for_user

logger = logging.getLogger(__name__)


@dataclass
class DetectionOutcome:
    state: WorkflowState
    created: Deliverable | None = None
    conflicts: list[Conflict] = field(default_factory=list)
    requires_acknowledgement: bool = False
    proceeded_despite_conflict: bool = False


def _store_conflict(
    session: Session,
    detected: Conflict,
    *,
    acknowledged_by: uuid.UUID | None,
    now: datetime,
) -> Conflict:
    """Insert *detected*, or refresh the active row already recorded for the same rule.

    An earlier unacknowledged pass for the same candidate leaves an active row;
    reusing it keeps one record per (candidate, rule) and lets an acknowledged
    resubmission resolve it instead of leaving a stale duplicate behind.
    """
    row = session.exec(
        select(Conflict).where(
            Conflict.type == ConflictType.EXCLUSIVITY,
            Conflict.new_deal_or_deliverable_id == detected.new_deal_or_deliverable_id,
            Conflict.conflicting_rule_id == detected.conflicting_rule_id,
            Conflict.auto_resolved == False,  # noqa: E712
        )
    ).first()
    if row is None:
        row = detected
    else:
        row.severity = detected.severity
        row.overlap = detected.overlap
        row.suggested_resolutions = detected.suggested_resolutions
        row.correlation_id = detected.correlation_id
        row.detected_at = detected.detected_at

    if acknowledged_by is not None:
        row.auto_resolved = True
        row.proceeded_despite_conflict = True
        row.acknowledged_by = acknowledged_by
        row.acknowledged_at = now
    session.add(row)
    return row


def detect_and_resolve(
    session: Session,
    candidate: CandidateAsset,
    *,
    user_id: uuid.UUID,
    acknowledge: bool,
    persist: Callable[[], Deliverable],
    correlation_id: str | None = None,
    engine: ConflictEngine | None = None,
) -> DetectionOutcome:
    """Run detection for *candidate* and apply the matching workflow transition.

    *persist* stages the deliverable insert or update on the session without
    committing; it is only called when the write is allowed to proceed.
    Raises ``RuleFetchError`` when rules cannot be read; nothing is written.
    """
    engine = engine or ConflictEngine(grace_days=settings.severity_grace_days)
    try:
        rules = fetch_rules_for_user(session, user_id, excluding_deal_id=candidate.deal_id)
        detected = engine.detect(candidate, rules, correlation_id=correlation_id)

        if not detected:
            deliverable = persist()
            session.commit()
            session.refresh(deliverable)
            return DetectionOutcome(state=WorkflowState.NO_CONFLICT, created=deliverable)

        now = datetime.now(UTC)
        stored = [
            _store_conflict(
                session,
                conflict,
                acknowledged_by=user_id if acknowledge else None,
                now=now,
            )
            for conflict in detected
        ]

        if not acknowledge:
            session.commit()
            for conflict in stored:
                session.refresh(conflict)
            logger.info(
                "Candidate %s blocked pending acknowledgement: %d conflicts",
                candidate.id,
                len(stored),
            )
            return DetectionOutcome(
                state=WorkflowState.CONFLICTS_DETECTED_PENDING_ACK,
                conflicts=stored,
                requires_acknowledgement=True,
            )

        deliverable = persist()
        session.commit()
        session.refresh(deliverable)
        for conflict in stored:
            session.refresh(conflict)
    except Exception:
        session.rollback()
        raise

    logger.info(
        "[audit] conflicts.acknowledged user=%s candidate=%s conflicts=%d",
        user_id,
        candidate.id,
        len(stored),
    )
    return DetectionOutcome(
        state=WorkflowState.CONFLICTS_ACKNOWLEDGED,
        created=deliverable,
        conflicts=stored,
        proceeded_despite_conflict=True,
    )
