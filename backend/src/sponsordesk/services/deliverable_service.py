"""Deliverable create/update with exclusivity conflict detection.

Both operations build a ``CandidateAsset`` from the request, hand it to the
conflict workflow, and only stage the deliverable write when the workflow
lets it through.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlmodel import Session

from sponsordesk.models.deal import Deliverable
from sponsordesk.schemas.conflicts import CandidateAsset, DetectionResult
from sponsordesk.schemas.deliverables import DeliverableCreate, DeliverableOut, DeliverableUpdate
from sponsordesk.services.conflict_store import conflict_to_out
from sponsordesk.services.conflicts.category import normalize_category
from sponsordesk.services.conflicts.dimensions import to_optional_datetime
from sponsordesk.services.conflicts.workflow import DetectionOutcome, detect_and_resolve
from sponsordesk.services.rule_repository import verify_deal_ownership

logger = logging.getLogger(__name__)


class DealNotFoundError(Exception):
    pass


class DeliverableNotFoundError(Exception):
    pass


class DeliverableExistsError(Exception):
    pass


def deliverable_to_out(deliverable: Deliverable) -> DeliverableOut:
    return DeliverableOut(
        id=deliverable.id,
        deal_id=deliverable.deal_id,
        category_path=deliverable.category_path,
        platform=deliverable.platform,
        type=deliverable.type,
        quantity=deliverable.quantity,
        region=deliverable.region,
        scheduled_at=deliverable.scheduled_at,
        status=deliverable.status,
        created_at=deliverable.created_at,
        updated_at=deliverable.updated_at,
    )


def outcome_to_result(outcome: DetectionOutcome) -> DetectionResult:
    return DetectionResult(
        state=outcome.state,
        created=deliverable_to_out(outcome.created) if outcome.created else None,
        conflicts=[conflict_to_out(c) for c in outcome.conflicts],
        requires_acknowledgement=outcome.requires_acknowledgement,
        proceeded_despite_conflict=outcome.proceeded_despite_conflict,
    )


def get_owned_deliverable(
    session: Session, deliverable_id: uuid.UUID, user_id: uuid.UUID
) -> Deliverable:
    deliverable = session.get(Deliverable, deliverable_id)
    if deliverable is None or not verify_deal_ownership(session, deliverable.deal_id, user_id):
        raise DeliverableNotFoundError("Deliverable not found")
    return deliverable


def create_deliverable(
    session: Session,
    user_id: uuid.UUID,
    data: DeliverableCreate,
) -> DetectionOutcome:
    """Create a deliverable on one of the user's deals, subject to conflict checks."""
    if not verify_deal_ownership(session, data.deal_id, user_id):
        raise DealNotFoundError("Deal not found")

    deliverable_id = data.deliverable_id or uuid.uuid4()
    if session.get(Deliverable, deliverable_id) is not None:
        raise DeliverableExistsError(f"Deliverable {deliverable_id} already exists")

    scheduled_at = to_optional_datetime(data.scheduled_at)
    if data.scheduled_at and scheduled_at is None:
        logger.debug("Deliverable %s has an unparseable scheduled_at, skipping detection", deliverable_id)
    category = normalize_category(data.category_path)

    candidate = CandidateAsset(
        id=deliverable_id,
        deal_id=data.deal_id,
        platform=data.platform.value,
        category=category,
        region=data.region,
        scheduled_at=scheduled_at,
    )

    def _persist() -> Deliverable:
        deliverable = Deliverable(
            id=deliverable_id,
            deal_id=data.deal_id,
            category_path=category,
            platform=data.platform.value,
            type=data.type.value,
            quantity=data.quantity,
            region=data.region.value if data.region else None,
            scheduled_at=scheduled_at,
            status=data.status.value,
        )
        session.add(deliverable)
        return deliverable

    outcome = detect_and_resolve(
        session,
        candidate,
        user_id=user_id,
        acknowledge=data.acknowledge_conflicts,
        persist=_persist,
        correlation_id=data.conflict_session_id,
    )
    if outcome.created is not None:
        logger.info(
            "[audit] deliverable.created user=%s deliverable=%s proceeded_despite_conflict=%s",
            user_id,
            deliverable_id,
            outcome.proceeded_despite_conflict,
        )
    return outcome


def update_deliverable(
    session: Session,
    user_id: uuid.UUID,
    deliverable: Deliverable,
    data: DeliverableUpdate,
) -> DetectionOutcome:
    """Apply *data* to *deliverable*, re-running detection on the merged values."""
    changes = data.model_dump(
        exclude_unset=True, exclude={"conflict_session_id", "acknowledge_conflicts"}
    )

    category = (
        normalize_category(changes["category_path"])
        if "category_path" in changes
        else deliverable.category_path
    )
    scheduled_at = to_optional_datetime(
        changes["scheduled_at"] if "scheduled_at" in changes else deliverable.scheduled_at
    )
    platform = changes["platform"].value if changes.get("platform") else deliverable.platform
    if "region" in changes:
        region = changes["region"].value if changes["region"] else None
    else:
        region = deliverable.region

    candidate = CandidateAsset(
        id=deliverable.id,
        deal_id=deliverable.deal_id,
        platform=platform,
        category=category,
        region=region,
        scheduled_at=scheduled_at,
    )

    def _persist() -> Deliverable:
        deliverable.category_path = category
        deliverable.scheduled_at = scheduled_at
        deliverable.platform = platform
        deliverable.region = region
        if changes.get("type"):
            deliverable.type = changes["type"].value
        if changes.get("quantity"):
            deliverable.quantity = changes["quantity"]
        if changes.get("status"):
            deliverable.status = changes["status"].value
        deliverable.updated_at = datetime.now(UTC)
        session.add(deliverable)
        return deliverable

    outcome = detect_and_resolve(
        session,
        candidate,
        user_id=user_id,
        acknowledge=data.acknowledge_conflicts,
        persist=_persist,
        correlation_id=data.conflict_session_id,
    )
    if outcome.created is not None:
        logger.info("[audit] deliverable.updated user=%s deliverable=%s", user_id, deliverable.id)
    return outcome
