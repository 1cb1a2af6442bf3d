"""Query and resolution surface for persisted conflict records.

A user owns a conflict when the conflicting rule's deal is theirs, or when the
record's target is one of their deals or one of their deals' deliverables.
Records the caller does not own are reported as missing.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import func, or_
from sqlalchemy.orm import aliased
from sqlmodel import Session, col, select

from sponsordesk.models.conflict import Conflict, ConflictSeverity
from sponsordesk.models.deal import Brand, Deal, Deliverable
from sponsordesk.models.exclusivity import ExclusivityRule
from sponsordesk.schemas.conflicts import (
    ConflictListItem,
    ConflictOut,
    ConflictsSummary,
    ConflictStatusFilter,
)

logger = logging.getLogger(__name__)


class ConflictNotFoundError(Exception):
    pass


def _owned_conflicts(user_id: uuid.UUID):
    """SELECT of conflicts visible to *user_id*, directly or through a deal."""
    rule_deal = aliased(Deal)
    owned_deal_ids = select(Deal.id).where(Deal.user_id == user_id)
    owned_deliverable_ids = (
        select(Deliverable.id)
        .join(Deal, col(Deal.id) == col(Deliverable.deal_id))
        .where(Deal.user_id == user_id)
    )
    return (
        select(Conflict)
        .outerjoin(ExclusivityRule, col(ExclusivityRule.id) == col(Conflict.conflicting_rule_id))
        .outerjoin(rule_deal, rule_deal.id == col(ExclusivityRule.deal_id))
        .where(
            or_(
                rule_deal.user_id == user_id,
                col(Conflict.new_deal_or_deliverable_id).in_(owned_deal_ids),
                col(Conflict.new_deal_or_deliverable_id).in_(owned_deliverable_ids),
            )
        )
    )


def _overlap_dict(raw: str) -> dict:
    try:
        data = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        data = {}
    return data if isinstance(data, dict) else {}


def conflict_to_out(conflict: Conflict) -> ConflictOut:
    return ConflictOut(
        id=conflict.id,
        type=conflict.type,
        severity=conflict.severity,
        overlap=_overlap_dict(conflict.overlap),
        suggested_resolutions=list(conflict.suggested_resolutions or []),
        auto_resolved=conflict.auto_resolved,
        conflicting_rule_id=conflict.conflicting_rule_id,
        new_deal_or_deliverable_id=conflict.new_deal_or_deliverable_id,
        correlation_id=conflict.correlation_id,
        proceeded_despite_conflict=conflict.proceeded_despite_conflict,
        acknowledged_by=conflict.acknowledged_by,
        acknowledged_at=conflict.acknowledged_at,
        resolved_by=conflict.resolved_by,
        resolved_at=conflict.resolved_at,
        detected_at=conflict.detected_at,
    )


def list_conflicts(
    session: Session,
    user_id: uuid.UUID,
    status: ConflictStatusFilter = ConflictStatusFilter.ACTIVE,
) -> list[ConflictListItem]:
    """Return the user's conflicts, newest first, with deal and brand names attached."""
    stmt = _owned_conflicts(user_id)
    if status == ConflictStatusFilter.ACTIVE:
        stmt = stmt.where(Conflict.auto_resolved == False)  # noqa: E712
    elif status == ConflictStatusFilter.RESOLVED:
        stmt = stmt.where(Conflict.auto_resolved == True)  # noqa: E712
    rows = session.exec(stmt.order_by(col(Conflict.detected_at).desc())).all()
    if not rows:
        return []

    # Display-name lookups for the targets and rule owners
    rule_ids = {r.conflicting_rule_id for r in rows if r.conflicting_rule_id}
    rules = (
        session.exec(select(ExclusivityRule).where(col(ExclusivityRule.id).in_(rule_ids))).all()
        if rule_ids
        else []
    )
    rule_deal_ids = {r.id: r.deal_id for r in rules}

    target_ids = {r.new_deal_or_deliverable_id for r in rows}
    deliverables = session.exec(
        select(Deliverable).where(col(Deliverable.id).in_(target_ids))
    ).all()
    deliverable_deal_ids = {d.id: d.deal_id for d in deliverables}

    deal_ids = set(rule_deal_ids.values()) | set(deliverable_deal_ids.values()) | target_ids
    deals = session.exec(
        select(Deal).where(col(Deal.id).in_(deal_ids), Deal.user_id == user_id)
    ).all()
    deal_map = {d.id: d for d in deals}
    brand_ids = {d.brand_id for d in deals if d.brand_id}
    brands = (
        session.exec(select(Brand).where(col(Brand.id).in_(brand_ids))).all() if brand_ids else []
    )
    brand_names = {b.id: b.name for b in brands}

    def _brand_name(deal: Deal | None) -> str | None:
        if deal is None or deal.brand_id is None:
            return None
        return brand_names.get(deal.brand_id)

    items: list[ConflictListItem] = []
    for row in rows:
        target_deliverable_id = (
            row.new_deal_or_deliverable_id
            if row.new_deal_or_deliverable_id in deliverable_deal_ids
            else None
        )
        target_deal_id = (
            deliverable_deal_ids[target_deliverable_id]
            if target_deliverable_id
            else row.new_deal_or_deliverable_id
        )
        target_deal = deal_map.get(target_deal_id)
        rule_deal = deal_map.get(rule_deal_ids.get(row.conflicting_rule_id))  # type: ignore[arg-type]

        items.append(
            ConflictListItem(
                **conflict_to_out(row).model_dump(),
                target_deal_id=target_deal.id if target_deal else None,
                target_deal_title=target_deal.title if target_deal else None,
                target_brand_name=_brand_name(target_deal),
                target_deliverable_id=target_deliverable_id,
                conflicting_rule_deal_id=rule_deal.id if rule_deal else None,
                conflicting_rule_deal_title=rule_deal.title if rule_deal else None,
                conflicting_rule_brand_name=_brand_name(rule_deal),
            )
        )
    return items


def mark_resolved(session: Session, user_id: uuid.UUID, conflict_id: uuid.UUID) -> Conflict:
    """Resolve an active conflict. Resolving an already-resolved conflict is a no-op."""
    conflict = session.exec(_owned_conflicts(user_id).where(Conflict.id == conflict_id)).first()
    if conflict is None:
        raise ConflictNotFoundError("Conflict not found")
    if conflict.auto_resolved:
        return conflict

    conflict.auto_resolved = True
    conflict.resolved_by = user_id
    conflict.resolved_at = datetime.now(UTC)
    session.add(conflict)
    session.commit()
    session.refresh(conflict)
    logger.info("[audit] conflict.resolved user=%s conflict=%s", user_id, conflict.id)
    return conflict


def summary(session: Session, user_id: uuid.UUID) -> ConflictsSummary:
    """Count the user's active conflicts, overall and per severity."""
    owned = (
        _owned_conflicts(user_id)
        .where(Conflict.auto_resolved == False)  # noqa: E712
        .subquery()
    )
    counts = session.exec(
        select(owned.c.severity, func.count()).group_by(owned.c.severity)
    ).all()

    by_severity: dict[ConflictSeverity, int] = {s: 0 for s in ConflictSeverity}
    for severity, count in counts:
        by_severity[ConflictSeverity(severity)] += count
    return ConflictsSummary(active_count=sum(by_severity.values()), by_severity=by_severity)
