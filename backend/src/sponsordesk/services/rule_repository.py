"""Rule lookup and deal ownership checks used by the conflict workflow.

Deal CRUD lives elsewhere; this module only reads deals to scope rules to
their owner and replaces a deal's rule set wholesale when the deal is edited.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from sponsordesk.models.conflict import Conflict
from sponsordesk.models.deal import Deal, Deliverable
from sponsordesk.models.exclusivity import ExclusivityRule
from sponsordesk.schemas.exclusivity import ExclusivityRuleIn

logger = logging.getLogger(__name__)


class RuleFetchError(Exception):
    """The rule set could not be read; the caller may retry the request."""

    retryable = True


def fetch_rules_for_user(
    session: Session,
    user_id: uuid.UUID,
    excluding_deal_id: uuid.UUID | None = None,
) -> list[ExclusivityRule]:
    """Return every rule on the user's deals except those of *excluding_deal_id*.

    The read takes a shared row lock where the backend supports one so a
    sibling request cannot swap the rule set before this transaction commits.
    """
    stmt = (
        select(ExclusivityRule)
        .join(Deal, col(Deal.id) == col(ExclusivityRule.deal_id))
        .where(Deal.user_id == user_id)
    )
    if excluding_deal_id is not None:
        stmt = stmt.where(ExclusivityRule.deal_id != excluding_deal_id)
    stmt = stmt.order_by(col(ExclusivityRule.start_date), col(ExclusivityRule.id))
    try:
        return list(session.exec(stmt.with_for_update(read=True)).all())
    except SQLAlchemyError as exc:
        logger.exception("Rule fetch failed for user %s", user_id)
        raise RuleFetchError("Could not load exclusivity rules") from exc


def get_owned_deal(session: Session, deal_id: uuid.UUID, user_id: uuid.UUID) -> Deal | None:
    deal = session.get(Deal, deal_id)
    if deal is None or deal.user_id != user_id:
        return None
    return deal


def verify_deal_ownership(session: Session, deal_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    return get_owned_deal(session, deal_id, user_id) is not None


def list_rules_for_deal(session: Session, deal_id: uuid.UUID) -> list[ExclusivityRule]:
    return list(
        session.exec(
            select(ExclusivityRule)
            .where(ExclusivityRule.deal_id == deal_id)
            .order_by(col(ExclusivityRule.start_date), col(ExclusivityRule.id))
        ).all()
    )


def _target_exists(session: Session, target_id: uuid.UUID) -> bool:
    return (
        session.get(Deliverable, target_id) is not None or session.get(Deal, target_id) is not None
    )


def replace_rules_for_deal(
    session: Session,
    deal: Deal,
    rules: list[ExclusivityRuleIn],
) -> list[ExclusivityRule]:
    """Delete the deal's rules and insert *rules* in their place. Commits.

    Active conflicts raised by the old rules against a deliverable that was
    never created are resolved, since nothing else makes them visible.
    """
    old = list_rules_for_deal(session, deal.id)
    old_ids = [r.id for r in old]
    orphaned = 0
    if old_ids:
        # Conflict history outlives the rule that produced it
        referencing = session.exec(
            select(Conflict).where(col(Conflict.conflicting_rule_id).in_(old_ids))
        ).all()
        now = datetime.now(UTC)
        for conflict in referencing:
            conflict.conflicting_rule_id = None
            if not conflict.auto_resolved and not _target_exists(
                session, conflict.new_deal_or_deliverable_id
            ):
                # Blocked create with no owner left to see it
                conflict.auto_resolved = True
                conflict.resolved_by = deal.user_id
                conflict.resolved_at = now
                orphaned += 1
            session.add(conflict)
        for row in old:
            session.delete(row)
        session.flush()

    created: list[ExclusivityRule] = []
    for data in rules:
        rule = ExclusivityRule(
            deal_id=deal.id,
            category_path=data.category_path.strip(),
            scope=data.scope,
            start_date=data.start_date,
            end_date=data.end_date,
            platforms=list(dict.fromkeys(p.value for p in data.platforms)),
            regions=list(dict.fromkeys(r.value for r in data.regions)),
            notes=data.notes,
        )
        session.add(rule)
        created.append(rule)
    session.commit()
    for rule in created:
        session.refresh(rule)

    logger.info(
        "Replaced exclusivity rules for deal %s: %d removed, %d added, %d orphans resolved",
        deal.id,
        len(old_ids),
        len(created),
        orphaned,
    )
    return created
