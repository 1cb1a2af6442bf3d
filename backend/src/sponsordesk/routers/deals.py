"""Exclusivity rule management for a deal."""

import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from sponsordesk.database import get_session
from sponsordesk.models.exclusivity import ExclusivityRule
from sponsordesk.routers.deps import get_current_user_id, get_deal_or_404
from sponsordesk.schemas.exclusivity import ExclusivityRuleOut, ExclusivityRulesReplace
from sponsordesk.services.rule_repository import list_rules_for_deal, replace_rules_for_deal

router = APIRouter(prefix="/deals/{deal_id}/exclusivity-rules", tags=["exclusivity"])


def _rule_out(rule: ExclusivityRule) -> ExclusivityRuleOut:
    return ExclusivityRuleOut.model_validate(rule, from_attributes=True)


@router.get("/", response_model=list[ExclusivityRuleOut])
def rules_list(
    deal_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> list[ExclusivityRuleOut]:
    deal = get_deal_or_404(deal_id, user_id, session)
    return [_rule_out(r) for r in list_rules_for_deal(session, deal.id)]


@router.put("/", response_model=list[ExclusivityRuleOut])
def rules_replace(
    deal_id: uuid.UUID,
    data: ExclusivityRulesReplace,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> list[ExclusivityRuleOut]:
    """Replace the deal's whole rule set; rules are never edited individually."""
    deal = get_deal_or_404(deal_id, user_id, session)
    return [_rule_out(r) for r in replace_rules_for_deal(session, deal, data.rules)]
