"""Shared FastAPI dependencies used across routers."""

import uuid

from fastapi import Header, HTTPException
from sqlmodel import Session

from sponsordesk.models.deal import Deal
from sponsordesk.services.rule_repository import get_owned_deal


def get_current_user_id(x_user_id: uuid.UUID | None = Header(default=None)) -> uuid.UUID:
    """Caller identity, set by the authenticating gateway in ``X-User-Id``."""
    if x_user_id is None:
        raise HTTPException(401, "Unauthorized")
    return x_user_id


def get_deal_or_404(deal_id: uuid.UUID, user_id: uuid.UUID, session: Session) -> Deal:
    """Look up a deal owned by the user, raising 404 otherwise."""
    deal = get_owned_deal(session, deal_id, user_id)
    if not deal:
        raise HTTPException(404, "Deal not found")
    return deal
