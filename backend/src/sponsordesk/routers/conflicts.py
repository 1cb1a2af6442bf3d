"""Endpoints for reviewing and resolving persisted conflicts."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from sponsordesk.database import get_session
from sponsordesk.routers.deps import get_current_user_id
from sponsordesk.schemas.conflicts import (
    ConflictListItem,
    ConflictOut,
    ConflictsSummary,
    ConflictStatusFilter,
)
from sponsordesk.services.conflict_store import (
    ConflictNotFoundError,
    conflict_to_out,
    list_conflicts,
    mark_resolved,
    summary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conflicts", tags=["conflicts"])


@router.get("/", response_model=list[ConflictListItem])
def conflicts_list(
    status: ConflictStatusFilter = ConflictStatusFilter.ACTIVE,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> list[ConflictListItem]:
    """List the caller's conflicts filtered by ``ACTIVE``, ``RESOLVED`` or ``ALL``."""
    return list_conflicts(session, user_id, status)


@router.get("/summary", response_model=ConflictsSummary)
def conflicts_summary(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> ConflictsSummary:
    return summary(session, user_id)


@router.post("/{conflict_id}/resolve", response_model=ConflictOut)
def conflicts_resolve(
    conflict_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
) -> ConflictOut:
    """Mark an active conflict resolved; repeating the call is harmless."""
    try:
        conflict = mark_resolved(session, user_id, conflict_id)
    except ConflictNotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    return conflict_to_out(conflict)
