"""Deliverable write endpoints guarded by exclusivity conflict detection."""

import logging
import uuid

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import Response
from sqlmodel import Session

from sponsordesk.database import get_session
from sponsordesk.routers.deps import get_current_user_id
from sponsordesk.schemas.conflicts import DetectionResult
from sponsordesk.schemas.deliverables import DeliverableCreate, DeliverableUpdate
from sponsordesk.services.deliverable_service import (
    DealNotFoundError,
    DeliverableExistsError,
    DeliverableNotFoundError,
    create_deliverable,
    get_owned_deliverable,
    outcome_to_result,
    update_deliverable,
)
from sponsordesk.services.idempotency import run_idempotent
from sponsordesk.services.rule_repository import RuleFetchError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/deliverables", tags=["deliverables"])

_RETRY_AFTER_SECONDS = "2"


def _rule_fetch_failed() -> HTTPException:
    return HTTPException(
        503,
        "Could not verify exclusivity rules. Retry the request.",
        headers={"Retry-After": _RETRY_AFTER_SECONDS},
    )


@router.post("/", response_model=DetectionResult)
def deliverables_create(
    data: DeliverableCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    x_idempotency_key: str | None = Header(default=None),
) -> Response:
    """Create a deliverable, or report the conflicts that need acknowledgement."""

    def _handle() -> DetectionResult:
        try:
            outcome = create_deliverable(session, user_id, data)
        except DealNotFoundError as exc:
            raise HTTPException(404, str(exc)) from exc
        except DeliverableExistsError as exc:
            raise HTTPException(409, str(exc)) from exc
        except RuleFetchError as exc:
            raise _rule_fetch_failed() from exc
        return outcome_to_result(outcome)

    return run_idempotent(
        session,
        user_id=user_id,
        endpoint="deliverables.create",
        key=x_idempotency_key,
        payload=data,
        handler=_handle,
    )


@router.patch("/{deliverable_id}", response_model=DetectionResult)
def deliverables_update(
    deliverable_id: uuid.UUID,
    data: DeliverableUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    x_idempotency_key: str | None = Header(default=None),
) -> Response:
    """Update a deliverable; changed values are re-checked against exclusivity rules."""

    def _handle() -> DetectionResult:
        try:
            deliverable = get_owned_deliverable(session, deliverable_id, user_id)
            outcome = update_deliverable(session, user_id, deliverable, data)
        except DeliverableNotFoundError as exc:
            raise HTTPException(404, str(exc)) from exc
        except RuleFetchError as exc:
            raise _rule_fetch_failed() from exc
        return outcome_to_result(outcome)

    return run_idempotent(
        session,
        user_id=user_id,
        endpoint=f"deliverables.update:{deliverable_id}",
        key=x_idempotency_key,
        payload=data,
        handler=_handle,
    )
