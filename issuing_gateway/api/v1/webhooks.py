"""POST /v1/webhooks - issuing provider webhook receiver, plus the event feed"""

import time
import logging
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from issuing_gateway.api.dependencies import get_dispatcher, get_event_log, get_request_id
from issuing_gateway.api.v1.schemas import DecisionSchema, EventFeedResponse, MockEventRequest, WebhookAck
from issuing_gateway.config import settings
from issuing_gateway.domain.events import (
    AUTHORIZATION_LIFECYCLE,
    AUTHORIZATION_REQUEST,
    RELEVANT_EVENTS,
    build_event_entry,
    build_mock_event,
    event_object,
    is_relevant_event,
)
from issuing_gateway.domain.exceptions import WebhookVerificationError
from issuing_gateway.domain.models import DispatchOutcome
from issuing_gateway.infrastructure.database.repositories import DecisionRepository
from issuing_gateway.infrastructure.database.session import get_db
from issuing_gateway.infrastructure.dispatcher import AuthorizationDispatcher
from issuing_gateway.infrastructure.event_log import EventLog
from issuing_gateway.infrastructure.observability.logging import log_authorization_decision
from issuing_gateway.infrastructure.observability.metrics import (
    record_authorization,
    webhook_event_counter,
    webhook_rejected_counter,
)
from issuing_gateway.infrastructure.webhook_signature import construct_event

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/webhooks", response_model=WebhookAck)
async def receive_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    dispatcher: AuthorizationDispatcher = Depends(get_dispatcher),
    event_log: EventLog = Depends(get_event_log),
):
    """
    Receive an issuing webhook event.

    Flow:
    1. Verify the signature and decode the event
    2. On issuing_authorization.request: evaluate and approve/decline with
       the provider before replying (the provider waits at most 2s)
    3. Log every other event type
    4. Append the event to the feed and the decision to the history
    5. Acknowledge with the decision and delivery result
    """
    received_at = time.monotonic()
    request_id = get_request_id(request)
    payload = await request.body()

    try:
        event = construct_event(payload, stripe_signature)
    except WebhookVerificationError as e:
        webhook_rejected_counter.inc()
        logger.warning(f"Webhook rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=400, detail=str(e))

    event_id = event.get("id")
    event_type = event["type"]
    account = event.get("account")
    relevant = is_relevant_event(event_type)
    webhook_event_counter.labels(event_type=event_type).inc()
    # Stored even when processing fails
    entry = {"id": event_id, "type": event_type, "account": account}

    try:
        entry = build_event_entry(event)
        if event_type == AUTHORIZATION_REQUEST:
            authorization = event_object(event)
            outcome = await dispatcher.dispatch(authorization, account=account, received_at=received_at)

            record_authorization(outcome)
            log_authorization_decision(outcome, request_id)
            entry["authorization_decision"] = DecisionSchema.from_domain(outcome.decision).model_dump(mode="json")
            _store_decision(db, outcome, event_id, account, request_id)
            ack = WebhookAck.with_outcome(event_id, event_type, relevant, outcome)
        else:
            logger.info(
                "Webhook event received",
                extra={"request_id": request_id, "event_id": event_id, "event_type": event_type, "relevant": relevant},
            )
            ack = WebhookAck(event_id=event_id, event_type=event_type, relevant=relevant)

    except Exception as e:
        logger.error(f"Webhook processing error: {e}", extra={"request_id": request_id, "event_id": event_id})
        raise HTTPException(status_code=500, detail="Webhook processing failed")
    finally:
        event_log.add(entry)

    return ack


def _store_decision(
    db: Session,
    outcome: DispatchOutcome,
    event_id: str | None,
    account: str | None,
    request_id: str,
) -> None:
    """Persist the decision; a storage failure must not fail the webhook"""
    try:
        DecisionRepository(db).record_outcome(outcome, event_id=event_id, account=account)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to store authorization decision: {e}", extra={"request_id": request_id})


@router.get("/webhooks")
def webhook_info():
    """Describe the webhook endpoint"""
    return {
        "message": "Issuing webhook endpoint",
        "supported_events": RELEVANT_EVENTS,
        "authorization_lifecycle": AUTHORIZATION_LIFECYCLE,
        "acted_on": AUTHORIZATION_REQUEST,
        "status": "active",
        "endpoint": "/v1/webhooks",
        "events_endpoint": "/v1/webhooks/events",
        "authorization_logic": "real-time",
        "response_window": f"{settings.authorization_deadline_ms}ms",
    }


@router.get("/webhooks/events", response_model=EventFeedResponse)
def list_events(limit: int | None = None, event_log: EventLog = Depends(get_event_log)):
    """Recently received events, newest first"""
    events = event_log.events(limit)
    return EventFeedResponse(events=events, count=len(event_log))


@router.delete("/webhooks/events")
def clear_events(event_log: EventLog = Depends(get_event_log)):
    """Empty the event feed"""
    cleared = event_log.clear()
    return {"success": True, "message": f"All {cleared} events cleared", "count": 0}


@router.post("/webhooks/test")
def create_mock_event(body: MockEventRequest, event_log: EventLog = Depends(get_event_log)):
    """Store a fabricated event of the given type in the feed"""
    event = build_mock_event(body.event_type, body.account)
    event_log.add(build_event_entry(event))
    return {"success": True, "message": f"Mock {body.event_type} event created successfully", "event": event}
