"""Authorization request handling: evaluate, then call the provider back inside the deadline"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from issuing_gateway.config import settings
from issuing_gateway.domain.evaluator import VALIDATION_FAILED, evaluate_authorization
from issuing_gateway.domain.events import parse_authorization_request
from issuing_gateway.domain.exceptions import ProviderAPIError, ProviderTimeoutError, ValidationError
from issuing_gateway.domain.models import (
    AuthorizationRequest,
    DecisionOutcome,
    DecisionResult,
    DeliveryStatus,
    DispatchOutcome,
)
from issuing_gateway.infrastructure.clients.issuing import IssuingClient
from issuing_gateway.infrastructure.observability.metrics import provider_callback_failure_counter
from issuing_gateway.infrastructure.policy_store import PolicyStore

logger = logging.getLogger(__name__)

# Headroom kept back from the deadline for writing the webhook reply
REPLY_MARGIN_MS = 100


def fail_closed_decision(error: ValidationError) -> DecisionResult:
    """Decline used when a request cannot be evaluated"""
    return DecisionResult(
        approved=False,
        approved_amount=0,
        outcome=DecisionOutcome.DECLINED,
        evaluated_at=datetime.now(timezone.utc),
        reason=f"Invalid authorization request: {error}",
        rule=VALIDATION_FAILED,
    )


class AuthorizationDispatcher:
    """
    Single entry point for authorization request events.

    Flow:
    1. Map the provider payload to an AuthorizationRequest
    2. Evaluate it against the current policy snapshot (fail closed on bad input)
    3. Approve or decline with the provider, bounded by the remaining deadline
    4. Return the decision with the delivery result; delivery problems never
       change the decision and are not retried here
    """

    def __init__(
        self,
        issuing_client: IssuingClient,
        policy_store: PolicyStore,
        deadline_ms: int | None = None,
    ):
        self.issuing_client = issuing_client
        self.policy_store = policy_store
        self.deadline_ms = deadline_ms or settings.authorization_deadline_ms

    def decide(self, request: AuthorizationRequest) -> DecisionResult:
        """Evaluate against the snapshot current at call time"""
        return evaluate_authorization(request, self.policy_store.current())

    async def dispatch(
        self,
        authorization: Dict[str, Any],
        account: Optional[str] = None,
        received_at: Optional[float] = None,
    ) -> DispatchOutcome:
        """
        Decide an issuing_authorization object and deliver the decision.

        Args:
            authorization: The event's data.object
            account: Connected account the event belongs to
            received_at: time.monotonic() at webhook receipt; defaults to now
        """
        start = received_at if received_at is not None else time.monotonic()
        authorization_id = authorization.get("id") if isinstance(authorization, dict) else None

        request: Optional[AuthorizationRequest] = None
        try:
            request = parse_authorization_request(authorization)
            decision = self.decide(request)
        except ValidationError as e:
            logger.warning(
                "Authorization request failed validation, declining",
                extra={"authorization_id": authorization_id, "error": str(e)},
            )
            decision = fail_closed_decision(e)

        if not authorization_id:
            return DispatchOutcome(
                authorization_id=None,
                decision=decision,
                delivery_status=DeliveryStatus.SKIPPED,
                delivery_error="No authorization id to call back",
                duration_ms=_elapsed_ms(start),
                request=request,
            )

        status, error = await self._deliver(str(authorization_id), decision, account, start)
        return DispatchOutcome(
            authorization_id=str(authorization_id),
            decision=decision,
            delivery_status=status,
            delivery_error=error,
            duration_ms=_elapsed_ms(start),
            request=request,
        )

    async def _deliver(
        self,
        authorization_id: str,
        decision: DecisionResult,
        account: Optional[str],
        start: float,
    ) -> tuple[DeliveryStatus, Optional[str]]:
        remaining_s = (self.deadline_ms - REPLY_MARGIN_MS - _elapsed_ms(start)) / 1000
        if remaining_s <= 0:
            provider_callback_failure_counter.labels(status=DeliveryStatus.TIMEOUT.value).inc()
            return DeliveryStatus.TIMEOUT, "Authorization deadline already passed"

        timeout = min(remaining_s, self.issuing_client.timeout)
        if decision.approved:
            call = self.issuing_client.approve_authorization(
                authorization_id,
                amount=decision.approved_amount if decision.outcome == DecisionOutcome.PARTIALLY_APPROVED else None,
                account=account,
                timeout=timeout,
            )
        else:
            call = self.issuing_client.decline_authorization(
                authorization_id,
                reason=decision.reason,
                account=account,
                timeout=timeout,
            )

        try:
            await asyncio.wait_for(call, timeout=timeout)
            return DeliveryStatus.DELIVERED, None
        except asyncio.TimeoutError:
            provider_callback_failure_counter.labels(status=DeliveryStatus.TIMEOUT.value).inc()
            logger.error("Provider callback timed out", extra={"authorization_id": authorization_id, "timeout_s": timeout})
            return DeliveryStatus.TIMEOUT, f"Provider callback exceeded {timeout:.3f}s"
        except ProviderTimeoutError as e:
            provider_callback_failure_counter.labels(status=DeliveryStatus.TIMEOUT.value).inc()
            logger.error("Provider callback timed out", extra={"authorization_id": authorization_id, "error": str(e)})
            return DeliveryStatus.TIMEOUT, str(e)
        except ProviderAPIError as e:
            provider_callback_failure_counter.labels(status=DeliveryStatus.FAILED.value).inc()
            logger.error("Provider callback failed", extra={"authorization_id": authorization_id, "error": str(e)})
            return DeliveryStatus.FAILED, str(e)


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 2)
