"""Webhook authenticity check delegated to the provider SDK"""

import json
import logging
from typing import Any, Dict, Optional

import stripe

from issuing_gateway.config import settings
from issuing_gateway.domain.exceptions import WebhookVerificationError

logger = logging.getLogger(__name__)


def construct_event(
    payload: bytes,
    signature: Optional[str],
    secret: Optional[str] = None,
    tolerance: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Verify the Stripe-Signature header and decode the event.

    Without a configured secret the payload is decoded unverified (local
    development only) and a warning is logged.

    Raises:
        WebhookVerificationError: On a missing or invalid signature, or a malformed payload
    """
    secret = secret if secret is not None else settings.stripe_webhook_secret
    tolerance = tolerance if tolerance is not None else settings.webhook_tolerance_seconds

    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise WebhookVerificationError("Webhook payload is not UTF-8") from e

    if secret:
        if not signature:
            raise WebhookVerificationError("Missing Stripe-Signature header")
        try:
            stripe.WebhookSignature.verify_header(text, signature, secret, tolerance)
        except stripe.SignatureVerificationError as e:
            raise WebhookVerificationError(f"Invalid webhook signature: {e}") from e
    else:
        logger.warning("No webhook secret configured, accepting unverified event (development only)")

    try:
        event = json.loads(text)
    except json.JSONDecodeError as e:
        raise WebhookVerificationError(f"Webhook payload is not valid JSON: {e}") from e

    if not isinstance(event, dict) or not event.get("type"):
        raise WebhookVerificationError("Webhook payload is not an event object")
    return event
