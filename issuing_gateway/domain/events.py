"""Provider webhook events: types, lifecycle and authorization payload mapping"""

import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from issuing_gateway.domain.defaults import CATEGORY_SLUG_MCCS
from issuing_gateway.domain.exceptions import ValidationError
from issuing_gateway.domain.models import AuthorizationRequest

AUTHORIZATION_REQUEST = "issuing_authorization.request"
AUTHORIZATION_CREATED = "issuing_authorization.created"
AUTHORIZATION_UPDATED = "issuing_authorization.updated"
CARD_CREATED = "issuing_card.created"
CARDHOLDER_CREATED = "issuing_cardholder.created"
TRANSACTION_CREATED = "issuing_transaction.created"
ACCOUNT_UPDATED = "account.updated"
EXTERNAL_ACCOUNT_CREATED = "account.external_account.created"
BALANCE_AVAILABLE = "balance.available"

# Lifecycle as observed through events: requested -> decided -> created -> updated*.
# Only the request step is acted on; the rest is informational.
AUTHORIZATION_LIFECYCLE: List[str] = [
    AUTHORIZATION_REQUEST,
    AUTHORIZATION_CREATED,
    AUTHORIZATION_UPDATED,
]

RELEVANT_EVENTS: List[str] = [
    AUTHORIZATION_REQUEST,
    AUTHORIZATION_CREATED,
    AUTHORIZATION_UPDATED,
    CARD_CREATED,
    CARDHOLDER_CREATED,
    TRANSACTION_CREATED,
    ACCOUNT_UPDATED,
    EXTERNAL_ACCOUNT_CREATED,
]

_MCC_PATTERN = re.compile(r"^\d{4}$")


def is_relevant_event(event_type: str) -> bool:
    return event_type in RELEVANT_EVENTS


def normalize_category_code(category: str) -> str:
    """Map a provider category slug to its MCC; 4-digit codes and unknown slugs pass through"""
    category = category.strip()
    if _MCC_PATTERN.match(category):
        return category
    return CATEGORY_SLUG_MCCS.get(category.lower(), category)


def _require(mapping: Dict[str, Any], key: str, context: str) -> Any:
    value = mapping.get(key)
    if value is None or value == "":
        raise ValidationError(f"missing required field '{context}{key}'")
    return value


def parse_authorization_request(authorization: Dict[str, Any]) -> AuthorizationRequest:
    """
    Build an AuthorizationRequest from an issuing_authorization object.

    The MCC is read from merchant_data.category_code; payloads without it
    fall back to mapping the merchant_data.category slug.

    The requested amount comes from pending_request when present (the
    top-level amount is 0 until the authorization is approved), otherwise
    from the top-level amount.

    Raises:
        ValidationError: If a required field is missing or has the wrong type
    """
    if not isinstance(authorization, dict):
        raise ValidationError("authorization payload must be an object")

    authorization_id = _require(authorization, "id", "")

    pending = authorization.get("pending_request") or {}
    if not isinstance(pending, dict):
        raise ValidationError("pending_request must be an object")

    amount = pending.get("amount")
    if amount is None:
        amount = _require(authorization, "amount", "")
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"amount must be an integer in minor units, got {amount!r}")

    currency = pending.get("currency") or _require(authorization, "currency", "")

    merchant = authorization.get("merchant_data")
    if not isinstance(merchant, dict):
        raise ValidationError("missing required field 'merchant_data'")
    merchant_name = _require(merchant, "name", "merchant_data.")
    # category_code carries the MCC; the slug table only covers payloads without it
    category_code = merchant.get("category_code")
    if category_code:
        mcc = str(category_code).strip()
    else:
        mcc = normalize_category_code(str(_require(merchant, "category", "merchant_data.")))

    controllable = pending.get("is_amount_controllable", False)
    if not isinstance(controllable, bool):
        raise ValidationError("pending_request.is_amount_controllable must be a boolean")

    return AuthorizationRequest(
        id=str(authorization_id),
        amount=amount,
        currency=str(currency).lower(),
        merchant_name=str(merchant_name),
        merchant_category_code=mcc,
        is_amount_controllable=controllable,
    )


def event_object(event: Dict[str, Any]) -> Dict[str, Any]:
    """The event's data.object, or an empty dict when the envelope is malformed"""
    data = event.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    return obj if isinstance(obj, dict) else {}


def build_event_entry(event: Dict[str, Any]) -> Dict[str, Any]:
    """Summarize a provider event for the event feed"""
    data = event_object(event)
    entry: Dict[str, Any] = {
        "id": event.get("id"),
        "type": event.get("type"),
        "created": event.get("created"),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": data,
        "account": event.get("account"),
    }
    if event.get("type") == AUTHORIZATION_REQUEST:
        merchant = data.get("merchant_data")
        entry["authorization_amount"] = data.get("amount")
        entry["authorization_merchant"] = merchant.get("name") if isinstance(merchant, dict) else None
    return entry


def build_mock_event(event_type: str, account: Optional[str] = None) -> Dict[str, Any]:
    """Fabricate a provider-shaped event for exercising the event feed"""
    stamp = int(time.time() * 1000)
    return {
        "id": f"evt_test_{stamp}",
        "type": event_type,
        "created": stamp // 1000,
        "data": {"object": _mock_event_object(event_type, stamp)},
        "account": account or "acct_test_123",
    }


def _mock_event_object(event_type: str, stamp: int) -> Dict[str, Any]:
    paul = {"name": "Paul Boulangerie", "category": "eating_places_restaurants", "category_code": "5812"}

    if event_type == AUTHORIZATION_REQUEST:
        return {
            "id": f"iauth_test_{stamp}",
            "amount": 0,
            "currency": "gbp",
            "merchant_data": paul,
            "pending_request": {"amount": 1250, "currency": "gbp", "is_amount_controllable": False},
        }
    if event_type in (AUTHORIZATION_CREATED, AUTHORIZATION_UPDATED):
        return {
            "id": f"iauth_test_{stamp}",
            "amount": 2500,
            "currency": "gbp",
            "status": "pending" if event_type == AUTHORIZATION_CREATED else "closed",
            "merchant_data": paul,
        }
    if event_type == CARD_CREATED:
        return {
            "id": f"ic_test_{stamp}",
            "last4": "4242",
            "type": "virtual",
            "status": "active",
            "cardholder": f"ich_test_{stamp}",
        }
    if event_type == CARDHOLDER_CREATED:
        return {
            "id": f"ich_test_{stamp}",
            "name": "Olivia Dubois",
            "email": "olivia.dubois@testlondon.co.uk",
            "status": "active",
            "type": "individual",
        }
    if event_type == TRANSACTION_CREATED:
        return {"id": f"ipi_test_{stamp}", "amount": 2500, "currency": "gbp", "merchant_data": paul}
    if event_type == ACCOUNT_UPDATED:
        return {
            "id": "acct_test_123",
            "charges_enabled": True,
            "details_submitted": True,
            "business_profile": {"name": "Huel"},
        }
    return {"id": f"test_{stamp}", "status": "active"}
