"""Integration tests for API endpoints"""

import hashlib
import hmac
import json
import time
import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from conftest import make_authorization_payload, make_event
from issuing_gateway.config import settings
from issuing_gateway.domain.exceptions import ProviderAPIError

pytestmark = pytest.mark.integration

APPROVE = "issuing_gateway.infrastructure.clients.issuing.IssuingClient.approve_authorization"
DECLINE = "issuing_gateway.infrastructure.clients.issuing.IssuingClient.decline_authorization"
CREATE_TEST = "issuing_gateway.infrastructure.clients.issuing.IssuingClient.create_test_authorization"


def signature_header(payload: str, secret: str) -> str:
    timestamp = int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Request-ID" in response.headers


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "issuing_authorization_decision_total" in response.text


@patch(APPROVE, new_callable=AsyncMock)
def test_webhook_authorization_request_approved(mock_approve: AsyncMock, client: TestClient):
    """Authorization request within policy is approved with the provider before the reply"""
    mock_approve.return_value = {"id": "iauth_1NvPZb2eZvKYlo2C", "approved": True}

    response = client.post("/v1/webhooks", json=make_event(make_authorization_payload()))

    assert response.status_code == 200
    data = response.json()
    assert data["received"] is True
    assert data["relevant"] is True
    assert data["authorization_id"] == "iauth_1NvPZb2eZvKYlo2C"
    assert data["decision"]["approved"] is True
    assert data["decision"]["approved_amount"] == 1250
    assert data["delivery"]["status"] == "delivered"

    mock_approve.assert_awaited_once()
    args, kwargs = mock_approve.call_args
    assert args[0] == "iauth_1NvPZb2eZvKYlo2C"
    assert kwargs["amount"] is None
    assert kwargs["account"] == "acct_test_huel"


@patch(DECLINE, new_callable=AsyncMock)
def test_webhook_blocked_merchant_declined(mock_decline: AsyncMock, client: TestClient):
    """Gas Station at MCC 5541 is declined and the decision is stored"""
    payload = make_authorization_payload(
        id="iauth_gas",
        merchant_data={"name": "Gas Station", "category": "service_stations"},
        pending_request={"amount": 3000, "currency": "gbp", "is_amount_controllable": False},
    )

    response = client.post("/v1/webhooks", json=make_event(payload))

    assert response.status_code == 200
    decision = response.json()["decision"]
    assert decision["approved"] is False
    assert decision["rule"] == "MERCHANT_BLOCKED"
    assert mock_decline.call_args.kwargs["reason"] == "merchant blocked"

    history = client.get("/v1/authorizations/decisions/iauth_gas")
    assert history.status_code == 200
    stored = history.json()["decisions"][0]
    assert stored["merchant_category_code"] == "5541"
    assert stored["outcome"] == "declined"
    assert stored["delivery_status"] == "delivered"


@patch(APPROVE, new_callable=AsyncMock)
def test_webhook_partial_authorization(mock_approve: AsyncMock, client: TestClient):
    """Controllable fuel dispenser over the limit is approved for 0"""
    payload = make_authorization_payload(
        merchant_data={"name": "Gas Station", "category": "automated_fuel_dispensers"},
        pending_request={"amount": 10000, "currency": "gbp", "is_amount_controllable": True},
    )

    response = client.post("/v1/webhooks", json=make_event(payload))

    data = response.json()
    assert data["decision"]["outcome"] == "partially_approved"
    assert mock_approve.call_args.kwargs["amount"] == 0


@patch(APPROVE, new_callable=AsyncMock)
def test_webhook_provider_failure_still_acknowledged(mock_approve: AsyncMock, client: TestClient):
    """A failed callback is reported in the ack; the event is still accepted"""
    mock_approve.side_effect = ProviderAPIError("Issuing API error: 402 closed")

    response = client.post("/v1/webhooks", json=make_event(make_authorization_payload()))

    assert response.status_code == 200
    data = response.json()
    assert data["decision"]["approved"] is True
    assert data["delivery"]["status"] == "failed"


@patch(DECLINE, new_callable=AsyncMock)
def test_webhook_invalid_authorization_fails_closed(mock_decline: AsyncMock, client: TestClient):
    payload = make_authorization_payload(merchant_data=None)

    response = client.post("/v1/webhooks", json=make_event(payload))

    assert response.status_code == 200
    assert response.json()["decision"]["rule"] == "VALIDATION_FAILED"
    mock_decline.assert_awaited_once()


@patch(APPROVE, new_callable=AsyncMock)
def test_webhook_event_appears_in_feed(mock_approve: AsyncMock, client: TestClient):
    client.post("/v1/webhooks", json=make_event(make_authorization_payload()))

    response = client.get("/v1/webhooks/events")

    data = response.json()
    assert data["count"] == 1
    event = data["events"][0]
    assert event["id"] == "evt_test_123"
    assert event["authorization_merchant"] == "Paul"
    assert event["authorization_decision"]["approved"] is True


def test_webhook_other_event_logged_only(client: TestClient):
    response = client.post("/v1/webhooks", json=make_event({"id": "ic_123"}, event_type="issuing_card.created"))

    assert response.status_code == 200
    data = response.json()
    assert data["relevant"] is True
    assert data["decision"] is None


def test_webhook_irrelevant_event_acknowledged(client: TestClient):
    response = client.post("/v1/webhooks", json=make_event({"id": "bal"}, event_type="balance.available"))

    assert response.status_code == 200
    assert response.json()["relevant"] is False


def test_webhook_invalid_json(client: TestClient):
    response = client.post("/v1/webhooks", content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400


@patch(APPROVE, new_callable=AsyncMock)
def test_webhook_signature_verified(mock_approve: AsyncMock, client: TestClient, monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")
    payload = json.dumps(make_event(make_authorization_payload()))

    response = client.post(
        "/v1/webhooks",
        content=payload,
        headers={"Content-Type": "application/json", "Stripe-Signature": signature_header(payload, "whsec_test")},
    )

    assert response.status_code == 200
    mock_approve.assert_awaited_once()


def test_webhook_bad_signature_rejected(client: TestClient, monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")
    payload = json.dumps(make_event(make_authorization_payload()))

    response = client.post(
        "/v1/webhooks",
        content=payload,
        headers={"Content-Type": "application/json", "Stripe-Signature": signature_header(payload, "whsec_other")},
    )

    assert response.status_code == 400
    assert client.get("/v1/webhooks/events").json()["count"] == 0


def test_webhook_malformed_envelope_fails_closed(client: TestClient):
    """A request event whose data is not an object is acknowledged and still fed"""
    event = make_event(make_authorization_payload())
    event["data"] = ["not", "an", "object"]

    response = client.post("/v1/webhooks", json=event)

    assert response.status_code == 200
    data = response.json()
    assert data["decision"]["rule"] == "VALIDATION_FAILED"
    assert data["delivery"]["status"] == "skipped"
    assert client.get("/v1/webhooks/events").json()["count"] == 1


@patch("issuing_gateway.infrastructure.dispatcher.AuthorizationDispatcher.dispatch", new_callable=AsyncMock)
def test_webhook_processing_error_still_feeds_event(mock_dispatch: AsyncMock, client: TestClient):
    mock_dispatch.side_effect = RuntimeError("boom")

    response = client.post("/v1/webhooks", json=make_event(make_authorization_payload()))

    assert response.status_code == 500
    events = client.get("/v1/webhooks/events").json()["events"]
    assert len(events) == 1
    assert events[0]["id"] == "evt_test_123"


def test_webhook_info(client: TestClient):
    response = client.get("/v1/webhooks")

    assert response.status_code == 200
    data = response.json()
    assert "issuing_authorization.request" in data["supported_events"]
    assert data["authorization_lifecycle"][0] == data["acted_on"] == "issuing_authorization.request"


def test_mock_event_and_clear_feed(client: TestClient):
    response = client.post("/v1/webhooks/test", json={"event_type": "issuing_card.created", "account": "acct_demo"})

    assert response.status_code == 200
    assert response.json()["event"]["account"] == "acct_demo"
    assert client.get("/v1/webhooks/events?limit=5").json()["count"] == 1

    cleared = client.delete("/v1/webhooks/events")
    assert cleared.json()["success"] is True
    assert client.get("/v1/webhooks/events").json()["events"] == []


def test_simulate_declines_over_limit(client: TestClient):
    """Test POST /v1/authorizations/simulate with a daily limit breach"""
    response = client.post(
        "/v1/authorizations/simulate",
        json={"amount": 7500, "merchant_name": "Paul", "merchant_category_code": "5812"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["requested_amount"] == 7500
    assert data["decision"]["approved"] is False
    assert data["decision"]["reason"] == "Daily limit exceeded (£75.00 > £25.00)"


def test_simulate_invalid_request(client: TestClient):
    response = client.post(
        "/v1/authorizations/simulate",
        json={"amount": -5, "merchant_name": "Paul", "merchant_category_code": "5812"},
    )

    assert response.status_code == 422


def test_list_scenarios(client: TestClient):
    response = client.get("/v1/authorizations/scenarios")

    assert response.status_code == 200
    scenarios = {s["key"]: s for s in response.json()["scenarios"]}
    assert scenarios["paul-success"]["expected_outcome"] == "approved"
    assert scenarios["gas-station-blocked"]["expected_outcome"] == "declined"
    assert scenarios["high-amount-declined"]["expected_outcome"] == "declined"
    assert scenarios["partial-authorization"]["expected_outcome"] == "partially_approved"
    assert scenarios["paul-success"]["amount_display"] == "£12.50"


@patch(CREATE_TEST, new_callable=AsyncMock)
def test_create_test_authorization_for_scenario(mock_create: AsyncMock, client: TestClient):
    mock_create.return_value = {
        "id": "iauth_test_1",
        "amount": 1250,
        "currency": "gbp",
        "approved": False,
        "status": "pending",
        "merchant_data": {"name": "Paul"},
    }

    response = client.post(
        "/v1/authorizations/test",
        json={"account_id": "acct_test_huel", "card_id": "ic_123", "scenario": "paul-success"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["authorization"]["id"] == "iauth_test_1"
    assert data["expected_outcome"]["approved"] is True
    kwargs = mock_create.call_args.kwargs
    assert kwargs["merchant_data"]["category"] == "eating_places_restaurants"
    assert kwargs["account"] == "acct_test_huel"
    assert kwargs["is_amount_controllable"] is False


@patch(CREATE_TEST, new_callable=AsyncMock)
def test_create_test_authorization_custom_merchant(mock_create: AsyncMock, client: TestClient):
    mock_create.return_value = {"id": "iauth_test_2", "amount": 4000}

    response = client.post(
        "/v1/authorizations/test",
        json={
            "account_id": "acct_test_huel",
            "card_id": "ic_123",
            "custom_amount": 4000,
            "custom_merchant": {"name": "Fuel Stop", "mcc": "5542"},
        },
    )

    assert response.status_code == 200
    assert response.json()["expected_outcome"]["outcome"] == "partially_approved"
    assert mock_create.call_args.kwargs["is_amount_controllable"] is True


@pytest.mark.parametrize(
    "body",
    [
        {"card_id": "ic_123", "scenario": "paul-success"},
        {"account_id": "acct_test_huel", "card_id": "ic_123", "scenario": "unknown"},
        {"account_id": "acct_test_huel", "card_id": "ic_123"},
    ],
)
def test_create_test_authorization_bad_request(client: TestClient, body):
    response = client.post("/v1/authorizations/test", json=body)

    assert response.status_code == 400


@patch(CREATE_TEST, new_callable=AsyncMock)
def test_create_test_authorization_provider_error(mock_create: AsyncMock, client: TestClient):
    mock_create.side_effect = ProviderAPIError("Issuing API error: 400 Missing required param: card.")

    response = client.post(
        "/v1/authorizations/test",
        json={"account_id": "acct_test_huel", "card_id": "ic_123", "scenario": "paul-success"},
    )

    assert response.status_code == 502


def test_get_policy(client: TestClient):
    response = client.get("/v1/policy")

    assert response.status_code == 200
    data = response.json()
    assert data["limits"][0] == {"period": "daily", "max_amount": 2500}
    assert data["category_rules"]["7995"]["allowed"] is False


def test_replace_policy_applies_to_next_evaluation(client: TestClient):
    policy = client.get("/v1/policy").json()
    policy["limits"] = [{"period": "daily", "max_amount": 10000}]

    response = client.put("/v1/policy", json=policy)
    assert response.status_code == 200

    simulated = client.post(
        "/v1/authorizations/simulate",
        json={"amount": 7500, "merchant_name": "Paul", "merchant_category_code": "5812"},
    )
    assert simulated.json()["decision"]["approved"] is True


@patch(DECLINE, new_callable=AsyncMock)
def test_category_rule_outside_slug_table_applies_to_webhook(mock_decline: AsyncMock, client: TestClient):
    """Webhook and simulate give the same decision for a rule on an unmapped MCC"""
    policy = client.get("/v1/policy").json()
    policy["category_rules"]["5999"] = {"allowed": False, "label": "Specialty Retail"}
    assert client.put("/v1/policy", json=policy).status_code == 200

    simulated = client.post(
        "/v1/authorizations/simulate",
        json={"amount": 1000, "merchant_name": "Curio Shop", "merchant_category_code": "5999"},
    )
    payload = make_authorization_payload(
        id="iauth_curio",
        merchant_data={"name": "Curio Shop", "category": "miscellaneous_specialty_retail", "category_code": "5999"},
        pending_request={"amount": 1000, "currency": "gbp", "is_amount_controllable": False},
    )
    received = client.post("/v1/webhooks", json=make_event(payload))

    assert simulated.json()["decision"]["outcome"] == "declined"
    assert received.json()["decision"]["outcome"] == "declined"
    assert received.json()["decision"]["rule"] == "CATEGORY_BLOCKED"
    mock_decline.assert_awaited_once()


@patch(CREATE_TEST, new_callable=AsyncMock)
def test_create_test_authorization_unmapped_mcc_sends_no_category(mock_create: AsyncMock, client: TestClient):
    mock_create.return_value = {"id": "iauth_test_3", "amount": 1000}

    response = client.post(
        "/v1/authorizations/test",
        json={
            "account_id": "acct_test_huel",
            "card_id": "ic_123",
            "custom_amount": 1000,
            "custom_merchant": {"name": "Curio Shop", "mcc": "5999"},
        },
    )

    assert response.status_code == 200
    assert mock_create.call_args.kwargs["merchant_data"]["category"] is None


def test_replace_policy_invalid_keeps_current(client: TestClient):
    response = client.put("/v1/policy", json={"limits": [{"period": "weekly", "max_amount": 1}]})

    assert response.status_code == 422
    assert client.get("/v1/policy").json()["limits"][0]["max_amount"] == 2500


@patch(APPROVE, new_callable=AsyncMock)
def test_decision_history(mock_approve: AsyncMock, client: TestClient):
    client.post("/v1/webhooks", json=make_event(make_authorization_payload()))

    response = client.get("/v1/authorizations/decisions?limit=10")

    assert response.status_code == 200
    decisions = response.json()["decisions"]
    assert len(decisions) == 1
    assert decisions[0]["authorization_id"] == "iauth_1NvPZb2eZvKYlo2C"
    assert decisions[0]["event_id"] == "evt_test_123"
    assert decisions[0]["amount"] == 1250


def test_decision_history_not_found(client: TestClient):
    response = client.get("/v1/authorizations/decisions/iauth_missing")

    assert response.status_code == 404
