"""Authorization simulation, demo test authorizations and decision history"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from issuing_gateway.api.dependencies import get_issuing_client, get_policy_store, get_request_id
from issuing_gateway.api.v1.schemas import (
    AuthorizationRequestSchema,
    AuthorizationTestRequest,
    AuthorizationTestResponse,
    DecisionHistoryItem,
    DecisionHistoryResponse,
    DecisionSchema,
    ScenarioListResponse,
    ScenarioSchema,
    SimulationResponse,
)
from issuing_gateway.domain.defaults import MCC_CATEGORY_SLUGS
from issuing_gateway.domain.evaluator import evaluate_authorization
from issuing_gateway.domain.exceptions import ProviderAPIError, ValidationError
from issuing_gateway.domain.models import AuthorizationRequest
from issuing_gateway.domain.scenarios import SCENARIOS, DemoMerchant, get_scenario
from issuing_gateway.infrastructure.clients.issuing import IssuingClient
from issuing_gateway.infrastructure.database.models import AuthorizationDecisionRecord
from issuing_gateway.infrastructure.database.repositories import DecisionRepository
from issuing_gateway.infrastructure.database.session import get_db
from issuing_gateway.infrastructure.policy_store import PolicyStore
from issuing_gateway.utils.money_utils import format_amount

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/authorizations/simulate", response_model=SimulationResponse)
def simulate_authorization(
    body: AuthorizationRequestSchema,
    policy_store: PolicyStore = Depends(get_policy_store),
):
    """Evaluate an authorization against the current policy without contacting the provider"""
    request = body.to_domain()
    try:
        decision = evaluate_authorization(request, policy_store.current())
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return SimulationResponse(
        authorization_id=request.id,
        requested_amount=request.amount,
        currency=request.currency,
        decision=DecisionSchema.from_domain(decision),
    )


@router.get("/authorizations/scenarios", response_model=ScenarioListResponse)
def list_scenarios(policy_store: PolicyStore = Depends(get_policy_store)):
    """Demo scenarios with the outcome the current policy gives each of them"""
    policy = policy_store.current()
    scenarios = []
    for scenario in SCENARIOS.values():
        expected = evaluate_authorization(
            _scenario_request(scenario.key, scenario.merchant, scenario.amount, "gbp", scenario.is_amount_controllable),
            policy,
        )
        scenarios.append(
            ScenarioSchema(
                key=scenario.key,
                title=scenario.title,
                description=scenario.description,
                merchant_name=scenario.merchant.name,
                mcc=scenario.merchant.mcc,
                amount=scenario.amount,
                amount_display=format_amount(scenario.amount, "gbp"),
                is_amount_controllable=scenario.is_amount_controllable,
                expected_outcome=expected.outcome.value,
                expected_reason=expected.reason,
            )
        )
    return ScenarioListResponse(scenarios=scenarios)


@router.post("/authorizations/test", response_model=AuthorizationTestResponse)
async def create_test_authorization(
    body: AuthorizationTestRequest,
    request: Request,
    issuing_client: IssuingClient = Depends(get_issuing_client),
    policy_store: PolicyStore = Depends(get_policy_store),
):
    """
    Create a provider test authorization for a scenario or a custom merchant.

    The provider then fires issuing_authorization.request at the webhook
    receiver; the expected outcome returned here comes from the same evaluator.
    """
    request_id = get_request_id(request)
    if not body.account_id or not body.card_id:
        raise HTTPException(status_code=400, detail="account_id and card_id are required")

    if body.scenario:
        scenario = get_scenario(body.scenario)
        if scenario is None:
            raise HTTPException(
                status_code=400,
                detail=f"Unknown scenario '{body.scenario}' (available: {', '.join(SCENARIOS)})",
            )
        merchant, amount, description = scenario.merchant, scenario.amount, scenario.description
    elif body.custom_merchant and body.custom_amount:
        m = body.custom_merchant
        merchant = DemoMerchant(name=m.name, mcc=m.mcc, city=m.city, postal_code=m.postal_code)
        amount, description = body.custom_amount, "Custom test authorization"
    else:
        raise HTTPException(status_code=400, detail="Either scenario or custom_merchant and custom_amount is required")

    currency = body.currency.lower()
    controllable = merchant.mcc == "5542"
    expected = evaluate_authorization(
        _scenario_request(body.scenario or "custom", merchant, amount, currency, controllable),
        policy_store.current(),
    )

    start_time = time.time()
    try:
        authorization = await issuing_client.create_test_authorization(
            card_id=body.card_id,
            amount=amount,
            currency=currency,
            merchant_data={
                # None (MCC without a known slug) is left out of the form
                "category": MCC_CATEGORY_SLUGS.get(merchant.mcc),
                "city": merchant.city,
                "country": "GB",
                "name": merchant.name,
                "network_id": f"test_merch_{int(start_time * 1000)}",
                "postal_code": merchant.postal_code,
            },
            is_amount_controllable=controllable,
            account=body.account_id,
        )
    except ProviderAPIError as e:
        logger.error(f"Test authorization creation failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=502, detail=f"Failed to create test authorization: {e}")

    logger.info(
        "Test authorization created",
        extra={
            "request_id": request_id,
            "authorization_id": authorization.get("id"),
            "scenario": body.scenario,
            "duration_ms": (time.time() - start_time) * 1000,
        },
    )

    return AuthorizationTestResponse(
        scenario=body.scenario,
        description=description,
        authorization={
            key: authorization.get(key)
            for key in ("id", "amount", "currency", "approved", "status", "merchant_data")
        },
        expected_outcome=DecisionSchema.from_domain(expected),
    )


@router.get("/authorizations/decisions", response_model=DecisionHistoryResponse)
def get_decision_history(
    limit: int = Query(20, ge=1, le=200, description="Maximum number of decisions"),
    db: Session = Depends(get_db),
):
    """Most recent authorization decisions"""
    records = DecisionRepository(db).get_recent(limit=limit)
    return DecisionHistoryResponse(decisions=[_history_item(r) for r in records])


@router.get("/authorizations/decisions/{authorization_id}", response_model=DecisionHistoryResponse)
def get_authorization_decisions(authorization_id: str, db: Session = Depends(get_db)):
    """Decisions recorded for one authorization (more than one after webhook redelivery)"""
    records = DecisionRepository(db).get_by_authorization(authorization_id)
    if not records:
        raise HTTPException(status_code=404, detail="No decision recorded for this authorization")
    return DecisionHistoryResponse(decisions=[_history_item(r) for r in records])


def _scenario_request(
    key: str,
    merchant: DemoMerchant,
    amount: int,
    currency: str,
    controllable: bool,
) -> AuthorizationRequest:
    return AuthorizationRequest(
        id=f"iauth_expected_{key}",
        amount=amount,
        currency=currency,
        merchant_name=merchant.name,
        merchant_category_code=merchant.mcc,
        is_amount_controllable=controllable,
    )


def _history_item(record: AuthorizationDecisionRecord) -> DecisionHistoryItem:
    return DecisionHistoryItem(
        decision_id=str(record.id),
        authorization_id=record.authorization_id,
        event_id=record.event_id,
        account=record.account,
        amount=record.amount,
        currency=record.currency,
        merchant_name=record.merchant_name,
        merchant_category_code=record.merchant_category_code,
        approved=record.approved,
        approved_amount=record.approved_amount,
        outcome=record.outcome,
        reason=record.reason,
        rule=record.rule,
        delivery_status=record.delivery_status,
        delivery_error=record.delivery_error,
        duration_ms=record.duration_ms,
        created_at=record.created_at.isoformat(),
    )
