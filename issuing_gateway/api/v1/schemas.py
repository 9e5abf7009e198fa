"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from issuing_gateway.domain.models import (
    AuthorizationRequest,
    CategoryRule,
    DecisionResult,
    DispatchOutcome,
    LimitPeriod,
    MerchantEntry,
    PolicyConfig,
    SpendingLimit,
)

MCC_PATTERN = r"^\d{4}$"


# Policy documents


class MerchantEntrySchema(BaseModel):
    """Merchant matcher: name substring and/or exact category code"""

    name_pattern: Optional[str] = Field(None, min_length=1)
    category_code: Optional[str] = Field(None, pattern=MCC_PATTERN)

    @model_validator(mode="after")
    def check_not_empty(self) -> "MerchantEntrySchema":
        if self.name_pattern is None and self.category_code is None:
            raise ValueError("merchant entry needs a name_pattern or a category_code")
        return self


class CategoryRuleSchema(BaseModel):
    allowed: bool
    label: str = Field(..., min_length=1)


class SpendingLimitSchema(BaseModel):
    period: LimitPeriod
    max_amount: int = Field(..., gt=0, description="Limit in minor currency units")


class PolicySchema(BaseModel):
    """Spending policy document, validated when loaded"""

    blocked_merchants: List[MerchantEntrySchema] = []
    allowed_merchants: List[MerchantEntrySchema] = []
    category_rules: Dict[str, CategoryRuleSchema] = {}
    limits: List[SpendingLimitSchema] = []

    @model_validator(mode="after")
    def check_category_codes(self) -> "PolicySchema":
        bad = [code for code in self.category_rules if not (len(code) == 4 and code.isdigit())]
        if bad:
            raise ValueError(f"category codes must be 4 digits: {', '.join(sorted(bad))}")
        return self

    def to_domain(self) -> PolicyConfig:
        return PolicyConfig(
            blocked_merchants=tuple(MerchantEntry(e.name_pattern, e.category_code) for e in self.blocked_merchants),
            allowed_merchants=tuple(MerchantEntry(e.name_pattern, e.category_code) for e in self.allowed_merchants),
            category_rules={code: CategoryRule(r.allowed, r.label) for code, r in self.category_rules.items()},
            limits=tuple(SpendingLimit(l.period, l.max_amount) for l in self.limits),
        )

    @classmethod
    def from_domain(cls, policy: PolicyConfig) -> "PolicySchema":
        return cls(
            blocked_merchants=[MerchantEntrySchema(**vars(e)) for e in policy.blocked_merchants],
            allowed_merchants=[MerchantEntrySchema(**vars(e)) for e in policy.allowed_merchants],
            category_rules={
                code: CategoryRuleSchema(allowed=r.allowed, label=r.label) for code, r in policy.category_rules.items()
            },
            limits=[SpendingLimitSchema(period=l.period, max_amount=l.max_amount) for l in policy.limits],
        )


# Decisions


class AuthorizationRequestSchema(BaseModel):
    """Request body for POST /v1/authorizations/simulate"""

    id: str = Field("iauth_simulated", min_length=1)
    amount: int = Field(..., ge=0, description="Requested amount in minor units")
    currency: str = Field("gbp", min_length=3, max_length=3)
    merchant_name: str = Field(..., min_length=1)
    merchant_category_code: str = Field(..., pattern=MCC_PATTERN)
    is_amount_controllable: bool = False

    def to_domain(self) -> AuthorizationRequest:
        return AuthorizationRequest(
            id=self.id,
            amount=self.amount,
            currency=self.currency.lower(),
            merchant_name=self.merchant_name,
            merchant_category_code=self.merchant_category_code,
            is_amount_controllable=self.is_amount_controllable,
        )


class DecisionSchema(BaseModel):
    """Evaluator output"""

    approved: bool
    approved_amount: int
    outcome: str
    reason: Optional[str] = None
    rule: Optional[str] = None
    evaluated_at: datetime

    @classmethod
    def from_domain(cls, decision: DecisionResult) -> "DecisionSchema":
        return cls(
            approved=decision.approved,
            approved_amount=decision.approved_amount,
            outcome=decision.outcome.value,
            reason=decision.reason,
            rule=decision.rule,
            evaluated_at=decision.evaluated_at,
        )


class DeliverySchema(BaseModel):
    """Provider callback result"""

    status: str
    error: Optional[str] = None
    duration_ms: float


class SimulationResponse(BaseModel):
    """Response for POST /v1/authorizations/simulate"""

    authorization_id: str
    requested_amount: int
    currency: str
    decision: DecisionSchema


class WebhookAck(BaseModel):
    """Response for POST /v1/webhooks"""

    received: bool = True
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    relevant: bool = False
    authorization_id: Optional[str] = None
    decision: Optional[DecisionSchema] = None
    delivery: Optional[DeliverySchema] = None

    @classmethod
    def with_outcome(cls, event_id: str, event_type: str, relevant: bool, outcome: DispatchOutcome) -> "WebhookAck":
        return cls(
            event_id=event_id,
            event_type=event_type,
            relevant=relevant,
            authorization_id=outcome.authorization_id,
            decision=DecisionSchema.from_domain(outcome.decision),
            delivery=DeliverySchema(
                status=outcome.delivery_status.value,
                error=outcome.delivery_error,
                duration_ms=outcome.duration_ms,
            ),
        )


# Test authorizations


class CustomMerchantSchema(BaseModel):
    name: str = Field(..., min_length=1)
    mcc: str = Field(..., pattern=MCC_PATTERN)
    city: str = "London"
    postal_code: str = "EC1A 1BB"


class AuthorizationTestRequest(BaseModel):
    """Request body for POST /v1/authorizations/test"""

    account_id: Optional[str] = None
    card_id: Optional[str] = None
    scenario: Optional[str] = None
    custom_amount: Optional[int] = Field(None, gt=0)
    custom_merchant: Optional[CustomMerchantSchema] = None
    currency: str = Field("gbp", min_length=3, max_length=3)


class AuthorizationTestResponse(BaseModel):
    """Response for POST /v1/authorizations/test"""

    success: bool = True
    scenario: Optional[str] = None
    description: str
    authorization: Dict[str, Any]
    expected_outcome: DecisionSchema
    webhook_triggered: bool = True


class ScenarioSchema(BaseModel):
    key: str
    title: str
    description: str
    merchant_name: str
    mcc: str
    amount: int
    amount_display: str
    is_amount_controllable: bool
    expected_outcome: str
    expected_reason: Optional[str] = None


class ScenarioListResponse(BaseModel):
    """Response for GET /v1/authorizations/scenarios"""

    scenarios: List[ScenarioSchema]


# History and event feed


class DecisionHistoryItem(BaseModel):
    """Single stored authorization decision"""

    decision_id: str
    authorization_id: Optional[str] = None
    event_id: Optional[str] = None
    account: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    merchant_name: Optional[str] = None
    merchant_category_code: Optional[str] = None
    approved: bool
    approved_amount: int
    outcome: str
    reason: Optional[str] = None
    rule: Optional[str] = None
    delivery_status: str
    delivery_error: Optional[str] = None
    duration_ms: float
    created_at: str


class DecisionHistoryResponse(BaseModel):
    """Response for GET /v1/authorizations/decisions"""

    decisions: List[DecisionHistoryItem]


class EventFeedResponse(BaseModel):
    """Response for GET /v1/webhooks/events"""

    success: bool = True
    events: List[Dict[str, Any]]
    count: int


class MockEventRequest(BaseModel):
    """Request body for POST /v1/webhooks/test"""

    event_type: str = "issuing_authorization.created"
    account: Optional[str] = None
