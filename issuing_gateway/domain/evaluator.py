"""Authorization decision evaluator - core business logic for real-time authorizations"""

from datetime import datetime, timezone
from typing import Optional

from issuing_gateway.domain.exceptions import ValidationError
from issuing_gateway.domain.models import (
    AuthorizationRequest,
    DecisionOutcome,
    DecisionResult,
    PolicyConfig,
    SpendingLimit,
)
from issuing_gateway.utils.money_utils import format_amount

MERCHANT_BLOCKED = "MERCHANT_BLOCKED"
CATEGORY_BLOCKED = "CATEGORY_BLOCKED"
SPENDING_LIMIT = "SPENDING_LIMIT"
VALIDATION_FAILED = "VALIDATION_FAILED"


def validate_request(request: AuthorizationRequest) -> None:
    """
    Reject requests the evaluator cannot decide on.

    Raises:
        ValidationError: On a missing id, amount, currency or merchant identity
    """
    if not isinstance(request.id, str) or not request.id:
        raise ValidationError("authorization id is required")
    # bool is an int subclass; True must not pass as an amount of 1
    if isinstance(request.amount, bool) or not isinstance(request.amount, int):
        raise ValidationError(f"amount must be an integer in minor units, got {request.amount!r}")
    if request.amount < 0:
        raise ValidationError(f"amount must not be negative, got {request.amount}")
    # Unknown codes are fine; the currency is only used for display
    if not isinstance(request.currency, str) or not request.currency.strip():
        raise ValidationError("currency is required")
    if not isinstance(request.merchant_name, str) or not request.merchant_name.strip():
        raise ValidationError("merchant name is required")
    if not isinstance(request.merchant_category_code, str) or not request.merchant_category_code.strip():
        raise ValidationError("merchant category code is required")
    if not isinstance(request.is_amount_controllable, bool):
        raise ValidationError("is_amount_controllable must be a boolean")


def find_breached_limit(amount: int, policy: PolicyConfig) -> Optional[SpendingLimit]:
    """Return the first limit the amount exceeds, in the policy's evaluation order"""
    for limit in policy.limits:
        if amount > limit.max_amount:
            return limit
    return None


def describe_limit_breach(request: AuthorizationRequest, limit: SpendingLimit) -> str:
    """Human-readable limit breach, amounts shown in major units"""
    return (
        f"{limit.period.value.capitalize()} limit exceeded "
        f"({format_amount(request.amount, request.currency)} > "
        f"{format_amount(limit.max_amount, request.currency)})"
    )


def evaluate_authorization(
    request: AuthorizationRequest,
    policy: PolicyConfig,
    now: Optional[datetime] = None,
) -> DecisionResult:
    """
    Decide an authorization request against a spending policy.

    Rules run in order and the first one that triggers wins:
    1. Blocked merchant entry -> decline (block beats allow)
    2. Allowed merchant entry -> skip category rules
    3. Category rule with allowed=False -> decline; unknown codes pass
    4. Spending limit breach -> decline, or approve 0 when the amount is controllable
    5. Otherwise approve the full amount

    Amounts are compared as raw minor-unit integers, whatever the currency.

    Raises:
        ValidationError: If the request is missing required fields
    """
    validate_request(request)
    evaluated_at = now or datetime.now(timezone.utc)

    def decline(reason: str, rule: str) -> DecisionResult:
        return DecisionResult(
            approved=False,
            approved_amount=0,
            outcome=DecisionOutcome.DECLINED,
            evaluated_at=evaluated_at,
            reason=reason,
            rule=rule,
        )

    name = request.merchant_name
    mcc = request.merchant_category_code

    # 1. Block list
    if any(entry.matches(name, mcc) for entry in policy.blocked_merchants):
        return decline("merchant blocked", MERCHANT_BLOCKED)

    # 2-3. Explicit allow skips category rules
    explicitly_allowed = any(entry.matches(name, mcc) for entry in policy.allowed_merchants)
    if not explicitly_allowed:
        rule = policy.category_rules.get(mcc)
        if rule is not None and not rule.allowed:
            return decline(f'Category "{rule.label}" blocked by spending controls', CATEGORY_BLOCKED)

    # 4. Spending limits
    breached = find_breached_limit(request.amount, policy)
    if breached is not None:
        reason = describe_limit_breach(request, breached)
        if request.is_amount_controllable:
            # 5. Controllable amounts (fuel dispensers) get a zero partial approval
            return DecisionResult(
                approved=True,
                approved_amount=0,
                outcome=DecisionOutcome.PARTIALLY_APPROVED,
                evaluated_at=evaluated_at,
                reason=f"Partial authorization: {reason}",
                rule=SPENDING_LIMIT,
            )
        return decline(reason, SPENDING_LIMIT)

    return DecisionResult(
        approved=True,
        approved_amount=request.amount,
        outcome=DecisionOutcome.APPROVED,
        evaluated_at=evaluated_at,
    )
