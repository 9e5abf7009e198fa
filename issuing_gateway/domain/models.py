"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple


class LimitPeriod(str, Enum):
    """Spending limit interval"""

    DAILY = "daily"
    MONTHLY = "monthly"


class DecisionOutcome(str, Enum):
    """Terminal state of the requested step in the authorization lifecycle"""

    APPROVED = "approved"
    DECLINED = "declined"
    PARTIALLY_APPROVED = "partially_approved"


class DeliveryStatus(str, Enum):
    """Result of calling the provider back with a decision"""

    DELIVERED = "delivered"
    FAILED = "failed"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class AuthorizationRequest:
    """Real-time authorization attempt extracted from a provider event"""

    id: str
    amount: int  # minor units
    currency: str
    merchant_name: str
    merchant_category_code: str
    is_amount_controllable: bool = False


@dataclass(frozen=True)
class MerchantEntry:
    """Merchant matcher; every field that is set must match"""

    name_pattern: Optional[str] = None
    category_code: Optional[str] = None

    def matches(self, merchant_name: str, category_code: str) -> bool:
        if self.name_pattern is not None and self.name_pattern.lower() not in merchant_name.lower():
            return False
        if self.category_code is not None and self.category_code != category_code:
            return False
        return self.name_pattern is not None or self.category_code is not None


@dataclass(frozen=True)
class CategoryRule:
    """Allow/block rule for a merchant category code"""

    allowed: bool
    label: str


@dataclass(frozen=True)
class SpendingLimit:
    """Maximum amount for a single authorization within a period"""

    period: LimitPeriod
    max_amount: int  # minor units


# Tightest limit first; daily wins a tie so the narrower period is reported
_PERIOD_RANK = {LimitPeriod.DAILY: 0, LimitPeriod.MONTHLY: 1}


@dataclass(frozen=True)
class PolicyConfig:
    """
    Read-only spending policy snapshot.

    Limits are stored in evaluation order: ascending max_amount, daily before
    monthly on ties. Category rules are exposed as a read-only mapping so a
    snapshot can be shared across concurrent evaluations.
    """

    blocked_merchants: Tuple[MerchantEntry, ...] = ()
    allowed_merchants: Tuple[MerchantEntry, ...] = ()
    category_rules: Mapping[str, CategoryRule] = field(default_factory=dict)
    limits: Tuple[SpendingLimit, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "blocked_merchants", tuple(self.blocked_merchants))
        object.__setattr__(self, "allowed_merchants", tuple(self.allowed_merchants))
        object.__setattr__(self, "category_rules", MappingProxyType(dict(self.category_rules)))
        object.__setattr__(
            self,
            "limits",
            tuple(sorted(self.limits, key=lambda l: (l.max_amount, _PERIOD_RANK[l.period]))),
        )


@dataclass(frozen=True)
class DecisionResult:
    """Output of the authorization evaluator"""

    approved: bool
    approved_amount: int
    outcome: DecisionOutcome
    evaluated_at: datetime
    reason: Optional[str] = None
    rule: Optional[str] = None  # MERCHANT_BLOCKED | CATEGORY_BLOCKED | SPENDING_LIMIT | VALIDATION_FAILED


@dataclass(frozen=True)
class DispatchOutcome:
    """Decision plus the provider callback result for one authorization request"""

    authorization_id: Optional[str]
    decision: DecisionResult
    delivery_status: DeliveryStatus
    duration_ms: float
    request: Optional[AuthorizationRequest] = None
    delivery_error: Optional[str] = None
