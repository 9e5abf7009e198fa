"""Data access layer for authorization decisions"""

from typing import List, Optional
from sqlalchemy.orm import Session
from issuing_gateway.infrastructure.database.models import AuthorizationDecisionRecord
from issuing_gateway.domain.models import DispatchOutcome


class DecisionRepository:
    """Repository for authorization decisions"""

    def __init__(self, db: Session):
        self.db = db

    def record_outcome(
        self,
        outcome: DispatchOutcome,
        event_id: Optional[str] = None,
        account: Optional[str] = None,
    ) -> AuthorizationDecisionRecord:
        """Persist a dispatched authorization decision"""
        request = outcome.request
        decision = outcome.decision
        record = AuthorizationDecisionRecord(
            authorization_id=outcome.authorization_id,
            event_id=event_id,
            account=account,
            amount=request.amount if request else None,
            currency=request.currency if request else None,
            merchant_name=request.merchant_name if request else None,
            merchant_category_code=request.merchant_category_code if request else None,
            is_amount_controllable=request.is_amount_controllable if request else None,
            approved=decision.approved,
            approved_amount=decision.approved_amount,
            outcome=decision.outcome.value,
            reason=decision.reason,
            rule=decision.rule,
            delivery_status=outcome.delivery_status.value,
            delivery_error=outcome.delivery_error,
            duration_ms=outcome.duration_ms,
            evaluated_at=decision.evaluated_at,
        )
        self.db.add(record)
        self.db.flush()  # Get ID without committing
        return record

    def get_recent(self, limit: int = 20) -> List[AuthorizationDecisionRecord]:
        """Fetch the most recent decisions"""
        return (
            self.db.query(AuthorizationDecisionRecord)
            .order_by(AuthorizationDecisionRecord.created_at.desc(), AuthorizationDecisionRecord.evaluated_at.desc())
            .limit(limit)
            .all()
        )

    def get_by_authorization(self, authorization_id: str) -> List[AuthorizationDecisionRecord]:
        """Every decision recorded for an authorization, redeliveries included"""
        return (
            self.db.query(AuthorizationDecisionRecord)
            .filter(AuthorizationDecisionRecord.authorization_id == authorization_id)
            .order_by(AuthorizationDecisionRecord.created_at.desc(), AuthorizationDecisionRecord.evaluated_at.desc())
            .all()
        )
