"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from issuing_gateway.config import settings
from issuing_gateway.domain.models import DispatchOutcome


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_authorization_decision(outcome: DispatchOutcome, request_id: Optional[str] = None) -> None:
    """Log structured authorization outcome for analysis"""
    request = outcome.request
    decision = outcome.decision
    logging.info(
        "Authorization decided",
        extra={
            "request_id": request_id,
            "authorization_id": outcome.authorization_id,
            "step": "authorization_decision",
            "outcome": decision.outcome.value,
            "requested_amount": request.amount if request else None,
            "approved_amount": decision.approved_amount,
            "currency": request.currency if request else None,
            "merchant_category_code": request.merchant_category_code if request else None,
            "rule": decision.rule,
            "reason": decision.reason,
            "delivery_status": outcome.delivery_status.value,
            "delivery_error": outcome.delivery_error,
            "duration_ms": outcome.duration_ms,
        },
    )
