"""Prometheus metrics for authorization outcomes, provider callbacks and webhook traffic"""

from prometheus_client import Counter, Histogram

from issuing_gateway.domain.models import DispatchOutcome

# Decision metrics
decision_counter = Counter(
    "issuing_authorization_decision_total",
    "Total authorization decisions made",
    ["outcome"],  # approved | declined | partially_approved
)

decline_rule_counter = Counter(
    "issuing_authorization_rule_triggered_total",
    "Authorizations where a policy rule triggered",
    ["rule"],  # MERCHANT_BLOCKED | CATEGORY_BLOCKED | SPENDING_LIMIT | VALIDATION_FAILED
)

authorization_duration_histogram = Histogram(
    "issuing_authorization_processing_seconds",
    "Time from webhook receipt to provider callback completion",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 1.5, 2.0, 5.0],
)

# Provider callback metrics
provider_callback_latency_histogram = Histogram(
    "issuing_provider_callback_latency_seconds",
    "Approve/decline call response time",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 1.5, 2.0],
)

provider_callback_failure_counter = Counter(
    "issuing_provider_callback_failures_total",
    "Approve/decline calls that did not reach the provider",
    ["status"],  # failed | timeout
)

# Webhook metrics
webhook_event_counter = Counter(
    "issuing_webhook_events_total",
    "Webhook events received",
    ["event_type"],
)

webhook_rejected_counter = Counter(
    "issuing_webhook_rejected_total",
    "Webhook deliveries rejected before processing",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_authorization(outcome: DispatchOutcome) -> None:
    """Record decision, rule and callback metrics for one authorization"""
    decision = outcome.decision
    decision_counter.labels(outcome=decision.outcome.value).inc()
    if decision.rule:
        decline_rule_counter.labels(rule=decision.rule).inc()
    authorization_duration_histogram.observe(outcome.duration_ms / 1000)
