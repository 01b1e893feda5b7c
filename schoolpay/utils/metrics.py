"""
Prometheus metrics for observability
"""

import re
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.core import CollectorRegistry

# Custom registry so tests and multiple app instances don't collide on the global one
metrics_registry = CollectorRegistry()

# HTTP request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["path", "method", "status"],
    registry=metrics_registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["path", "method"],
    registry=metrics_registry,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Webhook metrics
webhook_received_total = Counter(
    "paystack_webhook_received_total",
    "Total authenticated Paystack webhook requests",
    ["event_type"],
    registry=metrics_registry,
)

webhook_rejected_total = Counter(
    "paystack_webhook_rejected_total",
    "Total Paystack webhook requests rejected",
    ["reason"],  # WEBHOOK_INVALID_SIGNATURE, WEBHOOK_MISSING_HEADER, INVALID_PAYLOAD
    registry=metrics_registry,
)

payments_applied_total = Counter(
    "payments_applied_total",
    "Payments run through the transaction applier",
    ["outcome"],  # processed, duplicate, ignored, unresolved, failed
    registry=metrics_registry,
)

# Provisioning metrics
provisioning_results_total = Counter(
    "virtual_account_provisioning_total",
    "Virtual account provisioning results per beneficiary",
    ["result"],  # success, failed, skipped
    registry=metrics_registry,
)

provider_retries_total = Counter(
    "provider_rate_limit_retries_total",
    "Retries caused by provider rate limiting",
    registry=metrics_registry,
)

# Reconciliation metrics
reconciliation_findings_total = Counter(
    "reconciliation_findings_total",
    "Findings reported by reconciliation runs",
    ["kind"],  # unmatched, duplicate, orphaned
    registry=metrics_registry,
)

# Rate limiting metrics
rate_limited_total = Counter(
    "rate_limited_total",
    "Total requests rate limited",
    ["group"],  # webhook, admin
    registry=metrics_registry,
)


def record_http_request(
    path: str,
    method: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """
    Record HTTP request metrics.

    Args:
        path: Request path (normalized before labelling)
        method: HTTP method
        status_code: Response status code
        duration_seconds: Request duration in seconds
    """
    normalized_path = _normalize_path(path)

    http_requests_total.labels(
        path=normalized_path,
        method=method.upper(),
        status=str(status_code),
    ).inc()

    http_request_duration_seconds.labels(
        path=normalized_path,
        method=method.upper(),
    ).observe(duration_seconds)


def record_webhook_received(event_type: str) -> None:
    webhook_received_total.labels(event_type=event_type or "unknown").inc()


def record_webhook_rejected(reason: str) -> None:
    webhook_rejected_total.labels(reason=reason).inc()


def record_payment_outcome(outcome: str) -> None:
    payments_applied_total.labels(outcome=outcome).inc()


def record_provisioning_result(result: str, count: int = 1) -> None:
    if count > 0:
        provisioning_results_total.labels(result=result).inc(count)


def record_provider_retry() -> None:
    provider_retries_total.inc()


def record_reconciliation_findings(kind: str, count: int) -> None:
    if count > 0:
        reconciliation_findings_total.labels(kind=kind).inc(count)


def record_rate_limit_exceeded(group: str) -> None:
    rate_limited_total.labels(group=group).inc()


def _normalize_path(path: str) -> str:
    """
    Normalize path for metrics (replace UUIDs and numeric IDs with placeholders).

    Examples:
        /admin/v1/transactions/123e4567-.../reverse -> /admin/v1/transactions/{id}/reverse
        /webhooks/v1/paystack -> /webhooks/v1/paystack
    """
    path = re.sub(
        r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}',
        '{id}',
        path,
        flags=re.IGNORECASE,
    )
    path = re.sub(r'/\d+(?=/|$)', '/{id}', path)
    return path


def get_metrics_output() -> bytes:
    """Get Prometheus metrics output"""
    return generate_latest(metrics_registry)


__all__ = [
    "CONTENT_TYPE_LATEST",
    "get_metrics_output",
    "record_http_request",
    "record_webhook_received",
    "record_webhook_rejected",
    "record_payment_outcome",
    "record_provisioning_result",
    "record_provider_retry",
    "record_reconciliation_findings",
    "record_rate_limit_exceeded",
]
