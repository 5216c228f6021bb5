"""Metrics and error reporting for the gateway."""
from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

from chatmeter.core.logging import get_logger
from chatmeter.core.settings import Settings, get_settings

try:  # Optional
    import sentry_sdk
except Exception:  # pragma: no cover
    sentry_sdk = None  # type: ignore

logger = get_logger(__name__)

QUOTA_DENIALS = Counter(
    "chatmeter_quota_denials_total",
    "Chat requests refused because the monthly quota was reached",
    ["plan"],
)
UPSTREAM_FAILURES = Counter(
    "chatmeter_upstream_failures_total",
    "Completion requests that failed upstream",
)
SNAPSHOT_FAILURES = Counter(
    "chatmeter_snapshot_failures_total",
    "Registry snapshot writes that failed",
)
MESSAGES_RECORDED = Counter(
    "chatmeter_messages_recorded_total",
    "Successful chat messages counted against a quota",
    ["plan"],
)


def configure_observability(app: FastAPI, settings: Settings | None = None) -> None:
    settings = settings or get_settings()

    if settings.enable_prometheus:
        Instrumentator().instrument(app, metric_namespace=settings.metrics_namespace).expose(
            app, include_in_schema=False
        )

    if settings.sentry_dsn:
        if sentry_sdk is None:  # pragma: no cover - optional dependency not installed
            logger.warning("sentry_not_available", dsn="configured_but_missing_dependency")
            return
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=0.2,
            environment=settings.environment,
        )
        logger.info("sentry_initialised", environment=settings.environment)


__all__ = [
    "configure_observability",
    "MESSAGES_RECORDED",
    "QUOTA_DENIALS",
    "SNAPSHOT_FAILURES",
    "UPSTREAM_FAILURES",
]
