"""Logging utilities using structlog."""
from __future__ import annotations

import logging

import structlog


def setup_logging(level: int = logging.INFO, json_logs: bool = True) -> None:
    logging.basicConfig(level=level, format="%(message)s")
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.add_log_level,
            structlog.processors.dict_tracebacks,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def mask_token(token: str | None) -> str:
    """Shorten a client token for log output."""
    if not token:
        return "-"
    if len(token) <= 6:
        return "***"
    return f"{token[:3]}***{token[-2:]}"


__all__ = ["setup_logging", "get_logger", "mask_token"]
