"""Metered chat flow: quota check, upstream call, usage recording."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from chatmeter.core.errors import UpstreamError, ValidationError
from chatmeter.core.logging import get_logger, mask_token
from chatmeter.core.observability import MESSAGES_RECORDED, QUOTA_DENIALS, UPSTREAM_FAILURES
from chatmeter.services.registry import Caller, RegistryService
from chatmeter.services.upstream import CompletionBackend

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ChatResult:
    reply: str
    period: str
    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)


def normalize_message(message: Any) -> str:
    if message is None:
        return ""
    return str(message).strip()


class ChatGateway:
    def __init__(self, registry: RegistryService, upstream: CompletionBackend) -> None:
        self.registry = registry
        self.upstream = upstream

    def chat(self, caller: Caller, message: Any) -> ChatResult:
        prompt = normalize_message(message)
        if not prompt:
            raise ValidationError("Empty message")

        period = self.registry.period()
        decision = self.registry.check_and_reserve(caller.plan, caller.token)
        if not decision.allowed:
            QUOTA_DENIALS.labels(plan=caller.plan_name).inc()
            logger.info(
                "quota_denied",
                token=mask_token(caller.token),
                plan=caller.plan_name,
                used=decision.used,
                limit=decision.limit,
            )
            decision.raise_for_denial(period)

        # no registry or counter lock is held here
        try:
            reply = self.upstream.complete(prompt)
        except UpstreamError:
            UPSTREAM_FAILURES.inc()
            raise

        used = self.registry.record_success(caller.token)
        MESSAGES_RECORDED.labels(plan=caller.plan_name).inc()
        logger.info("chat_forwarded", token=mask_token(caller.token), plan=caller.plan_name, used=used)
        return ChatResult(reply=reply, period=period, used=used, limit=caller.plan.monthly_limit)


__all__ = ["ChatGateway", "ChatResult", "normalize_message"]
