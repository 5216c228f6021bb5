"""Client for the upstream chat-completions service."""
from __future__ import annotations

from typing import Any, Protocol

import requests

from chatmeter.core.errors import UpstreamError
from chatmeter.core.logging import get_logger
from chatmeter.core.settings import Settings, get_settings

logger = get_logger(__name__)

MAX_DIAGNOSTIC_CHARS = 500


def truncate(text: str, limit: int = MAX_DIAGNOSTIC_CHARS) -> str:
    return text if len(text) <= limit else text[:limit] + "…"


class CompletionBackend(Protocol):
    def complete(self, prompt: str) -> str:
        """Return the reply text for ``prompt`` or raise :class:`UpstreamError`."""


class CompletionClient:
    """OpenAI-compatible ``/chat/completions`` client."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    @property
    def endpoint(self) -> str:
        return f"{self.settings.openai_base_url.rstrip('/')}/chat/completions"

    def _build_payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.settings.openai_model,
            "messages": [
                {"role": "system", "content": self.settings.system_prompt},
                {"role": "user", "content": prompt},
            ],
        }

    def _extract_reply(self, data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not isinstance(content, str) or not content:
            logger.warning("upstream_reply_missing", model=self.settings.openai_model)
            return self.settings.fallback_reply
        return content

    def complete(self, prompt: str) -> str:
        api_key = self.settings.openai_api_key
        if not api_key:
            logger.error("upstream_api_key_missing")
            raise UpstreamError("OPENAI_API_KEY missing")

        try:
            response = requests.post(
                self.endpoint,
                json=self._build_payload(prompt),
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.settings.upstream_timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.warning("upstream_failed", error=str(exc))
            raise UpstreamError("Upstream request failed", details=truncate(str(exc))) from exc

        body = response.text
        if not response.ok:
            logger.error("upstream_failed", status=response.status_code, body=truncate(body))
            raise UpstreamError(
                "Upstream completion failed",
                status=response.status_code,
                details=truncate(body),
            )

        try:
            data = response.json()
        except ValueError as exc:
            logger.error("upstream_invalid_json", body=truncate(body))
            raise UpstreamError("Invalid upstream response", details=truncate(body)) from exc
        return self._extract_reply(data)


__all__ = ["CompletionBackend", "CompletionClient", "truncate"]
