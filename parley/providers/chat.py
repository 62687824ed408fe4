"""
Single-shot completion provider.

Stateless: nothing is remembered between turns. The caller resubmits the
whole prior conversation on every call and this provider lays it out as
  [system?] + history + [user]
for one POST to /chat/completions.
"""

from __future__ import annotations

import logging

from parley.capabilities import request_params
from parley.models import Message, ProviderTag
from parley.providers.base import BaseProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
FALLBACK_MODELS = ["gpt-4o-mini", "gpt-4o", "gpt-3.5-turbo"]


class ChatCompletionProvider(BaseProvider):
    """Provider for an OpenAI-style chat completions endpoint."""

    tag = ProviderTag.CHAT

    def __init__(
        self,
        api_key: str,
        url: str = "https://api.openai.com/v1",
        timeout: float = 60,
        default_model: str = DEFAULT_MODEL,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        transport=None,
    ):
        super().__init__(url, api_key=api_key, timeout=timeout, transport=transport)
        self.default_model = default_model or DEFAULT_MODEL
        self.max_tokens = max_tokens
        self.temperature = temperature

    @staticmethod
    def build_messages(
        content: str,
        history: list[Message] | None = None,
        system_prompt: str | None = None,
    ) -> list[dict]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.extend(m.to_openai_format() for m in history or [])
        messages.append({"role": "user", "content": content})
        return messages

    def build_request(
        self,
        content: str,
        history: list[Message] | None = None,
        model: str | None = None,
        reasoning_effort: str | None = None,
        verbosity: str | None = None,
        system_prompt: str | None = None,
    ) -> dict:
        model = model or self.default_model
        body = {
            "model": model,
            "messages": self.build_messages(content, history, system_prompt),
        }
        body.update(request_params(
            model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            reasoning_effort=reasoning_effort,
            verbosity=verbosity,
        ))
        return body

    async def send_message(
        self,
        content: str,
        history: list[Message] | None = None,
        model: str | None = None,
        reasoning_effort: str | None = None,
        verbosity: str | None = None,
        system_prompt: str | None = None,
    ) -> Message:
        body = self.build_request(content, history, model, reasoning_effort, verbosity, system_prompt)
        logger.debug(
            "Completion request: model=%s, %d messages", body["model"], len(body["messages"]),
        )

        async with self._client() as client:
            data = await self._request(client, "POST", "/chat/completions", "completion", json=body)

        choices = data.get("choices") if isinstance(data, dict) else None
        reply = ""
        if choices and isinstance(choices[0], dict):
            reply = (choices[0].get("message") or {}).get("content") or ""
        if not reply:
            raise self._error("completion", "No response content received")

        kwargs = {}
        if data.get("id"):
            kwargs["id"] = data["id"]
        return Message(
            role="assistant",
            content=reply,
            provider=self.tag,
            metadata={"model": body["model"], "usage": data.get("usage")},
            **kwargs,
        )

    async def list_models(self) -> list[str]:
        """Chat-capable model ids, sorted. Falls back to a fixed list on any failure."""
        try:
            async with self._client() as client:
                data = await self._request(client, "GET", "/models", "list_models")
            models = [m.get("id", "") for m in data.get("data", [])]
            return sorted(m for m in models if "gpt" in m)
        except Exception as e:
            logger.warning("Failed to list models, using fallback list: %s", e)
            return list(FALLBACK_MODELS)
