"""
Webhook provider: hands a turn to an external workflow over HTTP.

The workflow's reply shape is not fixed, so the reply text is sniffed with
an ordered list of extractors. Each one is total (returns None instead of
raising); the first hit wins and a pretty-printed JSON dump of the whole
body is the fallback.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

from parley.models import Message, ProviderTag
from parley.providers.base import BaseProvider

logger = logging.getLogger(__name__)


def _text(value) -> str | None:
    return value if isinstance(value, str) and value else None


def _whole_body(body) -> str | None:
    return body if isinstance(body, str) else None


def _field(*path: str) -> Callable[[Any], str | None]:
    def extract(body) -> str | None:
        node = body
        for key in path:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        return _text(node)
    extract.__name__ = "field:" + ".".join(path)
    return extract


def _first_element(body) -> str | None:
    if isinstance(body, list) and body:
        return extract_reply(body[0])
    return None


EXTRACTORS: list[Callable[[Any], str | None]] = [
    _whole_body,
    _field("message"),
    _field("response"),
    _field("data", "message"),
    _field("output"),
    _first_element,
]


def extract_reply(body) -> str:
    """Pull reply text out of an arbitrary JSON body. Never raises."""
    for extractor in EXTRACTORS:
        text = extractor(body)
        if text is not None:
            return text
    return json.dumps(body, indent=2, default=str)


class WebhookProvider(BaseProvider):
    """Provider that POSTs {message, threadId?, metadata?} to a workflow webhook."""

    tag = ProviderTag.WEBHOOK

    def __init__(self, url: str, api_key: str = "", timeout: float = 60, transport=None):
        super().__init__(url, api_key=api_key, timeout=timeout, transport=transport)

    @staticmethod
    def build_payload(content: str, thread_id: str | None = None, metadata: dict | None = None) -> dict:
        payload: dict = {"message": content}
        if thread_id:
            payload["threadId"] = thread_id
        if metadata:
            payload["metadata"] = metadata
        return payload

    async def send_message(
        self,
        content: str,
        thread_id: str | None = None,
        metadata: dict | None = None,
    ) -> Message:
        payload = self.build_payload(content, thread_id, metadata)
        async with self._client() as client:
            body = await self._request(client, "POST", "", "webhook", json=payload)

        return Message(
            id=f"webhook-{int(time.time() * 1000)}",
            role="assistant",
            content=extract_reply(body),
            provider=self.tag,
            metadata={**(metadata or {}), "webhook_response": body},
        )

    async def test_connection(self) -> bool:
        """Send a probe message; True when the workflow answers with any content."""
        try:
            reply = await self.send_message("test")
            return bool(reply.content)
        except Exception as e:
            logger.warning("Webhook connection test failed: %s", e)
            return False
