"""
Assistant provider: stateful thread/run API.

One turn is five calls:
  thread create (only when no thread id is given) → message append →
  run create → run retrieve (polled by RunPoller) → message list

The backend owns the history, so the whole ordered thread is returned and
the caller takes the last message as the reply. Nothing here is retried:
a thread or message that was already created must not be duplicated.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx

from parley.errors import ProviderError
from parley.models import Message, ProviderTag, Run, RunStatus
from parley.providers.base import BaseProvider
from parley.runs import DEFAULT_POLL_INTERVAL, DEFAULT_RUN_TIMEOUT, RunPoller

logger = logging.getLogger(__name__)


@dataclass
class AssistantReply:
    messages: list[Message] = field(default_factory=list)
    thread_id: str = ""

    @property
    def reply(self) -> Message:
        if not self.messages:
            raise ProviderError("Thread has no messages", provider=ProviderTag.ASSISTANT.value, stage="messages")
        return self.messages[-1]


class AssistantProvider(BaseProvider):
    """Provider for an OpenAI-style assistants (threads/runs) API."""

    tag = ProviderTag.ASSISTANT

    def __init__(
        self,
        api_key: str,
        url: str = "https://api.openai.com/v1",
        timeout: float = 60,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        run_timeout: float = DEFAULT_RUN_TIMEOUT,
        clock=time.monotonic,
        sleep=asyncio.sleep,
        transport=None,
    ):
        super().__init__(url, api_key=api_key, timeout=timeout, transport=transport)
        self.poll_interval = poll_interval
        self.run_timeout = run_timeout
        self._clock = clock
        self._sleep = sleep

    def _headers(self) -> dict:
        headers = super()._headers()
        headers["OpenAI-Beta"] = "assistants=v2"
        return headers

    # ------------------------------------------------------------------
    # Individual backend calls
    # ------------------------------------------------------------------

    async def create_thread(self, client: httpx.AsyncClient) -> str:
        data = await self._request(client, "POST", "/threads", "create_thread", json={})
        thread_id = data.get("id") if isinstance(data, dict) else None
        if not thread_id:
            raise self._error("create_thread", "Backend returned no thread id")
        logger.info("Created thread %s", thread_id)
        return thread_id

    async def add_message(self, client: httpx.AsyncClient, thread_id: str, content: str):
        await self._request(
            client, "POST", f"/threads/{thread_id}/messages", "add_message",
            json={"role": "user", "content": content},
        )

    async def create_run(self, client: httpx.AsyncClient, thread_id: str, assistant_id: str) -> Run:
        data = await self._request(
            client, "POST", f"/threads/{thread_id}/runs", "create_run",
            json={"assistant_id": assistant_id},
        )
        return self._parse_run(data, thread_id, "create_run", assistant_id)

    async def retrieve_run(self, client: httpx.AsyncClient, thread_id: str, run_id: str) -> Run:
        data = await self._request(client, "GET", f"/threads/{thread_id}/runs/{run_id}", "retrieve_run")
        return self._parse_run(data, thread_id, "retrieve_run")

    async def list_messages(self, client: httpx.AsyncClient, thread_id: str) -> list[Message]:
        data = await self._request(
            client, "GET", f"/threads/{thread_id}/messages", "list_messages",
            params={"order": "asc"},
        )
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise self._error("list_messages", "Message list missing 'data'")
        return [self._parse_message(m, thread_id) for m in data["data"]]

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    async def send_message(
        self,
        content: str,
        assistant_id: str,
        thread_id: str | None = None,
    ) -> AssistantReply:
        async with self._client() as client:
            thread_id = thread_id or await self.create_thread(client)
            await self.add_message(client, thread_id, content)
            run = await self.create_run(client, thread_id, assistant_id)

            async def fetch(tid: str, rid: str) -> Run:
                return await self.retrieve_run(client, tid, rid)

            poller = RunPoller(
                fetch,
                interval=self.poll_interval,
                timeout=self.run_timeout,
                clock=self._clock,
                sleep=self._sleep,
            )
            run = await poller.wait(thread_id, run.id)

            if run.status is not RunStatus.COMPLETED:
                detail = f": {run.last_error}" if run.last_error else ""
                raise self._error("run", f"Run {run.id} ended as {run.status.value}{detail}")

            messages = await self.list_messages(client, thread_id)

        logger.info(
            "Assistant %s answered on thread %s (%d messages, %d polls)",
            assistant_id, thread_id, len(messages), poller.polls,
        )
        return AssistantReply(messages=messages, thread_id=thread_id)

    async def list_assistants(self, limit: int = 20) -> list[dict]:
        """Newest assistants first."""
        async with self._client() as client:
            data = await self._request(
                client, "GET", "/assistants", "list_assistants",
                params={"order": "desc", "limit": limit},
            )
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise self._error("list_assistants", "Assistant list missing 'data'")
        return [
            {
                "id": a.get("id", ""),
                "name": a.get("name") or "Unnamed Assistant",
                "description": a.get("description"),
                "model": a.get("model", ""),
                "instructions": a.get("instructions"),
                "tools": a.get("tools") or [],
            }
            for a in data["data"]
            if isinstance(a, dict)
        ]

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def _parse_run(self, data, thread_id: str, stage: str, assistant_id: str = "") -> Run:
        if not isinstance(data, dict) or not data.get("id"):
            raise self._error(stage, "Backend returned no run id")
        try:
            status = RunStatus(data.get("status"))
        except ValueError:
            raise self._error(stage, f"Unknown run status {data.get('status')!r}") from None
        last_error = data.get("last_error") or {}
        return Run(
            id=data["id"],
            status=status,
            thread_id=thread_id,
            assistant_id=data.get("assistant_id") or assistant_id,
            last_error=last_error.get("message", "") if isinstance(last_error, dict) else str(last_error),
        )

    def _parse_message(self, data: dict, thread_id: str) -> Message:
        created = data.get("created_at")
        created_at = (
            datetime.fromtimestamp(created, tz=timezone.utc)
            if isinstance(created, (int, float))
            else datetime.now(timezone.utc)
        )
        role = data.get("role") if data.get("role") in ("user", "assistant") else "assistant"
        return Message(
            id=data.get("id", ""),
            role=role,
            content=self._extract_text(data.get("content")),
            created_at=created_at,
            provider=self.tag,
            metadata={"thread_id": thread_id},
        )

    @staticmethod
    def _extract_text(content) -> str:
        """Join the text parts of a message; images and files are skipped."""
        if isinstance(content, str):
            return content
        parts = []
        for item in content or []:
            if isinstance(item, dict) and item.get("type") == "text":
                parts.append((item.get("text") or {}).get("value", ""))
        return "\n".join(parts)
