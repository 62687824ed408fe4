"""
Tests for the assistant (threads/runs) provider.
A small fake backend stands in for the API; time is faked so polling is instant.
"""

import json

import httpx
import pytest

from parley.errors import ProviderError, RunTimeoutError, UnsupportedActionError
from parley.models import ProviderTag
from parley.providers.assistant import AssistantProvider


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.now += seconds


class FakeAssistantsAPI:
    """Answers the five thread/run calls from canned data and records each request."""

    def __init__(self, run_statuses=("in_progress", "completed"), last_error=None):
        self.run_statuses = list(run_statuses)
        self.last_error = last_error
        self.calls: list[tuple[str, str]] = []
        self.bodies: list[dict] = []
        self.headers: list[httpx.Headers] = []
        self.polls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1")
        self.calls.append((request.method, path))
        self.headers.append(request.headers)
        if request.content:
            self.bodies.append(json.loads(request.content))

        if request.method == "POST" and path == "/threads":
            return httpx.Response(200, json={"id": "thread_new"})
        if request.method == "POST" and path.endswith("/messages"):
            return httpx.Response(200, json={"id": "msg_user"})
        if request.method == "POST" and path.endswith("/runs"):
            return httpx.Response(200, json={"id": "run_1", "status": "queued", "assistant_id": "asst_1"})
        if request.method == "GET" and "/runs/" in path:
            status = self.run_statuses[min(self.polls, len(self.run_statuses) - 1)]
            self.polls += 1
            body = {"id": "run_1", "status": status, "assistant_id": "asst_1"}
            if self.last_error:
                body["last_error"] = {"code": "server_error", "message": self.last_error}
            return httpx.Response(200, json=body)
        if request.method == "GET" and path.endswith("/messages"):
            thread = path.split("/")[2]
            return httpx.Response(200, json={"data": [
                {"id": "msg_user", "role": "user", "created_at": 1700000000,
                 "content": [{"type": "text", "text": {"value": "hi"}}]},
                {"id": "msg_bot", "role": "assistant", "created_at": 1700000005,
                 "content": [
                     {"type": "text", "text": {"value": f"hello from {thread}"}},
                     {"type": "image_file", "image_file": {"file_id": "f1"}},
                     {"type": "text", "text": {"value": "second part"}},
                 ]},
            ]})
        if request.method == "GET" and path == "/assistants":
            return httpx.Response(200, json={"data": [
                {"id": "asst_1", "name": "Helper", "model": "gpt-4o"},
                {"id": "asst_2", "name": None, "model": "gpt-4o-mini", "tools": [{"type": "file_search"}]},
            ]})
        return httpx.Response(404, json={"error": "no route"})


def make_provider(api, clock=None, run_timeout=30.0):
    clock = clock or FakeClock()
    return AssistantProvider(
        api_key="sk-test",
        url="https://api.test/v1",
        run_timeout=run_timeout,
        clock=clock,
        sleep=clock.sleep,
        transport=httpx.MockTransport(api),
    )


@pytest.mark.asyncio
async def test_new_thread_turn_makes_five_calls():
    api = FakeAssistantsAPI()
    result = await make_provider(api).send_message("hi", "asst_1")

    assert [c[0] for c in api.calls] == ["POST", "POST", "POST", "GET", "GET", "GET"]
    assert api.calls[0] == ("POST", "/threads")
    assert api.calls[1] == ("POST", "/threads/thread_new/messages")
    assert api.calls[2] == ("POST", "/threads/thread_new/runs")
    assert api.calls[3] == ("GET", "/threads/thread_new/runs/run_1")
    assert api.calls[-1] == ("GET", "/threads/thread_new/messages")

    assert result.thread_id == "thread_new"
    assert [m.role for m in result.messages] == ["user", "assistant"]
    assert result.reply.id == "msg_bot"
    assert result.reply.content == "hello from thread_new\nsecond part"
    assert result.reply.provider is ProviderTag.ASSISTANT


@pytest.mark.asyncio
async def test_existing_thread_is_not_recreated():
    api = FakeAssistantsAPI(run_statuses=["completed"])
    result = await make_provider(api).send_message("again", "asst_1", thread_id="thread_old")

    assert ("POST", "/threads") not in api.calls
    assert api.calls[0] == ("POST", "/threads/thread_old/messages")
    assert result.thread_id == "thread_old"
    assert api.bodies[0] == {"role": "user", "content": "again"}
    assert api.bodies[1] == {"assistant_id": "asst_1"}


@pytest.mark.asyncio
async def test_sends_assistants_beta_header():
    api = FakeAssistantsAPI(run_statuses=["completed"])
    await make_provider(api).send_message("hi", "asst_1", thread_id="t")
    assert all(h["OpenAI-Beta"] == "assistants=v2" for h in api.headers)
    assert all(h["Authorization"] == "Bearer sk-test" for h in api.headers)


@pytest.mark.asyncio
async def test_messages_are_listed_in_ascending_order():
    seen = []
    api = FakeAssistantsAPI(run_statuses=["completed"])

    def spy(request):
        seen.append(request.url.params.get("order"))
        return api(request)

    p = make_provider(spy)
    await p.send_message("hi", "asst_1", thread_id="t")
    assert seen[-1] == "asc"


@pytest.mark.asyncio
async def test_requires_action_fails_without_listing_messages():
    api = FakeAssistantsAPI(run_statuses=["requires_action"])
    with pytest.raises(UnsupportedActionError):
        await make_provider(api).send_message("hi", "asst_1", thread_id="t")
    assert ("GET", "/threads/t/messages") not in api.calls


@pytest.mark.asyncio
async def test_run_timeout():
    api = FakeAssistantsAPI(run_statuses=["in_progress"])
    clock = FakeClock()
    with pytest.raises(RunTimeoutError):
        await make_provider(api, clock=clock, run_timeout=5.0).send_message("hi", "asst_1", thread_id="t")
    assert clock.now >= 5.0
    assert api.polls == 5


@pytest.mark.asyncio
async def test_failed_run_raises_with_backend_reason():
    api = FakeAssistantsAPI(run_statuses=["failed"], last_error="rate limit reached")
    with pytest.raises(ProviderError) as exc:
        await make_provider(api).send_message("hi", "asst_1", thread_id="t")
    assert exc.value.stage == "run"
    assert "failed" in str(exc.value)
    assert "rate limit reached" in str(exc.value)


@pytest.mark.asyncio
async def test_stage_is_reported_on_http_failure():
    def handler(request):
        if request.url.path.endswith("/runs"):
            return httpx.Response(404, json={"error": {"message": "No assistant found"}})
        return FakeAssistantsAPI()(request)

    with pytest.raises(ProviderError) as exc:
        await make_provider(handler).send_message("hi", "asst_missing", thread_id="t")
    assert exc.value.stage == "create_run"
    assert exc.value.upstream_status == 404


@pytest.mark.asyncio
async def test_list_assistants():
    assistants = await make_provider(FakeAssistantsAPI()).list_assistants()
    assert [a["id"] for a in assistants] == ["asst_1", "asst_2"]
    assert assistants[1]["name"] == "Unnamed Assistant"
    assert assistants[1]["tools"] == [{"type": "file_search"}]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[{"id": "asst_1"}], "nope", {"object": "list"}])
async def test_list_assistants_rejects_malformed_body(body):
    provider = make_provider(lambda request: httpx.Response(200, json=body))
    with pytest.raises(ProviderError) as exc:
        await provider.list_assistants()
    assert exc.value.stage == "list_assistants"
