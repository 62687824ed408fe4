"""
Base provider abstraction.
All providers implement this interface so the turn service can treat them uniformly.
"""

from __future__ import annotations

import abc
import logging

import httpx

from parley.errors import ProviderError
from parley.models import ProviderTag

logger = logging.getLogger(__name__)


class BaseProvider(abc.ABC):
    """
    Abstract base for chat providers.
    Each provider knows how to turn one user message into a normalized reply.
    Failures raise ProviderError; a provider never fabricates a reply.
    """

    tag: ProviderTag

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout: float = 60,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @abc.abstractmethod
    async def send_message(self, content: str, *args, **kwargs):
        """Send one user message and return the normalized reply."""
        ...

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _error(self, stage: str, message: str, upstream_status: int | None = None) -> ProviderError:
        logger.warning("Provider '%s' failed at %s: %s", self.tag.value, stage, message)
        return ProviderError(
            message,
            provider=self.tag.value,
            stage=stage,
            upstream_status=upstream_status,
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        stage: str,
        **kwargs,
    ):
        """
        Issue one request and return its parsed JSON body.
        Transport errors, HTTP >= 400 and unparseable bodies all become ProviderError.
        """
        url = f"{self.url}{path}" if path else self.url
        try:
            resp = await client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TimeoutException:
            raise self._error(stage, f"Timeout after {self.timeout}s") from None
        except httpx.HTTPError as e:
            raise self._error(stage, str(e) or e.__class__.__name__) from e

        if resp.status_code >= 400:
            raise self._error(
                stage,
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                upstream_status=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError:
            raise self._error(stage, f"Unparseable response: {resp.text[:200]}") from None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} tag={self.tag.value!r} url={self.url!r}>"
