"""
Error taxonomy.
Every error carries the HTTP status it should surface as, so the API layer
can render any ParleyError without a lookup table.
"""

from __future__ import annotations


class ParleyError(Exception):
    """Base for every error raised by the chat layer."""
    status_code: int = 500


class ValidationError(ParleyError):
    """Caller input was missing or malformed."""
    status_code = 400


class ConfigurationError(ParleyError):
    """A credential or endpoint the request needs is not configured."""
    status_code = 500


class ProviderError(ParleyError):
    """A backend rejected the request or answered with an unusable shape."""
    status_code = 502

    def __init__(
        self,
        message: str,
        provider: str = "",
        stage: str = "",
        upstream_status: int | None = None,
    ):
        self.provider = provider
        self.stage = stage
        self.upstream_status = upstream_status
        prefix = ": ".join(p for p in (provider, stage) if p)
        super().__init__(f"{prefix}: {message}" if prefix else message)


class RunTimeoutError(ParleyError):
    """An assistant run did not reach a terminal state within its budget."""
    status_code = 504


class UnsupportedActionError(ParleyError):
    """The backend asked for a capability this layer does not implement (tool calls)."""
    status_code = 501


class SessionExpiredError(ParleyError):
    """
    Session is missing or past its expiry.
    The two cases are indistinguishable to the caller.
    """
    status_code = 404

    def __init__(self, message: str = "Session not found or expired"):
        super().__init__(message)
