"""
Data models shared by the providers, the run poller and the API layer.
These define the shape of data flowing between caller and backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from parley.errors import ValidationError

ROLES = ("user", "assistant", "system")


class ProviderTag(str, Enum):
    """Backend chat mechanism a turn is sent to."""
    CHAT = "openai-chat"
    ASSISTANT = "openai-assistant"
    WEBHOOK = "webhook"

    @classmethod
    def parse(cls, value) -> "ProviderTag":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Invalid provider: {value!r}") from None


class RunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset({
    RunStatus.COMPLETED,
    RunStatus.FAILED,
    RunStatus.CANCELLED,
    RunStatus.EXPIRED,
})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    """A single message in a conversation. Immutable once built."""
    role: str
    content: str
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)
    provider: ProviderTag | None = None
    metadata: dict = field(default_factory=dict)

    def to_openai_format(self) -> dict:
        """Role-tagged shape the completion API expects."""
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "createdAt": self.created_at.isoformat(),
            "provider": self.provider.value if self.provider else None,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        """
        Parse a caller-supplied history entry.
        Only role and content are required; everything else is optional.
        """
        if not isinstance(data, dict):
            raise ValidationError("History entries must be objects")
        role = data.get("role")
        if role not in ROLES:
            raise ValidationError(f"Invalid message role: {role!r}")
        content = data.get("content")
        if not isinstance(content, str):
            raise ValidationError("History entries need string content")

        kwargs: dict = {"role": role, "content": content}
        if data.get("id"):
            kwargs["id"] = str(data["id"])
        created = data.get("createdAt") or data.get("timestamp")
        if isinstance(created, str):
            try:
                kwargs["created_at"] = datetime.fromisoformat(created.replace("Z", "+00:00"))
            except ValueError:
                raise ValidationError(f"Invalid message timestamp: {created!r}") from None
        if data.get("provider"):
            kwargs["provider"] = ProviderTag.parse(data["provider"])
        if isinstance(data.get("metadata"), dict):
            kwargs["metadata"] = dict(data["metadata"])
        return cls(**kwargs)


@dataclass(frozen=True)
class ConversationHandle:
    """
    Where a conversation lives.
    Only the assistant provider uses external_thread_id; the completion
    provider keeps no server-side state and needs the full history per call.
    """
    provider: ProviderTag
    external_thread_id: str | None = None


@dataclass
class Run:
    """One backend-side unit of work for an assistant turn. Discarded once terminal."""
    id: str
    status: RunStatus
    thread_id: str
    assistant_id: str = ""
    last_error: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class ChatTurnResult:
    message: Message
    thread_id: str | None = None
    provider: ProviderTag | None = None

    @property
    def handle(self) -> ConversationHandle:
        """Where the next turn of this conversation should go."""
        return ConversationHandle(self.provider or self.message.provider, self.thread_id)

    def to_dict(self) -> dict:
        return {
            "message": self.message.to_dict(),
            "threadId": self.thread_id,
        }
