"""
Chat turn service: the one entry point for sending a message.

Validates the request, picks the provider for the tag, and normalizes the
three reply shapes into a ChatTurnResult. Failures propagate unchanged so
the API layer can report them; nothing is retried here.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from parley.errors import ValidationError
from parley.models import ChatTurnResult, ConversationHandle, Message, ProviderTag
from parley.providers.router import ProviderRouter

logger = logging.getLogger(__name__)


def _optional_str(request: dict, key: str) -> str | None:
    value = request.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"'{key}' must be a string")
    return value


def parse_history(raw) -> list[Message]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("'history' must be a list of messages")
    return [Message.from_dict(item) for item in raw]


class ChatTurnService:
    def __init__(self, router: ProviderRouter):
        self.router = router

    async def send_chat_turn(self, request: dict) -> ChatTurnResult:
        """
        Send one turn. Request keys:
            message, provider, threadId, assistantId, model,
            reasoningEffort, verbosity, systemPrompt, history, metadata
        """
        if not isinstance(request, dict):
            raise ValidationError("Request body must be a JSON object")

        message = request.get("message")
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Message is required")

        tag = ProviderTag.parse(request.get("provider"))
        handle = ConversationHandle(tag, _optional_str(request, "threadId"))
        system_prompt = _optional_str(request, "systemPrompt")

        logger.info(
            "Chat turn: provider=%s, message=%d chars, system_prompt=%d chars, thread=%s",
            tag.value, len(message), len(system_prompt or ""), handle.external_thread_id or "-",
        )

        if handle.provider is ProviderTag.ASSISTANT:
            assistant_id = _optional_str(request, "assistantId")
            if not assistant_id:
                raise ValidationError("Assistant ID is required for the assistant provider")
            provider = self.router.get(tag)
            result = await provider.send_message(message, assistant_id, handle.external_thread_id)
            handle = replace(handle, external_thread_id=result.thread_id)
            return self._result(result.reply, handle)

        if handle.provider is ProviderTag.CHAT:
            history = parse_history(request.get("history"))
            provider = self.router.get(tag)
            reply = await provider.send_message(
                message,
                history=history,
                model=_optional_str(request, "model"),
                reasoning_effort=_optional_str(request, "reasoningEffort"),
                verbosity=_optional_str(request, "verbosity"),
                system_prompt=system_prompt,
            )
            return self._result(reply, handle)

        metadata = request.get("metadata")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("'metadata' must be an object")
        provider = self.router.get(tag)
        reply = await provider.send_message(message, thread_id=handle.external_thread_id, metadata=metadata)
        return self._result(reply, handle)

    @staticmethod
    def _result(reply: Message, handle: ConversationHandle) -> ChatTurnResult:
        return ChatTurnResult(message=reply, thread_id=handle.external_thread_id, provider=handle.provider)
