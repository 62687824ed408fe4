"""
Chat providers for parley.
Completion (stateless), assistant threads/runs (stateful) and workflow webhook.
"""
from parley.providers.base import BaseProvider
from parley.providers.chat import ChatCompletionProvider
from parley.providers.assistant import AssistantProvider, AssistantReply
from parley.providers.webhook import WebhookProvider, extract_reply
from parley.providers.router import ProviderRouter

__all__ = [
    "BaseProvider",
    "ChatCompletionProvider",
    "AssistantProvider",
    "AssistantReply",
    "WebhookProvider",
    "extract_reply",
    "ProviderRouter",
]
