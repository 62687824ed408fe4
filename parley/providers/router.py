"""
Provider router: maps a ProviderTag to a configured provider instance.

All tag dispatch happens in _create_provider; nothing else in the codebase
compares provider names. Providers are built on first use so a missing
credential only fails the turns that need it.
"""

from __future__ import annotations

import logging

from parley.errors import ConfigurationError
from parley.models import ProviderTag
from parley.providers.assistant import AssistantProvider
from parley.providers.base import BaseProvider
from parley.providers.chat import ChatCompletionProvider
from parley.providers.webhook import WebhookProvider

logger = logging.getLogger(__name__)


class ProviderRouter:
    """Builds and caches one provider per tag from the config dict."""

    def __init__(self, cfg: dict, transport=None):
        self.cfg = cfg
        self._transport = transport
        self._providers: dict[ProviderTag, BaseProvider] = {}

    def get(self, tag: ProviderTag) -> BaseProvider:
        provider = self._providers.get(tag)
        if provider is None:
            provider = self._create_provider(tag)
            self._providers[tag] = provider
            logger.info("Provider ready: %r", provider)
        return provider

    def _openai_key(self, openai_cfg: dict) -> str:
        api_key = openai_cfg.get("api_key", "")
        if not api_key:
            raise ConfigurationError("OpenAI API key not configured")
        return api_key

    def _create_provider(self, tag: ProviderTag) -> BaseProvider:
        openai_cfg = self.cfg.get("openai", {})
        base_url = openai_cfg.get("base_url") or "https://api.openai.com/v1"

        if tag is ProviderTag.CHAT:
            return ChatCompletionProvider(
                api_key=self._openai_key(openai_cfg),
                url=base_url,
                timeout=openai_cfg.get("timeout", 60),
                default_model=openai_cfg.get("default_model", ""),
                max_tokens=openai_cfg.get("max_tokens", 2000),
                temperature=openai_cfg.get("temperature", 0.7),
                transport=self._transport,
            )

        if tag is ProviderTag.ASSISTANT:
            assistant_cfg = self.cfg.get("assistant", {})
            return AssistantProvider(
                api_key=self._openai_key(openai_cfg),
                url=base_url,
                timeout=openai_cfg.get("timeout", 60),
                poll_interval=assistant_cfg.get("poll_interval", 1.0),
                run_timeout=assistant_cfg.get("run_timeout", 30.0),
                transport=self._transport,
            )

        if tag is ProviderTag.WEBHOOK:
            webhook_cfg = self.cfg.get("webhook", {})
            url = webhook_cfg.get("url", "")
            if not url:
                raise ConfigurationError("Webhook URL not configured")
            return WebhookProvider(
                url=url,
                api_key=webhook_cfg.get("api_key", ""),
                timeout=webhook_cfg.get("timeout", 60),
                transport=self._transport,
            )

        raise ConfigurationError(f"No provider registered for {tag!r}")

    def available(self) -> list[str]:
        """Tags whose credentials/endpoints are present in config."""
        tags = []
        for tag in ProviderTag:
            try:
                self.get(tag)
            except ConfigurationError:
                continue
            tags.append(tag.value)
        return tags
