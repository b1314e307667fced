"""Messaging provider registry.

Providers are registered on an explicit `ProviderRegistry` that the action
executor receives at construction time. Several providers may serve the same
channel; they are tried in registration order and the first success wins.
"""

from __future__ import annotations

from typing import Iterable, Optional, Union

from salesops.logging_config import get_logger
from salesops.models import MessageChannel, MessageResult, OutboundMessage

logger = get_logger(__name__)


class MessageProvider:
    """Base class for one real integration (Twilio, Resend, in-app, ...)."""

    id: str = "provider"
    label: Optional[str] = None
    channels: tuple[MessageChannel, ...] = ()

    def send(self, message: OutboundMessage) -> MessageResult:
        raise NotImplementedError


class ProviderRegistry:
    """Channel -> ordered providers."""

    def __init__(self, providers: Optional[Iterable[MessageProvider]] = None):
        self._by_channel: dict[MessageChannel, list[MessageProvider]] = {}
        for provider in providers or ():
            self.register(provider)

    def register(self, provider: MessageProvider) -> None:
        for channel in provider.channels:
            self._by_channel.setdefault(MessageChannel(channel), []).append(provider)
        logger.debug("message_provider_registered", provider_id=provider.id,
                     channels=[MessageChannel(c).value for c in provider.channels])

    def get_providers_for_channel(self, channel: Union[MessageChannel, str]) -> list[MessageProvider]:
        try:
            return list(self._by_channel.get(MessageChannel(channel), []))
        except ValueError:
            return []

    def send(self, message: OutboundMessage) -> MessageResult:
        """Try each provider for the message's channel until one succeeds.

        Provider exceptions are converted into failed results; the last failure
        is returned when nobody succeeds.
        """
        providers = self.get_providers_for_channel(message.channel)
        if not providers:
            return MessageResult(success=False, error="no_provider_for_channel")

        last = MessageResult(success=False, error="no_provider_succeeded")
        for provider in providers:
            try:
                result = provider.send(message)
            except Exception as e:
                logger.warning("message_provider_failed", provider_id=provider.id,
                               channel=message.channel.value, error=str(e))
                last = MessageResult(success=False, provider_id=provider.id, error=str(e))
                continue
            if result.provider_id is None:
                result = result.model_copy(update={"provider_id": provider.id})
            if result.success:
                return result
            last = result
        return last
