"""Outbound messaging providers keyed by channel."""

from salesops.messaging.providers import MessageProvider, ProviderRegistry

__all__ = ["MessageProvider", "ProviderRegistry"]
