"""Build the provider registry for the running configuration."""

from salesops.config import config
from salesops.messaging.in_app_provider import InAppProvider
from salesops.messaging.providers import ProviderRegistry


def create_default_registry(store) -> ProviderRegistry:
    """In-app delivery is always available; Twilio and Resend only when configured."""
    registry = ProviderRegistry()
    registry.register(InAppProvider(store))

    if config.has_twilio_config():
        from salesops.messaging.twilio_provider import TwilioProvider
        registry.register(TwilioProvider())

    if config.has_resend_config():
        from salesops.messaging.resend_provider import ResendEmailProvider
        registry.register(ResendEmailProvider())

    return registry
