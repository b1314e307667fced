"""Twilio-backed SMS and voice delivery."""

import xml.sax.saxutils as saxutils
from typing import Optional

from twilio.rest import Client

from salesops.config import config
from salesops.logging_config import get_logger
from salesops.messaging.providers import MessageProvider
from salesops.models import MessageChannel, MessageResult, OutboundMessage

logger = get_logger(__name__)


def build_say_twiml(text: str) -> str:
    """Build a minimal TwiML document that speaks `text` and hangs up."""
    language = (config.TWILIO_TTS_LANGUAGE or "en-US").strip()
    voice = (config.TWILIO_TTS_VOICE or "").strip()

    attrs = f'language="{saxutils.escape(language)}"'
    if voice:
        attrs += f' voice="{saxutils.escape(voice)}"'

    body = " ".join((text or "").split())
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Response><Say {attrs}>{saxutils.escape(body)}</Say><Hangup/></Response>"
    )


class TwilioProvider(MessageProvider):
    id = "twilio"
    label = "Twilio"
    channels = (MessageChannel.SMS, MessageChannel.VOICE)

    def __init__(self, client: Optional[Client] = None, caller_id: Optional[str] = None):
        self._client = client
        self._caller_id = caller_id or config.TWILIO_CALLER_ID

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)
        return self._client

    def send(self, message: OutboundMessage) -> MessageResult:
        if not message.to_phone:
            return MessageResult(success=False, provider_id=self.id, error="missing_to_phone")

        if message.channel == MessageChannel.SMS:
            sent = self.client.messages.create(
                to=message.to_phone,
                from_=self._caller_id,
                body=message.text,
            )
        else:
            sent = self.client.calls.create(
                to=message.to_phone,
                from_=self._caller_id,
                twiml=build_say_twiml(message.text),
            )

        logger.info("twilio_message_sent", channel=message.channel.value, sid=sent.sid,
                    team_id=message.team_id)
        return MessageResult(success=True, provider_id=self.id, provider_message_id=sent.sid)
