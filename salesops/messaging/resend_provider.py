"""Email delivery through Resend."""

from typing import Optional

import resend

from salesops.config import config
from salesops.logging_config import get_logger
from salesops.messaging.providers import MessageProvider
from salesops.models import MessageChannel, MessageResult, OutboundMessage

logger = get_logger(__name__)


class ResendEmailProvider(MessageProvider):
    id = "resend"
    label = "Resend"
    channels = (MessageChannel.EMAIL,)

    def __init__(self, api_key: Optional[str] = None, from_address: Optional[str] = None):
        self._api_key = api_key or config.RESEND_API_KEY
        self._from_address = from_address or config.EMAIL_FROM_ADDRESS

    def send(self, message: OutboundMessage) -> MessageResult:
        if not message.to_email:
            return MessageResult(success=False, provider_id=self.id, error="missing_to_email")

        resend.api_key = self._api_key
        params = {
            "from": self._from_address,
            "to": [message.to_email],
            "subject": message.subject or "",
            "text": message.text,
        }
        if message.html:
            params["html"] = message.html

        response = resend.Emails.send(params)
        email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)

        logger.info("resend_email_sent", email_id=email_id, team_id=message.team_id)
        return MessageResult(success=True, provider_id=self.id, provider_message_id=email_id)
