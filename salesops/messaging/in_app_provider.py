"""In-app delivery: the message becomes a team notification."""

from salesops.messaging.providers import MessageProvider
from salesops.models import MessageChannel, MessageResult, OutboundMessage


class InAppProvider(MessageProvider):
    id = "in_app"
    label = "In-app notifications"
    channels = (MessageChannel.IN_APP,)

    def __init__(self, store):
        self._store = store

    def send(self, message: OutboundMessage) -> MessageResult:
        notification_id = self._store.create_notification(
            team_id=message.team_id,
            message=message.text,
            metadata=message.metadata,
        )
        return MessageResult(success=True, provider_id=self.id, provider_message_id=str(notification_id))
