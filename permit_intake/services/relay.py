"""
Relay publisher for per-session event channels.

Every event published for a session goes to two places:
- the in-process ``ChannelHub``, which feeds mobile views connected to this
  server's ``/ws/session/{id}`` endpoint
- Ably, when ABLY_API_KEY is configured, for clients subscribed with a
  scoped token

Publishing never raises. Broadcast is best-effort notification; the session
and application stores are the source of truth, so a relay failure is logged
and the caller carries on.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set, Union

from ably import AblyRest

from permit_intake.config.constants import (
    EVENT_FIELD_UPDATE,
    EVENT_SESSION_COMPLETE,
    EVENT_SESSION_ERROR,
    LOGGER_NAME,
    SUBSCRIBER_QUEUE_SIZE,
)
from permit_intake.config.settings import get_settings
from permit_intake.models.relay_events import (
    FieldUpdateEvent,
    RelayEvent,
    SessionCompleteEvent,
    SessionErrorEvent,
    session_channel_name,
)

logger = logging.getLogger(LOGGER_NAME)


class ChannelHub:
    """
    In-process fan-out of relay messages to local subscribers.

    Each subscriber gets its own bounded queue; messages are delivered in
    publish order per channel. A subscriber that stops draining its queue
    loses messages rather than slowing the publisher down.
    """

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscribers: Dict[str, Set[asyncio.Queue]] = {}

    def subscribe(self, channel_name: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.setdefault(channel_name, set()).add(queue)
        logger.debug(f"Subscriber added to {channel_name}")
        return queue

    def unsubscribe(self, channel_name: str, queue: asyncio.Queue) -> None:
        subscribers = self._subscribers.get(channel_name)
        if not subscribers:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[channel_name]
        logger.debug(f"Subscriber removed from {channel_name}")

    def subscriber_count(self, channel_name: str) -> int:
        return len(self._subscribers.get(channel_name, ()))

    def publish(self, channel_name: str, message: Dict[str, Any]) -> int:
        """
        Deliver a message to every local subscriber of a channel.

        Returns:
            Number of subscribers the message was queued for
        """
        delivered = 0
        for queue in list(self._subscribers.get(channel_name, ())):
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"Subscriber queue full on {channel_name}, dropping message")
        return delivered


class RelayPublisher:
    """Publishes typed session events to the session's relay channel."""

    def __init__(self, api_key: Optional[str] = None, hub: Optional[ChannelHub] = None):
        self.api_key = api_key
        self.hub = hub or ChannelHub()
        self._client: Optional[AblyRest] = None

    @property
    def provider_configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> AblyRest:
        if self._client is None:
            self._client = AblyRest(self.api_key)
        return self._client

    async def publish(
        self,
        session_id: str,
        event_name: str,
        payload: Union[RelayEvent, Dict[str, Any]],
    ) -> bool:
        """
        Publish an event to ``session:<session_id>``.

        Args:
            session_id: Session whose channel receives the event
            event_name: field-update, session-complete or session-error
            payload: Event model or plain dict

        Returns:
            True once the provider acknowledged the publish; False when the
            provider is unconfigured or the publish failed
        """
        channel_name = session_channel_name(session_id)
        if isinstance(payload, RelayEvent):
            data = payload.model_dump(exclude_none=True)
        else:
            data = dict(payload)

        self.hub.publish(channel_name, {"name": event_name, "data": data})

        if not self.provider_configured:
            logger.info(f"ABLY_API_KEY not set - {event_name} on {channel_name} delivered locally only")
            return False

        try:
            channel = self._get_client().channels.get(channel_name)
            await channel.publish(event_name, data)
            logger.info(f"Published {event_name} to {channel_name}")
            return True
        except Exception as e:
            logger.error(f"Error publishing {event_name} to {channel_name}: {e}", exc_info=True)
            return False

    async def publish_field_update(
        self, session_id: str, field: str, value: str, source: Optional[str] = None
    ) -> bool:
        event = FieldUpdateEvent(field=field, value=value, source=source)
        return await self.publish(session_id, EVENT_FIELD_UPDATE, event)

    async def publish_session_complete(self, session_id: str, tracking_id: str) -> bool:
        event = SessionCompleteEvent(trackingId=tracking_id)
        return await self.publish(session_id, EVENT_SESSION_COMPLETE, event)

    async def publish_session_error(self, session_id: str, error: str) -> bool:
        event = SessionErrorEvent(error=error)
        return await self.publish(session_id, EVENT_SESSION_ERROR, event)

    async def close(self) -> None:
        if self._client is not None:
            try:
                await self._client.close()
            except Exception as e:
                logger.warning(f"Error closing Ably client: {e}")
            self._client = None


# Create a singleton instance of the relay
relay = RelayPublisher(get_settings().ably_api_key)


def get_relay() -> RelayPublisher:
    """FastAPI dependency returning the shared relay publisher."""
    return relay
