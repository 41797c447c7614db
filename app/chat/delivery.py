"""
Live delivery registry.

Tracks which live connections belong to which user and fans domain events
out to the connections of a conversation's participants.

Each connection (a channels consumer, identified by its channel name) joins
a per-user channel layer group ``user_<id>`` when it registers. Pushing to
a user is a single group_send, which the channel layer delivers to every
connection of that user on every server instance. The in-process map only
knows this instance's connections; it answers "does this user still have a
connection here" for presence bookkeeping.

Delivery is best-effort: failures are logged per recipient and never raised
to the caller. Offline participants get nothing; they read history through
MessageService.get_messages on reconnect.

Usage:
    from chat.delivery import registry

    await registry.register(self.channel_name, user.id)
    registry.notify_on_commit(conversation.id, LIVE_EVENTS.MESSAGE_NEW, data)
"""

from __future__ import annotations

import json
import logging
import threading
from collections import defaultdict
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.layers import get_channel_layer
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.utils import timezone

from chat.constants import USER_GROUP_PREFIX

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

logger = logging.getLogger(__name__)

# Channel layer message type handled by ChatConsumer.live_event
LIVE_EVENT_HANDLER = "live.event"


def user_group_name(user_id: int) -> str:
    """Channel layer group holding every connection of a user."""
    return f"{USER_GROUP_PREFIX}{user_id}"


def build_event(event_type: str, conversation_id: int, data: Any) -> dict[str, Any]:
    """
    Serialize a domain event into the payload pushed to clients.

    Datetimes, decimals and serializer return types are normalized through
    DjangoJSONEncoder so the payload survives any channel layer encoding.
    """
    payload = {
        "type": event_type,
        "conversation_id": conversation_id,
        "data": data,
        "timestamp": timezone.now(),
    }
    return json.loads(json.dumps(payload, cls=DjangoJSONEncoder))


class DeliveryRegistry:
    """
    Concurrency-safe mapping from user id to live connection names.

    register/unregister are the only mutators. Lookups return copies so
    callers never iterate shared state.
    """

    def __init__(self, layer_alias: str = "default"):
        self._layer_alias = layer_alias
        self._lock = threading.Lock()
        self._connections: dict[int, set[str]] = defaultdict(set)
        self._owners: dict[str, int] = {}

    @property
    def channel_layer(self):
        return get_channel_layer(self._layer_alias)

    # =========================================================================
    # Registration
    # =========================================================================

    async def register(self, channel_name: str, user_id: int) -> bool:
        """
        Bind a connection to a user.

        Args:
            channel_name: The consumer's channel name
            user_id: Authenticated user id

        Returns:
            True if this is the user's first connection on this instance
        """
        with self._lock:
            first = not self._connections[user_id]
            self._connections[user_id].add(channel_name)
            self._owners[channel_name] = user_id

        await self.channel_layer.group_add(user_group_name(user_id), channel_name)
        logger.info(f"Registered connection {channel_name} for user {user_id}")
        return first

    async def unregister(self, channel_name: str) -> tuple[int | None, bool]:
        """
        Forget a connection.

        Returns:
            Tuple of (user_id or None if unknown, True if it was the user's
            last connection on this instance)
        """
        with self._lock:
            user_id = self._owners.pop(channel_name, None)
            if user_id is None:
                return None, False
            remaining = self._connections.get(user_id, set())
            remaining.discard(channel_name)
            last = not remaining
            if last:
                self._connections.pop(user_id, None)

        try:
            await self.channel_layer.group_discard(user_group_name(user_id), channel_name)
        except Exception:
            logger.warning(
                f"Failed to leave group for connection {channel_name}", exc_info=True
            )
        logger.info(f"Unregistered connection {channel_name} for user {user_id}")
        return user_id, last

    def connections_for(self, user_id: int) -> frozenset[str]:
        """Channel names of the user's connections on this instance."""
        with self._lock:
            return frozenset(self._connections.get(user_id, ()))

    def is_connected(self, user_id: int) -> bool:
        with self._lock:
            return bool(self._connections.get(user_id))

    def clear(self) -> None:
        """Drop all local state (process shutdown, tests)."""
        with self._lock:
            self._connections.clear()
            self._owners.clear()

    # =========================================================================
    # Fan-out
    # =========================================================================

    @staticmethod
    def _recipients(
        conversation_id: int,
        exclude_user_id: int | None,
        recipients: Iterable[int] | None,
    ) -> list[int]:
        if recipients is None:
            from chat.services import ConversationService

            recipients = ConversationService.participant_ids(conversation_id)
        return [uid for uid in dict.fromkeys(recipients) if uid != exclude_user_id]

    def notify(
        self,
        conversation_id: int,
        event_type: str,
        data: Any = None,
        exclude_user_id: int | None = None,
        recipients: Iterable[int] | None = None,
    ) -> int:
        """
        Push an event to the live connections of a conversation's participants.

        Synchronous entry point for service code. Never raises.

        Args:
            conversation_id: Conversation the event belongs to
            event_type: One of chat.constants.LIVE_EVENTS
            data: JSON-serializable event body
            exclude_user_id: User whose connections are skipped (the actor)
            recipients: Explicit user ids, for events where the participant
                list no longer exists or no longer contains the audience

        Returns:
            Number of users the event was handed to the channel layer for
        """
        try:
            targets = self._recipients(conversation_id, exclude_user_id, recipients)
            message = {
                "type": LIVE_EVENT_HANDLER,
                "payload": build_event(event_type, conversation_id, data),
            }
        except Exception:
            logger.exception(
                f"Could not prepare {event_type} for conversation {conversation_id}"
            )
            return 0

        layer = self.channel_layer
        if layer is None:
            logger.warning("No channel layer configured, dropping live event")
            return 0

        delivered = 0
        for user_id in targets:
            try:
                async_to_sync(layer.group_send)(user_group_name(user_id), message)
                delivered += 1
            except Exception:
                logger.exception(f"Live push of {event_type} to user {user_id} failed")
        return delivered

    async def anotify(
        self,
        conversation_id: int,
        event_type: str,
        data: Any = None,
        exclude_user_id: int | None = None,
        recipients: Iterable[int] | None = None,
    ) -> int:
        """Async counterpart of notify() for consumers. Never raises."""
        try:
            if recipients is None:
                targets = await database_sync_to_async(self._recipients)(
                    conversation_id, exclude_user_id, None
                )
            else:
                targets = self._recipients(conversation_id, exclude_user_id, recipients)
            message = {
                "type": LIVE_EVENT_HANDLER,
                "payload": build_event(event_type, conversation_id, data),
            }
        except Exception:
            logger.exception(
                f"Could not prepare {event_type} for conversation {conversation_id}"
            )
            return 0

        delivered = 0
        for user_id in targets:
            try:
                await self.channel_layer.group_send(user_group_name(user_id), message)
                delivered += 1
            except Exception:
                logger.exception(f"Live push of {event_type} to user {user_id} failed")
        return delivered

    def notify_on_commit(self, *args, **kwargs) -> None:
        """
        Schedule notify() for after the current transaction commits.

        Outside a transaction the push happens immediately. Events for writes
        that roll back are never sent.
        """
        transaction.on_commit(lambda: self.notify(*args, **kwargs))


registry = DeliveryRegistry()
