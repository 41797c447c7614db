"""
WebSocket consumers for the chat application.

This module implements the live connection endpoint: authentication on
connect, registration with the delivery registry, client frames, and
forwarding of server-side events.

Consumers:
    ChatConsumer: One connection per client device

Authentication:
    JWTAuthMiddleware attaches the user to self.scope["user"]. A missing or
    invalid credential closes the connection with code 4001.

Channel Groups:
    Each connection joins the per-user group "user_{user_id}" through the
    delivery registry. Services push domain events there.

Message Types (from client):
    - chat: Send a message {conversation_id, content, content_type, metadata, reply_to}
    - typing: Typing indicator {conversation_id, is_typing}

Message Types (to client):
    - chat.ack: The sent message, as stored
    - message.new / message.edited / message.deleted / reaction.updated /
      participant.added / participant.removed / conversation.updated /
      conversation.deleted / typing: Pushed events
    - error: Rejected client frame

Unknown frame types and malformed frames are logged and answered with an
error frame; the connection stays open. Frames on a refused connection are
dropped.
"""

from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.contrib.auth.models import AnonymousUser
from django.utils import timezone

from authentication.models import PresenceStatus
from chat.authorization import ChatAuthorization
from chat.constants import CLOSE_CODES, LIVE_EVENTS
from chat.delivery import registry
from chat.middleware import JWT_SUBPROTOCOL
from chat.serializers import MessageSerializer
from chat.services import ConversationService, MessageService
from core.exceptions import BaseApplicationError, ValidationError

logger = logging.getLogger(__name__)


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for real-time chat functionality.

    Handles:
        - Connection authentication
        - Registration with the delivery registry and presence updates
        - Sending messages and typing indicators
        - Forwarding live events to the client

    Attributes:
        user: Authenticated user (after connect)
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.registered = False

    async def connect(self):
        """
        Handle WebSocket connection.

        The handshake is accepted before closing on auth failure so the
        client receives close code 4001 rather than a bare HTTP 403.
        """
        user = self.scope.get("user")
        subprotocols = self.scope.get("subprotocols") or []
        subprotocol = JWT_SUBPROTOCOL if JWT_SUBPROTOCOL in subprotocols else None

        if not user or isinstance(user, AnonymousUser):
            auth_error = self.scope.get("auth_error")
            logger.warning(
                "Rejected unauthenticated connection "
                f"({auth_error.error_code if auth_error else 'CREDENTIAL_MISSING'})"
            )
            await self.accept(subprotocol=subprotocol)
            await self.close(code=CLOSE_CODES.AUTH_FAILED)
            return

        self.user = user
        first = await registry.register(self.channel_name, user.id)
        self.registered = True
        if first:
            await self._set_presence(PresenceStatus.ONLINE)

        await self.accept(subprotocol=subprotocol)
        logger.info(f"User {user.id} connected ({self.channel_name})")

    async def disconnect(self, close_code):
        """
        Handle WebSocket disconnection.

        Unregisters the connection; the user goes offline when their last
        connection on this instance closes.
        """
        if not self.registered:
            return
        user_id, last = await registry.unregister(self.channel_name)
        self.registered = False
        if last:
            await self._set_presence(PresenceStatus.OFFLINE)
        logger.info(f"User {user_id} disconnected (code {close_code})")

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        """
        Decode an incoming frame.

        Frames on a refused connection are dropped. Binary or malformed
        frames are answered with an error frame; the connection stays open.
        """
        if self.user is None:
            return

        if not text_data:
            logger.warning(f"Ignoring non-text frame from user {self.user.id}")
            await self._send_error("Frames must be JSON text", "INVALID_FRAME")
            return

        try:
            content = await self.decode_json(text_data)
        except ValueError:
            logger.warning(f"Ignoring malformed JSON frame from user {self.user.id}")
            await self._send_error("Frames must be valid JSON", "INVALID_FRAME")
            return

        await self.receive_json(content, **kwargs)

    async def receive_json(self, content, **kwargs):
        """
        Handle incoming WebSocket frames.

        Expected frame format:
            {"type": "chat", "conversation_id": 1, "content": "Hello!"}
            {"type": "chat", "conversation_id": 1, "content": "Re", "reply_to": 12}
            {"type": "typing", "conversation_id": 1, "is_typing": true}

        Args:
            content: Parsed JSON frame from client
        """
        if not isinstance(content, dict):
            await self._send_error("Frames must be JSON objects", "INVALID_FRAME")
            return

        frame_type = content.get("type")
        try:
            if frame_type == LIVE_EVENTS.CLIENT_CHAT:
                await self._handle_chat(content)
            elif frame_type == LIVE_EVENTS.CLIENT_TYPING:
                await self._handle_typing(content)
            else:
                logger.warning(
                    f"Ignoring unknown frame type {frame_type!r} from user {self.user.id}"
                )
                await self._send_error(
                    f"Unknown message type: {frame_type}", "UNKNOWN_EVENT_TYPE"
                )
        except BaseApplicationError as e:
            await self.send_json(
                {
                    "type": LIVE_EVENTS.ERROR,
                    "message": e.message,
                    "error_code": e.error_code,
                    "details": e.details,
                }
            )

    async def _handle_chat(self, content):
        """Send a message via MessageService and acknowledge with the stored copy."""
        conversation_id = content.get("conversation_id")
        if conversation_id is None:
            raise ValidationError(
                "conversation_id is required", error_code="CONVERSATION_ID_REQUIRED"
            )

        data = await self._send_message(
            conversation_id=conversation_id,
            content=content.get("content"),
            content_type=content.get("content_type") or "text",
            metadata=content.get("metadata"),
            reply_to=content.get("reply_to"),
        )
        await self.send_json({"type": LIVE_EVENTS.CHAT_ACK, "message": data})

    async def _handle_typing(self, content):
        """Relay a typing indicator to the other participants."""
        conversation_id = content.get("conversation_id")
        if conversation_id is None:
            raise ValidationError(
                "conversation_id is required", error_code="CONVERSATION_ID_REQUIRED"
            )

        conversation = await database_sync_to_async(
            ConversationService.get_conversation
        )(self.user, conversation_id)
        await registry.anotify(
            conversation.id,
            LIVE_EVENTS.TYPING,
            {"user_id": self.user.id, "is_typing": bool(content.get("is_typing", True))},
            exclude_user_id=self.user.id,
            recipients=ChatAuthorization.participant_ids(conversation),
        )

    async def live_event(self, event):
        """
        Handle live.event messages from the channel layer.

        Sends the event payload to the WebSocket client.
        """
        await self.send_json(event["payload"])

    async def _send_error(self, message: str, error_code: str):
        await self.send_json(
            {"type": LIVE_EVENTS.ERROR, "message": message, "error_code": error_code}
        )

    @database_sync_to_async
    def _send_message(self, **kwargs) -> dict:
        message = MessageService.send_message(self.user, **kwargs)
        return dict(MessageSerializer(message).data)

    @database_sync_to_async
    def _set_presence(self, status: str) -> None:
        try:
            type(self.user).objects.filter(id=self.user.id).update(
                status=status,
                last_seen=timezone.now(),
            )
        except Exception:
            logger.exception(f"Failed to set presence {status} for user {self.user.id}")
