"""
Tests for the ChatConsumer WebSocket endpoint.

Runs the consumer behind JWTAuthMiddleware with a fresh in-memory channel
layer per test. Database work happens in worker threads, hence
transactional_db.
"""

import pytest
from channels.db import database_sync_to_async
from channels.layers import channel_layers
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.db import DatabaseError
from django.db.models.query import QuerySet
from rest_framework_simplejwt.tokens import AccessToken

from authentication.models import PresenceStatus
from chat.delivery import registry
from chat.middleware import JWTAuthMiddleware
from chat.models import Message
from chat.routing import websocket_urlpatterns
from chat.services import MessageService

pytestmark = [pytest.mark.asyncio, pytest.mark.django_db(transaction=True)]

application = JWTAuthMiddleware(URLRouter(websocket_urlpatterns))


@pytest.fixture(autouse=True)
def fresh_layer(monkeypatch):
    monkeypatch.setattr(channel_layers, "backends", {})


def token_for(user):
    return str(AccessToken.for_user(user))


async def connect(user=None, query=None):
    """Open a connection; returns (communicator, connected)."""
    if query is None:
        query = f"token={token_for(user)}" if user else ""
    communicator = WebsocketCommunicator(application, f"/ws/chat/?{query}")
    connected, _ = await communicator.connect()
    return communicator, connected


class TestConnect:
    async def test_missing_credential_is_closed_with_4001(self, transactional_db):
        communicator, _ = await connect(query="")

        output = await communicator.receive_output()

        assert output == {"type": "websocket.close", "code": 4001}

    async def test_invalid_credential_is_closed_with_4001(self, transactional_db):
        communicator, _ = await connect(query="token=not-a-jwt")

        output = await communicator.receive_output()

        assert output["type"] == "websocket.close"
        assert output["code"] == 4001

    async def test_valid_credential_registers_connection(self, admin_user, transactional_db):
        communicator, connected = await connect(admin_user)

        assert connected
        assert registry.is_connected(admin_user.id)

        await communicator.disconnect()
        assert not registry.is_connected(admin_user.id)

    async def test_jwt_subprotocol_is_echoed(self, admin_user, transactional_db):
        communicator = WebsocketCommunicator(
            application, "/ws/chat/", subprotocols=["jwt", token_for(admin_user)]
        )

        connected, subprotocol = await communicator.connect()

        assert connected
        assert subprotocol == "jwt"
        await communicator.disconnect()

    async def test_presence_follows_connections(self, admin_user, transactional_db):
        async def status():
            await database_sync_to_async(admin_user.refresh_from_db)()
            return admin_user.status

        first, _ = await connect(admin_user)
        second, _ = await connect(admin_user)
        assert await status() == PresenceStatus.ONLINE

        await first.disconnect()
        assert await status() == PresenceStatus.ONLINE

        await second.disconnect()
        assert await status() == PresenceStatus.OFFLINE
        assert admin_user.last_seen is not None

    async def test_frames_on_refused_connection_are_dropped(
        self, group_conversation, transactional_db
    ):
        communicator, _ = await connect(query="")
        assert (await communicator.receive_output())["code"] == 4001

        await communicator.send_json_to({"type": "dance"})
        await communicator.send_json_to(
            {"type": "chat", "conversation_id": group_conversation.id, "content": "sneaky"}
        )

        assert await communicator.receive_nothing()
        assert not communicator.future.done()
        assert not await database_sync_to_async(Message.objects.exists)()
        await communicator.disconnect()

    async def test_presence_failure_does_not_abort_connection(
        self, admin_user, monkeypatch, transactional_db
    ):
        def failing_update(queryset, **kwargs):
            raise DatabaseError("connection lost")

        monkeypatch.setattr(QuerySet, "update", failing_update)

        communicator, connected = await connect(admin_user)

        assert connected
        assert registry.is_connected(admin_user.id)
        await communicator.disconnect()
        assert not registry.is_connected(admin_user.id)


class TestClientFrames:
    async def test_chat_frame_sends_and_acknowledges(
        self, group_conversation, member_user, transactional_db
    ):
        communicator, _ = await connect(member_user)

        await communicator.send_json_to(
            {"type": "chat", "conversation_id": group_conversation.id, "content": "hi all"}
        )
        frames = [await communicator.receive_json_from(), await communicator.receive_json_from()]

        ack = next(f for f in frames if f["type"] == "chat.ack")
        pushed = next(f for f in frames if f["type"] == "message.new")
        assert ack["message"]["content"] == "hi all"
        assert ack["message"]["sender"]["id"] == member_user.id
        assert pushed["data"]["id"] == ack["message"]["id"]
        assert await database_sync_to_async(
            Message.objects.filter(conversation=group_conversation).count
        )() == 1
        await communicator.disconnect()

    async def test_chat_frame_without_conversation(self, member_user, transactional_db):
        communicator, _ = await connect(member_user)

        await communicator.send_json_to({"type": "chat", "content": "hi"})
        frame = await communicator.receive_json_from()

        assert frame["type"] == "error"
        assert frame["error_code"] == "CONVERSATION_ID_REQUIRED"
        await communicator.disconnect()

    async def test_chat_frame_for_foreign_conversation(
        self, group_conversation, outsider, transactional_db
    ):
        communicator, _ = await connect(outsider)

        await communicator.send_json_to(
            {"type": "chat", "conversation_id": group_conversation.id, "content": "hi"}
        )
        frame = await communicator.receive_json_from()

        assert frame == {
            "type": "error",
            "message": "You are not a participant in this conversation",
            "error_code": "NOT_PARTICIPANT",
            "details": {},
        }
        await communicator.disconnect()

    async def test_unknown_frame_is_ignored_and_connection_stays_open(
        self, group_conversation, member_user, transactional_db
    ):
        communicator, _ = await connect(member_user)

        await communicator.send_json_to({"type": "dance"})
        frame = await communicator.receive_json_from()
        await communicator.send_json_to(
            {"type": "chat", "conversation_id": group_conversation.id, "content": "still here"}
        )
        follow_up = await communicator.receive_json_from()

        assert frame["error_code"] == "UNKNOWN_EVENT_TYPE"
        assert follow_up["type"] in {"chat.ack", "message.new"}
        await communicator.disconnect()

    async def test_non_object_frame(self, member_user, transactional_db):
        communicator, _ = await connect(member_user)

        await communicator.send_json_to([1, 2, 3])
        frame = await communicator.receive_json_from()

        assert frame["error_code"] == "INVALID_FRAME"
        await communicator.disconnect()

    async def test_malformed_json_frame_keeps_connection_open(
        self, member_user, transactional_db
    ):
        communicator, _ = await connect(member_user)

        await communicator.send_to(text_data="{not json")
        frame = await communicator.receive_json_from()
        await communicator.send_json_to({"type": "bogus"})
        follow_up = await communicator.receive_json_from()

        assert frame["type"] == "error"
        assert frame["error_code"] == "INVALID_FRAME"
        assert follow_up["error_code"] == "UNKNOWN_EVENT_TYPE"
        await communicator.disconnect()

    async def test_binary_frame_keeps_connection_open(self, member_user, transactional_db):
        communicator, _ = await connect(member_user)

        await communicator.send_to(bytes_data=b"\x00\x01")
        frame = await communicator.receive_json_from()
        await communicator.send_json_to({"type": "bogus"})
        follow_up = await communicator.receive_json_from()

        assert frame["error_code"] == "INVALID_FRAME"
        assert follow_up["error_code"] == "UNKNOWN_EVENT_TYPE"
        await communicator.disconnect()

    async def test_typing_reaches_other_participants_only(
        self, group_conversation, admin_user, member_user, transactional_db
    ):
        typist, _ = await connect(admin_user)
        watcher, _ = await connect(member_user)

        await typist.send_json_to(
            {"type": "typing", "conversation_id": group_conversation.id, "is_typing": True}
        )
        event = await watcher.receive_json_from()

        assert event["type"] == "typing"
        assert event["conversation_id"] == group_conversation.id
        assert event["data"] == {"user_id": admin_user.id, "is_typing": True}
        assert await typist.receive_nothing()
        await typist.disconnect()
        await watcher.disconnect()


class TestServerEvents:
    async def test_message_sent_elsewhere_is_pushed(
        self, group_conversation, admin_user, member_user, transactional_db
    ):
        communicator, _ = await connect(member_user)

        message = await database_sync_to_async(MessageService.send_message)(
            admin_user, group_conversation.id, "from the API"
        )
        event = await communicator.receive_json_from()

        assert event["type"] == "message.new"
        assert event["data"]["id"] == message.id
        assert event["data"]["content"] == "from the API"
        await communicator.disconnect()

    async def test_offline_user_gets_nothing_and_reads_history_later(
        self, group_conversation, admin_user, member_user, transactional_db
    ):
        await database_sync_to_async(MessageService.send_message)(
            admin_user, group_conversation.id, "while you were out"
        )

        communicator, _ = await connect(member_user)
        assert await communicator.receive_nothing()

        messages, _ = await database_sync_to_async(MessageService.get_messages)(
            member_user, group_conversation.id
        )
        assert [m.content for m in messages] == ["while you were out"]
        await communicator.disconnect()
