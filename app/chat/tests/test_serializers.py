"""
Tests for chat serializers.
"""

import pytest

from chat.serializers import (
    DELETED_PLACEHOLDER,
    ConversationCreateSerializer,
    ConversationSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    ParticipantCreateSerializer,
)
from chat.services import ConversationService, MessageService
from chat.tests.factories import MessageFactory, MessageReactionFactory


@pytest.mark.django_db
class TestMessageSerializer:
    def test_fields(self):
        message = MessageFactory(content="hello")
        MessageReactionFactory(message=message, emoji="🎉")

        data = MessageSerializer(message).data

        assert data["content"] == "hello"
        assert data["conversation_id"] == message.conversation_id
        assert data["sender"]["id"] == message.sender_id
        assert data["is_deleted"] is False
        assert [r["emoji"] for r in data["reactions"]] == ["🎉"]
        assert data["read_by"] == []

    def test_deleted_message_hides_content_and_metadata(self):
        message = MessageFactory(
            content="secret",
            content_type="image",
            metadata={"file_url": "https://cdn.example.com/x.png"},
        )
        message.soft_delete()

        data = MessageSerializer(message).data

        assert data["content"] == DELETED_PLACEHOLDER
        assert data["metadata"] == {}
        assert data["is_deleted"] is True
        assert data["deleted_at"] is not None
        assert data["id"] == message.id


class TestMessageCreateSerializer:
    def test_defaults(self):
        serializer = MessageCreateSerializer(data={"content": "hi"})

        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data["content_type"] == "text"
        assert serializer.validated_data["metadata"] is None
        assert serializer.validated_data["encryption_key"] == ""

    def test_unknown_content_type(self):
        serializer = MessageCreateSerializer(data={"content": "hi", "content_type": "gif"})

        assert not serializer.is_valid()
        assert "content_type" in serializer.errors

    def test_content_may_be_empty_for_attachments(self):
        serializer = MessageCreateSerializer(
            data={"content_type": "file", "metadata": {"file_url": "u", "file_name": "n"}}
        )

        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data["content"] == ""


class TestConversationCreateSerializer:
    def test_participant_ids_default_to_empty(self):
        serializer = ConversationCreateSerializer(
            data={"conversation_type": "group", "name": "Team"}
        )

        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data["participant_ids"] == []

    def test_non_integer_participant_ids(self):
        serializer = ConversationCreateSerializer(
            data={"conversation_type": "direct", "participant_ids": ["bob"]}
        )

        assert not serializer.is_valid()
        assert "participant_ids" in serializer.errors


class TestParticipantCreateSerializer:
    def test_role_defaults_to_member(self):
        serializer = ParticipantCreateSerializer(data={"user_id": 3})

        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data["role"] == "member"


@pytest.mark.django_db
class TestConversationSerializer:
    def test_includes_participants_and_summary(self, group_conversation, admin_user):
        message = MessageService.send_message(admin_user, group_conversation.id, "hello")
        conversation = ConversationService.load_conversation(group_conversation.id)

        data = ConversationSerializer(conversation).data

        assert data["name"] == "Test Group"
        assert [p["role"] for p in data["participants"]] == ["admin", "member"]
        assert data["participants"][0]["user"]["id"] == admin_user.id
        assert data["last_message"]["message_id"] == message.id
        assert data["last_message"]["content"] == "hello"

    def test_empty_conversation_has_no_last_message(self, group_conversation):
        data = ConversationSerializer(group_conversation).data

        assert data["last_message"] is None
        assert len(data["participants"]) == 2
