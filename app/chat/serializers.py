"""
Serializers for chat API.

This module provides serializers for the chat system:
- Conversation serializers (read, create, update)
- Participant serializers (read, add)
- Message serializers (read, send, edit)
- Reaction serializer

Serializer Hierarchy:
    ConversationSerializer: Full details including participants and summary
    ConversationCreateSerializer: Direct/group conversation creation
    ConversationUpdateSerializer: Name, description, picture, settings

    ParticipantSerializer: Participant with user info
    ParticipantCreateSerializer: Add participant to a group

    MessageSerializer: Message with reactions, read receipts, deleted flag
    MessageCreateSerializer: Send new message
    MessageUpdateSerializer: Edit message content
    ReactionSerializer: Add or replace a reaction

Design Decisions:
    - Read and write serializers are separate
    - Write serializers check shape only; business rules (membership,
      metadata per content type, reply targets) live in services
    - Soft-deleted message content is replaced with a placeholder
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSerializer
from chat.constants import CONVERSATION_CONFIG, MESSAGE_CONFIG, REACTION_CONFIG
from chat.models import (
    ContentType,
    Conversation,
    ConversationType,
    Message,
    MessageReaction,
    MessageReadReceipt,
    Participant,
    ParticipantRole,
)

DELETED_PLACEHOLDER = "[Message deleted]"


# =============================================================================
# Message Serializers
# =============================================================================


class ReactionReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = MessageReaction
        fields = ["user_id", "emoji", "reacted_at"]
        read_only_fields = fields


class ReadReceiptSerializer(serializers.ModelSerializer):
    class Meta:
        model = MessageReadReceipt
        fields = ["user_id", "read_at"]
        read_only_fields = fields


class MessageSerializer(serializers.ModelSerializer):
    """
    Full message serializer.

    Deleted messages keep their id, sender and timestamps but expose
    neither content nor metadata.
    """

    sender = UserSerializer(read_only=True, allow_null=True)
    content = serializers.SerializerMethodField(
        help_text="Message content (replaced if deleted)"
    )
    metadata = serializers.SerializerMethodField()
    reply_to_id = serializers.IntegerField(read_only=True, allow_null=True)
    reactions = ReactionReadSerializer(many=True, read_only=True)
    read_by = ReadReceiptSerializer(source="read_receipts", many=True, read_only=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender",
            "content",
            "content_type",
            "metadata",
            "reply_to_id",
            "is_edited",
            "is_deleted",
            "deleted_at",
            "reactions",
            "read_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_content(self, obj: Message) -> str:
        if obj.is_deleted:
            return DELETED_PLACEHOLDER
        return obj.content

    def get_metadata(self, obj: Message) -> dict:
        if obj.is_deleted:
            return {}
        return obj.metadata or {}


class MessageCreateSerializer(serializers.Serializer):
    """
    Serializer for sending messages.

    content may be empty for non-text messages whose payload is in metadata.
    """

    content = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        required=False,
        allow_blank=True,
        default="",
        trim_whitespace=False,
        help_text="Message content (max 10,000 characters)",
    )
    content_type = serializers.ChoiceField(
        choices=ContentType.choices,
        default=ContentType.TEXT,
    )
    metadata = serializers.DictField(required=False, allow_null=True, default=None)
    reply_to = serializers.IntegerField(
        required=False,
        allow_null=True,
        help_text="Message ID being replied to (same conversation)",
    )
    encryption_key = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        max_length=500,
    )


class MessageUpdateSerializer(serializers.Serializer):
    content = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        trim_whitespace=False,
    )


class ReactionSerializer(serializers.Serializer):
    emoji = serializers.CharField(max_length=REACTION_CONFIG.MAX_EMOJI_LENGTH)


# =============================================================================
# Participant Serializers
# =============================================================================


class ParticipantSerializer(serializers.ModelSerializer):
    """
    Read serializer for conversation participants.

    Includes user details and role information.
    """

    user = UserSerializer(read_only=True)

    class Meta:
        model = Participant
        fields = [
            "id",
            "user",
            "role",
            "joined_at",
            "last_read_at",
        ]
        read_only_fields = fields


class ParticipantCreateSerializer(serializers.Serializer):
    """Serializer for adding a participant to a group conversation."""

    user_id = serializers.IntegerField(help_text="User ID to add to conversation")
    role = serializers.ChoiceField(
        choices=ParticipantRole.choices,
        default=ParticipantRole.MEMBER,
        help_text="Role for the new participant (admin or member)",
    )


# =============================================================================
# Conversation Serializers
# =============================================================================


class ConversationSerializer(serializers.ModelSerializer):
    """
    Conversation with participants and the cached last message summary.

    Expects participants prefetched as ``participant_list`` (see
    ConversationService.load_conversation); falls back to a query otherwise.
    """

    participants = serializers.SerializerMethodField(
        help_text="All participants in join order"
    )
    last_message = serializers.SerializerMethodField(
        help_text="Summary of the newest non-deleted message"
    )
    created_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Conversation
        fields = [
            "id",
            "conversation_type",
            "name",
            "description",
            "picture",
            "is_encrypted",
            "settings",
            "created_by_id",
            "participants",
            "last_message",
            "last_message_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_participants(self, obj: Conversation) -> list[dict]:
        participants = getattr(obj, "participant_list", None)
        if participants is None:
            participants = obj.participants.select_related("user").order_by(
                "joined_at", "id"
            )
        return ParticipantSerializer(participants, many=True).data

    def get_last_message(self, obj: Conversation) -> dict | None:
        return obj.last_message_summary


class ConversationCreateSerializer(serializers.Serializer):
    """
    Serializer for creating conversations.

    Supports both direct (1:1) and group conversations:
    - Direct: Finds existing or creates new between two users
    - Group: Creates new group with specified participants
    """

    conversation_type = serializers.ChoiceField(
        choices=ConversationType.choices,
        help_text="Type of conversation to create",
    )
    participant_ids = serializers.ListField(
        child=serializers.IntegerField(),
        allow_empty=True,
        default=list,
        help_text="Other users to include in the conversation",
    )
    name = serializers.CharField(
        max_length=CONVERSATION_CONFIG.MAX_NAME_LENGTH,
        required=False,
        allow_blank=True,
        default="",
        help_text="Name for group conversations (ignored for direct)",
    )
    description = serializers.CharField(
        max_length=CONVERSATION_CONFIG.MAX_DESCRIPTION_LENGTH,
        required=False,
        allow_blank=True,
        default="",
    )
    picture = serializers.URLField(
        max_length=500, required=False, allow_blank=True, default=""
    )
    is_encrypted = serializers.BooleanField(required=False, default=False)


class ConversationUpdateSerializer(serializers.Serializer):
    """
    Serializer for an admin's conversation changes.

    Every field is optional; only the fields present are applied.
    """

    name = serializers.CharField(
        max_length=CONVERSATION_CONFIG.MAX_NAME_LENGTH,
        required=False,
        allow_blank=True,
    )
    description = serializers.CharField(
        max_length=CONVERSATION_CONFIG.MAX_DESCRIPTION_LENGTH,
        required=False,
        allow_blank=True,
    )
    picture = serializers.URLField(max_length=500, required=False, allow_blank=True)
    settings = serializers.DictField(required=False)
