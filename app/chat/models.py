"""
Chat system models.

This module defines the data models for the chat system supporting:
- Direct (1:1) conversations between exactly two users
- Group conversations with admin/member roles

Models:
    Conversation: Container for messages, owns participants and the
        last message summary
    DirectConversationPair: Helper for enforcing uniqueness of direct conversations
    Participant: User participation in a conversation with role and read cursor
    Message: Individual message within a conversation
    MessageReaction: One reaction per user per message (latest wins)
    MessageReadReceipt: One receipt per user per message (first wins)

Design Decisions:
    - Per-user sub-entities (participants, reactions, receipts) are rows with a
      unique (owner, user) constraint, so "at most one per user" is structural
    - Message.conversation is PROTECT: a conversation cannot be removed while
      messages still reference it, the messages must be deleted first
    - Messages are only ever soft deleted by users; conversations are hard deleted
    - The last message summary is a denormalized cache for list ordering and
      display, never authoritative
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from core.managers import SoftDeleteManager, SoftDeleteQuerySet
from core.model_mixins import SoftDeleteMixin
from core.models import BaseModel

if TYPE_CHECKING:
    from typing import Any


class ConversationType(models.TextChoices):
    """
    Type of conversation.

    DIRECT: Exactly two participants, unique per user pair
    GROUP: Named conversation with admin-managed membership
    """

    DIRECT = "direct", "Direct Message"
    GROUP = "group", "Group"


class ParticipantRole(models.TextChoices):
    """
    Role within a conversation.

    ADMIN: Can update the conversation, manage participants, delete it
    MEMBER: Can read, send, react
    """

    ADMIN = "admin", "Admin"
    MEMBER = "member", "Member"


class ContentType(models.TextChoices):
    """
    Kind of message content.

    Non-text kinds carry their payload description in Message.metadata.
    """

    TEXT = "text", "Text"
    IMAGE = "image", "Image"
    FILE = "file", "File"
    AUDIO = "audio", "Audio"
    VIDEO = "video", "Video"
    LOCATION = "location", "Location"


def default_conversation_settings() -> dict[str, Any]:
    """Settings for a new conversation."""
    return {
        "slow_mode": 0,
        "is_public": False,
        "join_link": None,
    }


class Conversation(BaseModel):
    """
    A conversation between two or more users.

    Conversation Types:
        DIRECT: Exactly 2 participants, no name. Unique per user pair
                (enforced via DirectConversationPair).
        GROUP: Named, creator becomes the first admin.

    Invariant:
        Every conversation with participants has at least one admin.

    Fields:
        conversation_type: Type of conversation (direct or group)
        name: Group display name (empty for direct conversations)
        description: Optional free text
        picture: Optional picture URL
        created_by: User who created the conversation
        is_encrypted: Flag only, no cryptographic scheme attached
        settings: {"slow_mode": seconds, "is_public": bool, "join_link": str|None}
        last_message*: Denormalized summary of the newest non-deleted message

    Relationships:
        participants: Participant rows for this conversation
        messages: Message rows referencing this conversation
        direct_pair: DirectConversationPair if type is DIRECT
    """

    conversation_type = models.CharField(
        max_length=10,
        choices=ConversationType.choices,
        default=ConversationType.GROUP,
        db_index=True,
        help_text="Type of conversation (direct or group)",
    )

    name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Display name for group conversations (empty for direct)",
    )
    description = models.CharField(max_length=500, blank=True, default="")
    picture = models.URLField(max_length=500, blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation",
    )

    # Last message summary (denormalized)
    last_message = models.ForeignKey(
        "chat.Message",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Newest non-deleted message (cached)",
    )
    last_message_preview = models.TextField(blank=True, default="")
    last_message_sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    last_message_content_type = models.CharField(
        max_length=10,
        choices=ContentType.choices,
        blank=True,
        default="",
    )
    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of most recent message (for sorting conversation lists)",
    )

    is_encrypted = models.BooleanField(default=False)
    # Declared after every AUTH_USER_MODEL reference: the name shadows django.conf.settings
    settings = models.JSONField(default=default_conversation_settings, blank=True)

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["-last_message_at"],
                name="chat_conv_last_msg_idx",
            ),
        ]

    def __str__(self) -> str:
        if self.conversation_type == ConversationType.DIRECT:
            return f"Direct({self.pk})"
        if self.name:
            return f"Group: {self.name}"
        return f"Group({self.pk})"

    @property
    def is_direct(self) -> bool:
        """Check if this is a direct (1:1) conversation."""
        return self.conversation_type == ConversationType.DIRECT

    @property
    def is_group(self) -> bool:
        """Check if this is a group conversation."""
        return self.conversation_type == ConversationType.GROUP

    @property
    def last_message_summary(self) -> dict[str, Any] | None:
        """
        The cached summary of the newest message, or None when empty.

        Returns:
            Dict with message_id, content, sender_id, timestamp, content_type
        """
        if self.last_message_id is None:
            return None
        return {
            "message_id": self.last_message_id,
            "content": self.last_message_preview,
            "sender_id": self.last_message_sender_id,
            "timestamp": self.last_message_at,
            "content_type": self.last_message_content_type,
        }


class DirectConversationPair(models.Model):
    """
    Enforces uniqueness of direct conversations between two users.

    Stores user pairs in canonical order (lower user_id first), so
    regardless of who initiates, only one direct conversation can exist
    for the pair. A concurrent creator that loses the race gets an
    IntegrityError and falls back to the existing conversation.

    Constraints:
        - UniqueConstraint(user_lower, user_higher): One conversation per pair
        - CheckConstraint(user_lower_id < user_higher_id): Canonical order
    """

    conversation = models.OneToOneField(
        Conversation,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="direct_pair",
    )
    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )
    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )

    class Meta:
        db_table = "chat_direct_conversation_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_conversation_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="user_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        return f"DirectPair({self.user_lower_id}, {self.user_higher_id})"

    @staticmethod
    def canonical(user_a_id: int, user_b_id: int) -> tuple[int, int]:
        """Return the two ids ordered lower first."""
        return (user_a_id, user_b_id) if user_a_id < user_b_id else (user_b_id, user_a_id)


class Participant(BaseModel):
    """
    A user's membership in a conversation.

    Removing a participant deletes the row; the (conversation, user) pair
    is unique so a user appears at most once.

    Fields:
        conversation: Conversation this participation belongs to
        user: Participating user
        role: admin or member
        joined_at: When the user joined
        last_read_at: Read cursor, advanced when messages are fetched
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_participations",
    )
    role = models.CharField(
        max_length=10,
        choices=ParticipantRole.choices,
        default=ParticipantRole.MEMBER,
        db_index=True,
    )
    joined_at = models.DateTimeField(default=timezone.now)
    last_read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Newest message timestamp this user has fetched",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["joined_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_conversation_participant",
            ),
        ]
        indexes = [
            models.Index(
                fields=["user", "conversation"],
                name="chat_part_user_conv_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Participant(user={self.user_id}, conv={self.conversation_id}, role={self.role})"

    @property
    def is_admin(self) -> bool:
        return self.role == ParticipantRole.ADMIN


class Message(SoftDeleteMixin, BaseModel):
    """
    A message within a conversation.

    Soft Delete Behavior:
        - Message.objects excludes deleted messages (default reads)
        - Message.all_objects includes them (direct by-id lookups)
        - Content is retained in storage

    Fields:
        conversation: Owning conversation (immutable)
        sender: Author (immutable)
        content: Text body, or caption for non-text kinds
        content_type: text/image/file/audio/video/location
        metadata: Content-type specific payload description
        reply_to: Optional message in the same conversation
        is_edited: Set once the sender edits the content
        encryption_key: Opaque value stored as-is
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.PROTECT,
        related_name="messages",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="sent_messages",
    )
    content = models.TextField(blank=True, default="")
    content_type = models.CharField(
        max_length=10,
        choices=ContentType.choices,
        default=ContentType.TEXT,
    )
    metadata = models.JSONField(default=dict, blank=True)
    reply_to = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
    )
    is_edited = models.BooleanField(default=False)
    encryption_key = models.CharField(max_length=255, blank=True, default="")

    objects = SoftDeleteManager()
    all_objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        db_table = "chat_message"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["conversation", "is_deleted", "-created_at"],
                name="chat_msg_conv_visible_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Message({self.pk}, conv={self.conversation_id})"


class MessageReaction(models.Model):
    """
    A user's reaction to a message.

    One row per (message, user); reacting again replaces emoji and
    reacted_at on the same row.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reactions",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_reactions",
    )
    emoji = models.CharField(max_length=16)
    reacted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "chat_message_reaction"
        ordering = ["reacted_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user"],
                name="unique_reaction_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"Reaction({self.user_id} {self.emoji} on {self.message_id})"


class MessageReadReceipt(models.Model):
    """
    Records the first time a user fetched a message.

    One row per (message, user); repeat reads never overwrite read_at.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="read_receipts",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="read_receipts",
    )
    read_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "chat_message_read_receipt"
        ordering = ["read_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user"],
                name="unique_read_receipt_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"ReadReceipt({self.user_id} read {self.message_id})"
