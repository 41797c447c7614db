"""
Authorization gate for chat operations.

Pure predicates over entities the caller has already loaded. Nothing in this
module touches the database: conversations must arrive with their
participants attached as ``participant_list`` (see
ConversationService.load_conversation, which prefetches them with
``Prefetch("participants", to_attr="participant_list")``).

Predicates:
    is_participant(conversation, user_id)
    is_admin(conversation, user_id)
    is_author(message, user_id)

Guards (raise ForbiddenError instead of returning False):
    require_participant, require_admin, require_author

Usage:
    from chat.authorization import ChatAuthorization

    conversation = ConversationService.load_conversation(conversation_id)
    ChatAuthorization.require_admin(conversation, actor.id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from chat.models import ParticipantRole
from core.exceptions import ForbiddenError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chat.models import Conversation, Message, Participant


def _participants(conversation: Conversation) -> Sequence[Participant]:
    try:
        return conversation.participant_list
    except AttributeError:
        raise LookupError(
            "Conversation participants must be loaded before authorization checks"
        ) from None


class ChatAuthorization:
    """
    Stateless authorization predicates for conversations and messages.
    """

    @staticmethod
    def get_participant(conversation: Conversation, user_id: int) -> Participant | None:
        """Return the user's participant entry, or None."""
        for participant in _participants(conversation):
            if participant.user_id == user_id:
                return participant
        return None

    @classmethod
    def is_participant(cls, conversation: Conversation, user_id: int) -> bool:
        """Check if the user is a participant of the conversation."""
        return cls.get_participant(conversation, user_id) is not None

    @classmethod
    def is_admin(cls, conversation: Conversation, user_id: int) -> bool:
        """Check if the user participates with the admin role."""
        participant = cls.get_participant(conversation, user_id)
        return participant is not None and participant.role == ParticipantRole.ADMIN

    @staticmethod
    def is_author(message: Message, user_id: int) -> bool:
        """Check if the user sent the message."""
        return message.sender_id is not None and message.sender_id == user_id

    @staticmethod
    def admin_count(conversation: Conversation) -> int:
        """Number of admins among the loaded participants."""
        return sum(
            1 for p in _participants(conversation) if p.role == ParticipantRole.ADMIN
        )

    @staticmethod
    def participant_ids(conversation: Conversation) -> list[int]:
        """User ids of the loaded participants, in join order."""
        return [p.user_id for p in _participants(conversation)]

    # =========================================================================
    # Guards
    # =========================================================================

    @classmethod
    def require_participant(cls, conversation: Conversation, user_id: int) -> None:
        """
        Raise ForbiddenError unless the user is a participant.

        The message is the same whether or not the conversation has content,
        so nothing beyond its existence leaks.
        """
        if not cls.is_participant(conversation, user_id):
            raise ForbiddenError(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

    @classmethod
    def require_admin(cls, conversation: Conversation, user_id: int) -> None:
        """Raise ForbiddenError unless the user is an admin of the conversation."""
        if not cls.is_admin(conversation, user_id):
            raise ForbiddenError(
                "Only conversation admins can perform this action",
                error_code="NOT_ADMIN",
            )

    @classmethod
    def require_author(cls, message: Message, user_id: int) -> None:
        """Raise ForbiddenError unless the user sent the message."""
        if not cls.is_author(message, user_id):
            raise ForbiddenError(
                "Only the sender can modify this message",
                error_code="NOT_AUTHOR",
            )
