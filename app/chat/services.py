"""
Chat service layer.

Business logic for conversations and messages. Views and the WebSocket
consumer call these classmethods; they raise core.exceptions on failure.

Services:
    ConversationService: Conversation lifecycle, membership, last message summary
    MessageService: Send, list (with read receipts), edit, delete, reactions

Consistency model:
    - Single-row writes are atomic; per-user sub-entities rely on unique
      constraints (participants, reactions, read receipts)
    - Multi-row sequences are ordered so the authoritative write lands first:
      a message is stored before the conversation summary is refreshed, and
      a conversation's messages are removed before the conversation
    - Summary refresh, read receipts and live pushes are best-effort: their
      failures are logged and never fail the request

Usage:
    from chat.services import ConversationService, MessageService

    conversation, created = ConversationService.create_conversation(
        actor=user, kind="direct", participant_ids=[other.id]
    )
    message = MessageService.send_message(user, conversation.id, "hello")
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F, Prefetch, Q
from django.utils import timezone

from chat.authorization import ChatAuthorization
from chat.constants import (
    CONVERSATION_CONFIG,
    LIVE_EVENTS,
    MESSAGE_CONFIG,
    PAGINATION_CONFIG,
    REACTION_CONFIG,
)
from chat.delivery import registry
from chat.models import (
    ContentType,
    Conversation,
    ConversationType,
    DirectConversationPair,
    Message,
    MessageReaction,
    MessageReadReceipt,
    Participant,
    ParticipantRole,
)
from core.exceptions import NotFoundError, ValidationError
from core.helpers import generate_token
from core.services import BaseService, store_errors

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

    from authentication.models import User


def _coerce_id(value: Any, label: str) -> int:
    """Turn a client-supplied id into an int or raise ValidationError."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {label}", error_code="INVALID_ID")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid {label}",
            error_code="INVALID_ID",
            details={label: value},
        ) from None


def _participants_prefetch() -> Prefetch:
    return Prefetch(
        "participants",
        queryset=Participant.objects.select_related("user").order_by("joined_at", "id"),
        to_attr="participant_list",
    )


def _event_data(instance) -> dict:
    from chat.serializers import ConversationSerializer, MessageSerializer

    if isinstance(instance, Message):
        return dict(MessageSerializer(instance).data)
    return dict(ConversationSerializer(instance).data)


# =============================================================================
# ConversationService
# =============================================================================


class ConversationService(BaseService):
    """
    Service for conversation lifecycle and membership.

    Methods:
        create_conversation: Create a direct (idempotent) or group conversation
        get_conversations_for_user: Paginated list ordered by last activity
        get_conversation: Fetch one conversation for a participant
        update_conversation: Admin-only changes to name/description/picture/settings
        delete_conversation: Admin-only delete, messages first
        add_participant: Admin-only, idempotent
        remove_participant: Admin-only, keeps at least one admin
        refresh_last_message_summary: Recompute the cached summary
    """

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    @store_errors
    def load_conversation(cls, conversation_id: Any) -> Conversation:
        """
        Load a conversation with its participants attached.

        Raises:
            ValidationError: Malformed id
            NotFoundError: No such conversation
        """
        conversation_id = _coerce_id(conversation_id, "conversation_id")
        conversation = (
            Conversation.objects.select_related("last_message_sender")
            .prefetch_related(_participants_prefetch())
            .filter(id=conversation_id)
            .first()
        )
        if conversation is None:
            raise NotFoundError(
                "Conversation not found",
                error_code="CONVERSATION_NOT_FOUND",
                details={"conversation_id": conversation_id},
            )
        return conversation

    @classmethod
    @store_errors
    def participant_ids(cls, conversation_id: int) -> list[int]:
        """User ids of a conversation's participants (empty if it is gone)."""
        return list(
            Participant.objects.filter(conversation_id=conversation_id)
            .order_by("joined_at", "id")
            .values_list("user_id", flat=True)
        )

    @classmethod
    def _load_users(cls, user_ids: Iterable[int]) -> dict[int, User]:
        user_ids = list(user_ids)
        User = get_user_model()
        users = {u.id: u for u in User.objects.filter(id__in=user_ids, is_active=True)}
        missing = [uid for uid in user_ids if uid not in users]
        if missing:
            raise NotFoundError(
                "One or more users were not found",
                error_code="USER_NOT_FOUND",
                details={"user_ids": missing},
            )
        return users

    # =========================================================================
    # Create
    # =========================================================================

    @classmethod
    @store_errors
    def create_conversation(
        cls,
        actor: User,
        kind: str,
        participant_ids: Iterable[Any] | None = None,
        name: str | None = None,
        description: str | None = None,
        picture: str | None = None,
        is_encrypted: bool = False,
    ) -> tuple[Conversation, bool]:
        """
        Create a conversation, or return the existing direct one.

        Direct:
            participant_ids must name exactly one other user. If a direct
            conversation between the pair already exists it is returned
            unchanged. Otherwise the actor becomes admin and the other
            user member.

        Group:
            name is required. The actor is the sole initial admin and the
            listed users become members.

        Args:
            actor: User creating the conversation
            kind: "direct" or "group"
            participant_ids: Other users to include
            name: Group display name
            description: Optional description
            picture: Optional picture URL
            is_encrypted: Stored flag only

        Returns:
            Tuple of (conversation, created)

        Raises:
            ValidationError: Unknown kind, wrong direct participant count,
                missing group name
            NotFoundError: A listed user does not exist or is inactive
        """
        if kind not in ConversationType.values:
            raise ValidationError(
                f"Conversation type must be one of: {', '.join(ConversationType.values)}",
                error_code="INVALID_CONVERSATION_TYPE",
            )

        ids = list(
            dict.fromkeys(
                _coerce_id(pid, "participant_id") for pid in (participant_ids or [])
            )
        )

        if kind == ConversationType.DIRECT:
            others = [pid for pid in ids if pid != actor.id]
            if len(others) != 1:
                raise ValidationError(
                    "Direct conversations require exactly one other participant",
                    error_code="INVALID_PARTICIPANT_COUNT",
                )
            return cls._get_or_create_direct(actor, others[0], is_encrypted)

        name = (name or "").strip()
        if not name:
            raise ValidationError(
                "Group conversations require a name",
                error_code="NAME_REQUIRED",
            )
        cls._validate_text_fields(name=name, description=description)

        member_ids = [pid for pid in ids if pid != actor.id]
        members = cls._load_users(member_ids)

        with cls.atomic():
            conversation = Conversation.objects.create(
                conversation_type=ConversationType.GROUP,
                name=name,
                description=(description or "").strip(),
                picture=picture or "",
                created_by=actor,
                is_encrypted=bool(is_encrypted),
            )
            now = timezone.now()
            Participant.objects.create(
                conversation=conversation,
                user=actor,
                role=ParticipantRole.ADMIN,
                joined_at=now,
            )
            Participant.objects.bulk_create(
                [
                    Participant(
                        conversation=conversation,
                        user=members[uid],
                        role=ParticipantRole.MEMBER,
                        joined_at=now,
                    )
                    for uid in member_ids
                ]
            )

        cls.get_logger().info(
            f"Created group conversation {conversation.id} by user {actor.id} "
            f"with {len(member_ids)} members"
        )
        conversation = cls.load_conversation(conversation.id)
        registry.notify_on_commit(
            conversation.id,
            LIVE_EVENTS.CONVERSATION_UPDATED,
            _event_data(conversation),
            exclude_user_id=actor.id,
        )
        return conversation, True

    @classmethod
    def _get_or_create_direct(
        cls,
        actor: User,
        other_id: int,
        is_encrypted: bool,
    ) -> tuple[Conversation, bool]:
        user_lower_id, user_higher_id = DirectConversationPair.canonical(actor.id, other_id)

        existing = DirectConversationPair.objects.filter(
            user_lower_id=user_lower_id,
            user_higher_id=user_higher_id,
        ).first()
        if existing:
            return cls.load_conversation(existing.conversation_id), False

        other = cls._load_users([other_id])[other_id]

        try:
            with cls.atomic():
                conversation = Conversation.objects.create(
                    conversation_type=ConversationType.DIRECT,
                    created_by=actor,
                    is_encrypted=bool(is_encrypted),
                )
                DirectConversationPair.objects.create(
                    conversation=conversation,
                    user_lower_id=user_lower_id,
                    user_higher_id=user_higher_id,
                )
                now = timezone.now()
                Participant.objects.bulk_create(
                    [
                        Participant(
                            conversation=conversation,
                            user=actor,
                            role=ParticipantRole.ADMIN,
                            joined_at=now,
                        ),
                        Participant(
                            conversation=conversation,
                            user=other,
                            role=ParticipantRole.MEMBER,
                            joined_at=now,
                        ),
                    ]
                )
        except IntegrityError:
            # A concurrent request created the pair first
            existing = DirectConversationPair.objects.filter(
                user_lower_id=user_lower_id,
                user_higher_id=user_higher_id,
            ).first()
            if existing is None:
                raise
            cls.get_logger().info(
                f"Direct conversation race for ({user_lower_id}, {user_higher_id}), "
                f"returning {existing.conversation_id}"
            )
            return cls.load_conversation(existing.conversation_id), False

        cls.get_logger().info(
            f"Created direct conversation {conversation.id} between "
            f"{actor.id} and {other_id}"
        )
        conversation = cls.load_conversation(conversation.id)
        registry.notify_on_commit(
            conversation.id,
            LIVE_EVENTS.CONVERSATION_UPDATED,
            _event_data(conversation),
            exclude_user_id=actor.id,
        )
        return conversation, True

    # =========================================================================
    # Read
    # =========================================================================

    @classmethod
    @store_errors
    def get_conversations_for_user(
        cls,
        user: User,
        page: int = 1,
        limit: int = PAGINATION_CONFIG.CONVERSATIONS_DEFAULT_LIMIT,
    ) -> tuple[list[Conversation], int]:
        """
        List the user's conversations, most recent activity first.

        Conversations without messages sort after all others (newest
        created first among them).

        Returns:
            Tuple of (conversations on the page, total count)
        """
        queryset = Conversation.objects.filter(participants__user=user)
        total = queryset.count()

        offset = (page - 1) * limit
        conversations = list(
            queryset.select_related("last_message_sender")
            .prefetch_related(_participants_prefetch())
            .order_by(
                F("last_message_at").desc(nulls_last=True),
                "-created_at",
                "-id",
            )[offset : offset + limit]
        )
        return conversations, total

    @classmethod
    def get_conversation(cls, actor: User, conversation_id: Any) -> Conversation:
        """
        Fetch a conversation the actor participates in.

        Raises:
            NotFoundError: No such conversation
            ForbiddenError: Actor is not a participant
        """
        conversation = cls.load_conversation(conversation_id)
        ChatAuthorization.require_participant(conversation, actor.id)
        return conversation

    # =========================================================================
    # Update / Delete
    # =========================================================================

    @classmethod
    def _validate_text_fields(cls, name=None, description=None) -> None:
        errors = {}
        if name is not None and len(name) > CONVERSATION_CONFIG.MAX_NAME_LENGTH:
            errors["name"] = [
                f"Ensure this field has no more than "
                f"{CONVERSATION_CONFIG.MAX_NAME_LENGTH} characters."
            ]
        if (
            description is not None
            and len(description) > CONVERSATION_CONFIG.MAX_DESCRIPTION_LENGTH
        ):
            errors["description"] = [
                f"Ensure this field has no more than "
                f"{CONVERSATION_CONFIG.MAX_DESCRIPTION_LENGTH} characters."
            ]
        if errors:
            raise ValidationError("Invalid conversation fields", details=errors)

    @classmethod
    def _merge_settings(cls, current: dict, patch: Any) -> dict:
        if not isinstance(patch, dict):
            raise ValidationError(
                "settings must be an object",
                error_code="INVALID_SETTINGS",
            )
        unknown = set(patch) - set(CONVERSATION_CONFIG.SETTINGS_KEYS)
        if unknown:
            raise ValidationError(
                "Unknown settings keys",
                error_code="INVALID_SETTINGS",
                details={"keys": sorted(unknown)},
            )

        merged = {**(current or {})}
        if "slow_mode" in patch:
            slow_mode = patch["slow_mode"]
            if isinstance(slow_mode, bool) or not isinstance(slow_mode, int) or slow_mode < 0:
                raise ValidationError(
                    "slow_mode must be a non-negative number of seconds",
                    error_code="INVALID_SETTINGS",
                )
            merged["slow_mode"] = slow_mode
        if "is_public" in patch:
            if not isinstance(patch["is_public"], bool):
                raise ValidationError(
                    "is_public must be a boolean",
                    error_code="INVALID_SETTINGS",
                )
            merged["is_public"] = patch["is_public"]

        # join_link is server generated; a client value is never taken
        if merged.get("is_public"):
            if not merged.get("join_link"):
                merged["join_link"] = generate_token(
                    CONVERSATION_CONFIG.JOIN_LINK_TOKEN_BYTES
                )
        else:
            merged["join_link"] = None
        return merged

    @classmethod
    @store_errors
    def update_conversation(
        cls,
        actor: User,
        conversation_id: Any,
        patch: dict[str, Any],
    ) -> Conversation:
        """
        Apply an admin's changes to a conversation.

        Only name, description, picture and settings are applicable; other
        keys in the patch are ignored.

        Raises:
            NotFoundError: No such conversation
            ForbiddenError: Actor is not an admin
            ValidationError: Invalid values (empty group name, bad settings)
        """
        conversation = cls.load_conversation(conversation_id)
        ChatAuthorization.require_admin(conversation, actor.id)

        applicable = {
            key: value
            for key, value in (patch or {}).items()
            if key in CONVERSATION_CONFIG.UPDATABLE_FIELDS
        }
        update_fields = []

        if "name" in applicable:
            name = (applicable["name"] or "").strip()
            if conversation.is_direct and name:
                raise ValidationError(
                    "Direct conversations have no name",
                    error_code="DIRECT_CONVERSATION_IMMUTABLE",
                )
            if conversation.is_group and not name:
                raise ValidationError(
                    "Group conversations require a name",
                    error_code="NAME_REQUIRED",
                )
            cls._validate_text_fields(name=name)
            conversation.name = name
            update_fields.append("name")

        if "description" in applicable:
            description = (applicable["description"] or "").strip()
            cls._validate_text_fields(description=description)
            conversation.description = description
            update_fields.append("description")

        if "picture" in applicable:
            conversation.picture = applicable["picture"] or ""
            update_fields.append("picture")

        if "settings" in applicable:
            conversation.settings = cls._merge_settings(
                conversation.settings, applicable["settings"]
            )
            update_fields.append("settings")

        if not update_fields:
            return conversation

        conversation.save(update_fields=[*update_fields, "updated_at"])
        cls.get_logger().info(
            f"User {actor.id} updated conversation {conversation.id}: "
            f"{', '.join(update_fields)}"
        )
        registry.notify_on_commit(
            conversation.id,
            LIVE_EVENTS.CONVERSATION_UPDATED,
            _event_data(conversation),
            exclude_user_id=actor.id,
        )
        return conversation

    @classmethod
    @store_errors
    def delete_conversation(cls, actor: User, conversation_id: Any) -> None:
        """
        Delete a conversation and all of its messages.

        Messages go first, the conversation last; Message.conversation is
        PROTECT, so the conversation row cannot outlive that ordering by
        accident. Both steps share one transaction.

        Raises:
            NotFoundError: No such conversation
            ForbiddenError: Actor is not an admin
        """
        conversation = cls.load_conversation(conversation_id)
        ChatAuthorization.require_admin(conversation, actor.id)
        recipients = ChatAuthorization.participant_ids(conversation)
        conversation_pk = conversation.id

        with cls.atomic():
            Conversation.objects.filter(id=conversation.id).update(last_message=None)
            deleted_messages, _ = Message.all_objects.filter(
                conversation=conversation
            ).hard_delete()
            conversation.delete()

        cls.get_logger().info(
            f"User {actor.id} deleted conversation {conversation_pk} "
            f"({deleted_messages} rows removed with its messages)"
        )
        registry.notify_on_commit(
            conversation_pk,
            LIVE_EVENTS.CONVERSATION_DELETED,
            {"conversation_id": conversation_pk},
            exclude_user_id=actor.id,
            recipients=recipients,
        )

    # =========================================================================
    # Participants
    # =========================================================================

    @classmethod
    @store_errors
    def add_participant(
        cls,
        actor: User,
        conversation_id: Any,
        user_id: Any,
        role: str | None = None,
    ) -> tuple[Conversation, bool]:
        """
        Add a user to a group conversation.

        Idempotent: a user who already participates is left untouched,
        including their role.

        Returns:
            Tuple of (conversation with refreshed participants, added)

        Raises:
            NotFoundError: No such conversation or user
            ForbiddenError: Actor is not an admin
            ValidationError: Direct conversation, unknown role
        """
        conversation = cls.load_conversation(conversation_id)
        ChatAuthorization.require_admin(conversation, actor.id)
        user_id = _coerce_id(user_id, "user_id")

        role = role or ParticipantRole.MEMBER
        if role not in ParticipantRole.values:
            raise ValidationError(
                f"Role must be one of: {', '.join(ParticipantRole.values)}",
                error_code="INVALID_ROLE",
            )

        if ChatAuthorization.is_participant(conversation, user_id):
            return conversation, False

        if conversation.is_direct:
            raise ValidationError(
                "Direct conversations have exactly two participants",
                error_code="DIRECT_CONVERSATION_IMMUTABLE",
            )

        user = cls._load_users([user_id])[user_id]
        _, created = Participant.objects.get_or_create(
            conversation=conversation,
            user=user,
            defaults={"role": role},
        )
        if created:
            cls.get_logger().info(
                f"User {actor.id} added user {user_id} to conversation "
                f"{conversation.id} as {role}"
            )
        conversation = cls.load_conversation(conversation.id)
        if created:
            registry.notify_on_commit(
                conversation.id,
                LIVE_EVENTS.PARTICIPANT_ADDED,
                {"user_id": user_id, "role": role, "added_by": actor.id},
                exclude_user_id=actor.id,
            )
        return conversation, created

    @classmethod
    @store_errors
    def remove_participant(
        cls,
        actor: User,
        conversation_id: Any,
        user_id: Any,
    ) -> Conversation:
        """
        Remove a user from a group conversation.

        The admin count is re-checked under row locks before the delete,
        so two admins removing each other concurrently cannot both succeed.

        Raises:
            NotFoundError: No such conversation, or the user is not a participant
            ForbiddenError: Actor is not an admin
            ValidationError: Removal would leave the conversation without an
                admin, or the conversation is direct
        """
        conversation = cls.load_conversation(conversation_id)
        ChatAuthorization.require_admin(conversation, actor.id)
        user_id = _coerce_id(user_id, "user_id")

        if conversation.is_direct:
            raise ValidationError(
                "Direct conversations have exactly two participants",
                error_code="DIRECT_CONVERSATION_IMMUTABLE",
            )
        if not ChatAuthorization.is_participant(conversation, user_id):
            raise NotFoundError(
                "User is not a participant in this conversation",
                error_code="PARTICIPANT_NOT_FOUND",
            )

        with cls.atomic():
            locked = list(
                Participant.objects.select_for_update()
                .filter(conversation=conversation)
                .order_by("id")
            )
            target = next((p for p in locked if p.user_id == user_id), None)
            if target is None:
                raise NotFoundError(
                    "User is not a participant in this conversation",
                    error_code="PARTICIPANT_NOT_FOUND",
                )
            admins = [p for p in locked if p.role == ParticipantRole.ADMIN]
            if target.role == ParticipantRole.ADMIN and len(admins) <= 1:
                raise ValidationError(
                    "Cannot remove the last admin of a conversation",
                    error_code="LAST_ADMIN",
                )
            target.delete()

        cls.get_logger().info(
            f"User {actor.id} removed user {user_id} from conversation {conversation.id}"
        )
        recipients = ChatAuthorization.participant_ids(conversation)
        conversation = cls.load_conversation(conversation.id)
        registry.notify_on_commit(
            conversation.id,
            LIVE_EVENTS.PARTICIPANT_REMOVED,
            {"user_id": user_id, "removed_by": actor.id},
            exclude_user_id=actor.id,
            recipients=recipients,
        )
        return conversation

    # =========================================================================
    # Last message summary
    # =========================================================================

    @staticmethod
    def _summary_fields(message: Message | None) -> dict[str, Any]:
        if message is None:
            return {
                "last_message_id": None,
                "last_message_preview": "",
                "last_message_sender_id": None,
                "last_message_content_type": "",
                "last_message_at": None,
            }
        return {
            "last_message_id": message.id,
            "last_message_preview": message.content[: MESSAGE_CONFIG.PREVIEW_LENGTH],
            "last_message_sender_id": message.sender_id,
            "last_message_content_type": message.content_type,
            "last_message_at": message.created_at,
        }

    @classmethod
    def apply_message_to_summary(cls, message: Message) -> bool:
        """
        Point the conversation summary at a newly sent message.

        A single conditional UPDATE: a message older than the current
        summary never replaces it.

        Returns:
            True if the summary row changed
        """
        updated = (
            Conversation.objects.filter(id=message.conversation_id)
            .filter(
                Q(last_message_at__isnull=True)
                | Q(last_message_at__lte=message.created_at)
            )
            .update(**cls._summary_fields(message), updated_at=timezone.now())
        )
        return bool(updated)

    @classmethod
    def refresh_last_message_summary(cls, conversation_id: int) -> Message | None:
        """
        Recompute the summary from the newest non-deleted message.

        Used after deletes and by the reconciliation task.

        Returns:
            The message now summarized, or None if the conversation is empty
        """
        newest = (
            Message.objects.filter(conversation_id=conversation_id)
            .select_related("sender")
            .order_by("-created_at", "-id")
            .first()
        )
        Conversation.objects.filter(id=conversation_id).update(
            **cls._summary_fields(newest),
            updated_at=timezone.now(),
        )
        return newest

    @classmethod
    def schedule_summary_refresh(cls, conversation_id: int) -> None:
        """Queue reconciliation of a summary that could not be written inline."""
        from chat.tasks import refresh_last_message_summary

        try:
            refresh_last_message_summary.delay(conversation_id)
        except Exception:
            cls.get_logger().exception(
                f"Could not queue summary refresh for conversation {conversation_id}"
            )


# =============================================================================
# MessageService
# =============================================================================


class MessageService(BaseService):
    """
    Service for message operations.

    Methods:
        send_message: Create a message and refresh the conversation summary
        get_messages: Page of visible messages, marks them read
        get_message: Direct by-id lookup (deleted messages included)
        edit_message: Sender-only content change
        delete_message: Sender-only soft delete
        add_reaction: One reaction per user, latest wins
        remove_reaction: Idempotent removal of the caller's reaction
    """

    @classmethod
    @store_errors
    def load_message(cls, message_id: Any, include_deleted: bool = True) -> Message:
        """
        Load a message with its conversation (and participants) attached.

        Raises:
            ValidationError: Malformed id
            NotFoundError: No such message (or deleted, when excluded)
        """
        message_id = _coerce_id(message_id, "message_id")
        manager = Message.all_objects if include_deleted else Message.objects
        message = (
            manager.select_related("sender", "conversation")
            .prefetch_related(
                Prefetch(
                    "conversation__participants",
                    queryset=Participant.objects.order_by("joined_at", "id"),
                    to_attr="participant_list",
                ),
                "reactions",
                "read_receipts",
            )
            .filter(id=message_id)
            .first()
        )
        if message is None:
            raise NotFoundError(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
                details={"message_id": message_id},
            )
        return message

    # =========================================================================
    # Validation
    # =========================================================================

    @classmethod
    def validate_metadata(cls, content_type: str, metadata: Any) -> dict[str, Any]:
        """
        Check the metadata shape for a content type and drop unknown keys.

        Text messages carry no metadata. Every other type needs the keys
        listed in MESSAGE_CONFIG.REQUIRED_METADATA.

        Raises:
            ValidationError: Missing or malformed metadata
        """
        if content_type == ContentType.TEXT:
            return {}

        if not isinstance(metadata, dict) or not metadata:
            raise ValidationError(
                f"Metadata is required for {content_type} messages",
                error_code="METADATA_REQUIRED",
            )

        errors: dict[str, list[str]] = {}
        for key in MESSAGE_CONFIG.REQUIRED_METADATA[content_type]:
            if metadata.get(key) in (None, ""):
                errors[key] = ["This field is required."]

        cleaned = {
            key: metadata[key]
            for key in MESSAGE_CONFIG.ALLOWED_METADATA[content_type]
            if key in metadata
        }
        for key in MESSAGE_CONFIG.NUMERIC_METADATA:
            value = cleaned.get(key)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                errors[key] = ["Must be a non-negative number."]

        if content_type == ContentType.LOCATION and "location" not in errors:
            location_error = cls._location_error(metadata.get("location"))
            if location_error:
                errors["location"] = [location_error]

        if errors:
            raise ValidationError(
                f"Invalid metadata for {content_type} message",
                error_code="INVALID_METADATA",
                details=errors,
            )
        return cleaned

    @staticmethod
    def _location_error(location: Any) -> str | None:
        if not isinstance(location, dict) or location.get("type") != "Point":
            return 'Expected {"type": "Point", "coordinates": [lng, lat]}.'
        coordinates = location.get("coordinates")
        if (
            not isinstance(coordinates, (list, tuple))
            or len(coordinates) != 2
            or not all(
                isinstance(c, (int, float)) and not isinstance(c, bool)
                for c in coordinates
            )
        ):
            return "coordinates must be [longitude, latitude]."
        lng, lat = coordinates
        if not (-180 <= lng <= 180 and -90 <= lat <= 90):
            return "coordinates are out of range."
        return None

    @classmethod
    def _validate_content(cls, content: Any, content_type: str) -> str:
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise ValidationError("content must be a string", error_code="INVALID_CONTENT")
        if content_type == ContentType.TEXT and not content.strip():
            raise ValidationError(
                "Message content cannot be empty",
                error_code="CONTENT_REQUIRED",
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            raise ValidationError(
                f"Message content exceeds {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )
        return content

    @classmethod
    def _check_slow_mode(cls, conversation: Conversation, actor: User) -> None:
        slow_mode = (conversation.settings or {}).get("slow_mode") or 0
        if slow_mode <= 0 or ChatAuthorization.is_admin(conversation, actor.id):
            return
        cutoff = timezone.now() - timedelta(seconds=slow_mode)
        if Message.all_objects.filter(
            conversation=conversation,
            sender=actor,
            created_at__gt=cutoff,
        ).exists():
            raise ValidationError(
                f"Slow mode is on: wait {slow_mode} seconds between messages",
                error_code="SLOW_MODE",
                details={"slow_mode": slow_mode},
            )

    # =========================================================================
    # Send / Read
    # =========================================================================

    @classmethod
    @store_errors
    def send_message(
        cls,
        actor: User,
        conversation_id: Any,
        content: str | None,
        content_type: str = ContentType.TEXT,
        metadata: dict[str, Any] | None = None,
        reply_to: Any = None,
        encryption_key: str = "",
    ) -> Message:
        """
        Send a message to a conversation.

        The message row is written first and is authoritative. The
        conversation summary is refreshed afterwards; if that fails the
        refresh is queued and the send still succeeds.

        Not idempotent: callers must not blindly retry.

        Raises:
            NotFoundError: No such conversation
            ForbiddenError: Actor is not a participant
            ValidationError: Bad content type, content, metadata or reply target
        """
        conversation = ConversationService.load_conversation(conversation_id)
        ChatAuthorization.require_participant(conversation, actor.id)

        content_type = content_type or ContentType.TEXT
        if content_type not in ContentType.values:
            raise ValidationError(
                f"content_type must be one of: {', '.join(ContentType.values)}",
                error_code="INVALID_CONTENT_TYPE",
            )
        content = cls._validate_content(content, content_type)
        cleaned_metadata = cls.validate_metadata(content_type, metadata)

        reply_target = None
        if reply_to not in (None, ""):
            reply_id = _coerce_id(reply_to, "reply_to")
            reply_target = Message.all_objects.filter(id=reply_id).first()
            if reply_target is None or reply_target.conversation_id != conversation.id:
                raise ValidationError(
                    "Replies must reference a message in the same conversation",
                    error_code="INVALID_REPLY_TARGET",
                )

        cls._check_slow_mode(conversation, actor)

        message = Message.objects.create(
            conversation=conversation,
            sender=actor,
            content=content,
            content_type=content_type,
            metadata=cleaned_metadata,
            reply_to=reply_target,
            encryption_key=encryption_key or "",
        )
        cls.get_logger().info(
            f"User {actor.id} sent {content_type} message {message.id} "
            f"to conversation {conversation.id}"
        )

        try:
            with transaction.atomic():
                ConversationService.apply_message_to_summary(message)
        except Exception:
            cls.get_logger().exception(
                f"Summary update failed for conversation {conversation.id}, "
                f"queueing refresh"
            )
            ConversationService.schedule_summary_refresh(conversation.id)

        registry.notify_on_commit(
            conversation.id,
            LIVE_EVENTS.MESSAGE_NEW,
            _event_data(message),
        )
        return message

    @classmethod
    @store_errors
    def get_messages(
        cls,
        actor: User,
        conversation_id: Any,
        page: int = 1,
        limit: int = PAGINATION_CONFIG.MESSAGES_DEFAULT_LIMIT,
    ) -> tuple[list[Message], int]:
        """
        Return a page of visible messages, oldest first within the page.

        Page 1 holds the newest messages. Every returned message is marked
        read by the actor as a side effect (first read wins); failures of
        that side effect are logged only.

        Returns:
            Tuple of (messages oldest-first, total visible messages)

        Raises:
            NotFoundError: No such conversation
            ForbiddenError: Actor is not a participant
        """
        conversation = ConversationService.load_conversation(conversation_id)
        ChatAuthorization.require_participant(conversation, actor.id)

        visible = Message.objects.filter(conversation=conversation)
        total = visible.count()

        offset = (page - 1) * limit
        page_ids = list(
            visible.order_by("-created_at", "-id").values_list("id", flat=True)[
                offset : offset + limit
            ]
        )

        cls._mark_as_read(actor, conversation, page_ids)

        messages = list(
            Message.objects.filter(id__in=page_ids)
            .select_related("sender", "reply_to")
            .prefetch_related("reactions", "read_receipts")
            .order_by("-created_at", "-id")
        )
        messages.reverse()
        return messages, total

    @classmethod
    def _mark_as_read(
        cls,
        actor: User,
        conversation: Conversation,
        message_ids: list[int],
    ) -> None:
        if not message_ids:
            return
        try:
            with transaction.atomic():
                now = timezone.now()
                MessageReadReceipt.objects.bulk_create(
                    [
                        MessageReadReceipt(message_id=mid, user=actor, read_at=now)
                        for mid in message_ids
                    ],
                    ignore_conflicts=True,
                )
                newest = (
                    Message.objects.filter(id__in=message_ids)
                    .order_by("-created_at")
                    .values_list("created_at", flat=True)
                    .first()
                )
                Participant.objects.filter(conversation=conversation, user=actor).filter(
                    Q(last_read_at__isnull=True) | Q(last_read_at__lt=newest)
                ).update(last_read_at=newest)
        except Exception:
            cls.get_logger().exception(
                f"Failed to record read receipts for user {actor.id} "
                f"in conversation {conversation.id}"
            )

    @classmethod
    def get_message(cls, actor: User, message_id: Any) -> Message:
        """
        Direct by-id lookup. Soft-deleted messages are returned, flagged.

        Raises:
            NotFoundError: No such message
            ForbiddenError: Actor is not a participant of its conversation
        """
        message = cls.load_message(message_id)
        ChatAuthorization.require_participant(message.conversation, actor.id)
        return message

    # =========================================================================
    # Edit / Delete
    # =========================================================================

    @classmethod
    @store_errors
    def edit_message(cls, actor: User, message_id: Any, content: str) -> Message:
        """
        Replace a message's content. Only the sender may edit.

        Content type and metadata never change.

        Raises:
            NotFoundError: No such message, or it was deleted
            ForbiddenError: Actor is not the sender
            ValidationError: Invalid content
        """
        message = cls.load_message(message_id)
        ChatAuthorization.require_author(message, actor.id)
        if message.is_deleted:
            raise NotFoundError(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
            )
        content = cls._validate_content(content, message.content_type)

        with cls.atomic():
            locked = Message.all_objects.select_for_update().get(id=message.id)
            locked.content = content
            locked.is_edited = True
            locked.save(update_fields=["content", "is_edited", "updated_at"])
        message.content = locked.content
        message.is_edited = True
        message.updated_at = locked.updated_at

        try:
            Conversation.objects.filter(
                id=message.conversation_id, last_message_id=message.id
            ).update(last_message_preview=content[: MESSAGE_CONFIG.PREVIEW_LENGTH])
        except Exception:
            cls.get_logger().exception(
                f"Summary preview update failed for message {message.id}"
            )

        cls.get_logger().info(f"User {actor.id} edited message {message.id}")
        registry.notify_on_commit(
            message.conversation_id,
            LIVE_EVENTS.MESSAGE_EDITED,
            _event_data(message),
            exclude_user_id=actor.id,
        )
        return message

    @classmethod
    @store_errors
    def delete_message(cls, actor: User, message_id: Any) -> Message:
        """
        Soft delete a message. Only the sender may delete.

        Idempotent. If the message was the conversation's summary, the
        summary is recomputed from the remaining messages (best-effort).

        Raises:
            NotFoundError: No such message
            ForbiddenError: Actor is not the sender
        """
        message = cls.load_message(message_id)
        ChatAuthorization.require_author(message, actor.id)
        if message.is_deleted:
            return message

        message.soft_delete()
        cls.get_logger().info(f"User {actor.id} deleted message {message.id}")

        if message.conversation.last_message_id == message.id:
            try:
                with transaction.atomic():
                    ConversationService.refresh_last_message_summary(
                        message.conversation_id
                    )
            except Exception:
                cls.get_logger().exception(
                    f"Summary recompute failed for conversation "
                    f"{message.conversation_id}, queueing refresh"
                )
                ConversationService.schedule_summary_refresh(message.conversation_id)

        registry.notify_on_commit(
            message.conversation_id,
            LIVE_EVENTS.MESSAGE_DELETED,
            {"message_id": message.id, "conversation_id": message.conversation_id},
            exclude_user_id=actor.id,
        )
        return message

    # =========================================================================
    # Reactions
    # =========================================================================

    @classmethod
    def _reaction_payload(cls, message: Message) -> dict[str, Any]:
        return {
            "message_id": message.id,
            "reactions": [
                {
                    "user_id": r.user_id,
                    "emoji": r.emoji,
                    "reacted_at": r.reacted_at,
                }
                for r in message.reactions.all()
            ],
        }

    @classmethod
    @store_errors
    def add_reaction(cls, actor: User, message_id: Any, emoji: str) -> Message:
        """
        React to a message. A repeat call replaces the user's emoji.

        Raises:
            NotFoundError: No such (visible) message
            ForbiddenError: Actor is not a participant
            ValidationError: Missing or oversized emoji
        """
        message = cls.load_message(message_id, include_deleted=False)
        ChatAuthorization.require_participant(message.conversation, actor.id)

        emoji = (emoji or "").strip() if isinstance(emoji, str) else ""
        if not emoji:
            raise ValidationError("Emoji is required", error_code="EMOJI_REQUIRED")
        if len(emoji) > REACTION_CONFIG.MAX_EMOJI_LENGTH:
            raise ValidationError("Emoji is too long", error_code="INVALID_EMOJI")

        MessageReaction.objects.update_or_create(
            message=message,
            user=actor,
            defaults={"emoji": emoji, "reacted_at": timezone.now()},
        )

        message = cls.load_message(message.id)
        registry.notify_on_commit(
            message.conversation_id,
            LIVE_EVENTS.REACTION_UPDATED,
            cls._reaction_payload(message),
            exclude_user_id=actor.id,
        )
        return message

    @classmethod
    @store_errors
    def remove_reaction(cls, actor: User, message_id: Any) -> Message:
        """
        Remove the caller's reaction. No-op when there is none.

        Raises:
            NotFoundError: No such (visible) message
            ForbiddenError: Actor is not a participant
        """
        message = cls.load_message(message_id, include_deleted=False)
        ChatAuthorization.require_participant(message.conversation, actor.id)

        removed, _ = MessageReaction.objects.filter(message=message, user=actor).delete()
        if not removed:
            return message

        message = cls.load_message(message.id)
        registry.notify_on_commit(
            message.conversation_id,
            LIVE_EVENTS.REACTION_UPDATED,
            cls._reaction_payload(message),
            exclude_user_id=actor.id,
        )
        return message
