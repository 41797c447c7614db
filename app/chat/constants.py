"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Pagination of conversation and message lists
- Conversation and message content limits
- Metadata requirements per message content type
- Live delivery event names and WebSocket close codes

Import example:
    from chat.constants import MESSAGE_CONFIG, LIVE_EVENTS, CLOSE_CODES
"""

from typing import Final


# =============================================================================
# Pagination Configuration
# =============================================================================


class PAGINATION_CONFIG:
    """Page sizes for list operations."""

    CONVERSATIONS_DEFAULT_LIMIT: Final[int] = 20
    MESSAGES_DEFAULT_LIMIT: Final[int] = 50
    MAX_LIMIT: Final[int] = 100


# =============================================================================
# Conversation Configuration
# =============================================================================


class CONVERSATION_CONFIG:
    """Configuration for conversation fields."""

    MAX_NAME_LENGTH: Final[int] = 100
    MAX_DESCRIPTION_LENGTH: Final[int] = 500

    # Fields an admin may change through update
    UPDATABLE_FIELDS: Final[tuple] = ("name", "description", "picture", "settings")

    # Keys accepted inside Conversation.settings
    SETTINGS_KEYS: Final[tuple] = ("slow_mode", "is_public", "join_link")

    # Invite token size in bytes (hex string is twice as long)
    JOIN_LINK_TOKEN_BYTES: Final[int] = 16


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters

    # Characters of content copied into the conversation's last message summary
    PREVIEW_LENGTH: Final[int] = 200

    # Metadata keys that must be present per content type
    REQUIRED_METADATA: Final[dict] = {
        "image": ("file_url",),
        "video": ("file_url",),
        "audio": ("file_url",),
        "file": ("file_url", "file_name"),
        "location": ("location",),
    }

    # Metadata keys accepted per content type (anything else is dropped)
    ALLOWED_METADATA: Final[dict] = {
        "image": (
            "file_url", "thumbnail_url", "width", "height",
            "file_name", "file_size", "file_type",
        ),
        "video": (
            "file_url", "thumbnail_url", "duration", "width", "height",
            "file_size", "file_type",
        ),
        "audio": ("file_url", "duration", "file_size", "file_type"),
        "file": ("file_url", "file_name", "file_size", "file_type"),
        "location": ("location",),
    }

    NUMERIC_METADATA: Final[tuple] = (
        "width", "height", "duration", "file_size",
    )


# =============================================================================
# Reaction Configuration
# =============================================================================


class REACTION_CONFIG:
    """Configuration for message reactions."""

    # Max characters for a single emoji (handles compound emojis)
    MAX_EMOJI_LENGTH: Final[int] = 16


# =============================================================================
# Live Delivery
# =============================================================================


class LIVE_EVENTS:
    """Event type names pushed to live connections."""

    MESSAGE_NEW: Final[str] = "message.new"
    MESSAGE_EDITED: Final[str] = "message.edited"
    MESSAGE_DELETED: Final[str] = "message.deleted"
    REACTION_UPDATED: Final[str] = "reaction.updated"
    PARTICIPANT_ADDED: Final[str] = "participant.added"
    PARTICIPANT_REMOVED: Final[str] = "participant.removed"
    CONVERSATION_UPDATED: Final[str] = "conversation.updated"
    CONVERSATION_DELETED: Final[str] = "conversation.deleted"
    TYPING: Final[str] = "typing"

    # Client -> server frame types
    CLIENT_CHAT: Final[str] = "chat"
    CLIENT_TYPING: Final[str] = "typing"

    # Server -> client replies to client frames
    CHAT_ACK: Final[str] = "chat.ack"
    ERROR: Final[str] = "error"


class CLOSE_CODES:
    """WebSocket close codes used when refusing a connection."""

    AUTH_FAILED: Final[int] = 4001


# Channel layer group prefix for per-user fan-out
USER_GROUP_PREFIX: Final[str] = "user_"
