"""
Authentication models.

This module defines the User model: the identity referenced by conversations
and messages. The chat core only reads users by id and updates the presence
fields (status, last_seen) when live connections come and go.

Related files:
    - managers.py: Custom user manager for email-based creation
    - identity.py: Credential verification (JWT access tokens)
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


def default_privacy_settings():
    """Privacy defaults for new users."""
    return {
        "last_seen": "everyone",
        "profile_photo": "everyone",
        "read_receipts": True,
    }


def default_notification_settings():
    """Notification defaults for new users."""
    return {
        "new_messages": True,
        "group_messages": True,
        "calls": True,
    }


class PresenceStatus(models.TextChoices):
    """Presence states shown to contacts."""

    ONLINE = "online", "Online"
    AWAY = "away", "Away"
    OFFLINE = "offline", "Offline"


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        display_name: Name shown in conversations
        profile_picture: Avatar URL
        bio: Short free-text description
        status: Presence (online/away/offline), maintained by the delivery layer
        last_seen: Last time the presence status changed to offline
        privacy_settings: Who can see last seen / photo, read receipts toggle
        notification_settings: Per-category notification switches
        contacts: Users this user has saved
        blocked_users: Users this user has blocked

    Usage:
        user = User.objects.create_user(
            email="user@example.com",
            password="securepassword",
            display_name="Jane",
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    email_verified = models.BooleanField(
        default=False,
        help_text="Whether the user's email has been verified",
    )
    display_name = models.CharField(
        max_length=100,
        blank=True,
        help_text="Name shown to other participants",
    )
    profile_picture = models.URLField(
        max_length=500,
        blank=True,
        help_text="URL of the user's avatar",
    )
    bio = models.CharField(max_length=500, blank=True)

    # Presence
    status = models.CharField(
        max_length=10,
        choices=PresenceStatus.choices,
        default=PresenceStatus.OFFLINE,
        help_text="Presence status, updated when live connections open/close",
    )
    last_seen = models.DateTimeField(null=True, blank=True)

    # Settings
    privacy_settings = models.JSONField(default=default_privacy_settings, blank=True)
    notification_settings = models.JSONField(
        default=default_notification_settings, blank=True
    )

    # Social graph
    contacts = models.ManyToManyField(
        "self",
        symmetrical=False,
        blank=True,
        related_name="contact_of",
    )
    blocked_users = models.ManyToManyField(
        "self",
        symmetrical=False,
        blank=True,
        related_name="blocked_by",
    )

    # Account status flags
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        """Return the display name, falling back to the email."""
        return self.display_name or self.email

    def get_short_name(self):
        """Return the display name, or the email local part if not set."""
        return self.display_name or self.email.split("@")[0]
