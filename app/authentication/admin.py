"""
Django admin configuration for the User model.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from authentication.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin configuration for User model.

    Customized for email-based authentication; presence fields are
    read-only since live connections maintain them.
    """

    list_display = (
        "email",
        "display_name",
        "status",
        "is_active",
        "is_staff",
        "date_joined",
    )
    list_filter = ("status", "is_active", "is_staff", "is_superuser")
    search_fields = ("email", "display_name")
    ordering = ("-date_joined",)
    readonly_fields = ("status", "last_seen", "date_joined", "last_login")
    filter_horizontal = ("contacts", "blocked_users", "groups", "user_permissions")

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Profile", {"fields": ("display_name", "profile_picture", "bio")}),
        ("Presence", {"fields": ("status", "last_seen")}),
        (
            "Settings",
            {"fields": ("privacy_settings", "notification_settings")},
        ),
        ("Social", {"fields": ("contacts", "blocked_users")}),
        (
            "Status",
            {"fields": ("email_verified", "is_active", "is_staff", "is_superuser")},
        ),
        ("Permissions", {"fields": ("groups", "user_permissions")}),
        ("Important dates", {"fields": ("date_joined", "last_login")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "display_name", "password1", "password2"),
            },
        ),
    )
