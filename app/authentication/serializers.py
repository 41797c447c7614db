"""
Serializers for user data embedded in chat responses.
"""

from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """
    Public view of a user (read operations).

    Used wherever a participant or message sender is rendered. Email and
    settings are intentionally absent.
    """

    class Meta:
        model = User
        fields = [
            "id",
            "display_name",
            "profile_picture",
            "status",
            "last_seen",
        ]
        read_only_fields = fields
