"""
Credential verification for HTTP requests and live connections.

The identity provider turns an opaque bearer credential (a simplejwt access
token) into a verified, active user. Token issuance lives in simplejwt's
views (see config/urls.py); this module only verifies.

Usage:
    from authentication.identity import IdentityProvider

    user_id = IdentityProvider.verify(token)          # int, or raises AuthError
    user = IdentityProvider.authenticate(token)       # User, or raises AuthError
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

from core.exceptions import AuthError

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


class IdentityProvider:
    """
    Verifies bearer credentials.

    Stateless; all methods are classmethods so callers never hold an instance.
    """

    @classmethod
    def verify(cls, credential: str | None) -> int:
        """
        Validate an access token and return the user id it was issued for.

        Args:
            credential: Raw JWT access token (no "Bearer " prefix)

        Returns:
            The user id claim

        Raises:
            AuthError: Missing, malformed, expired, or wrong-type token
        """
        if not credential:
            raise AuthError(
                "Authentication credentials were not provided",
                error_code="CREDENTIAL_MISSING",
            )

        try:
            token = AccessToken(credential)
        except TokenError as e:
            logger.info(f"Rejected credential: {e}")
            raise AuthError(
                "Invalid or expired credential",
                error_code="CREDENTIAL_INVALID",
            ) from e

        claim = settings.SIMPLE_JWT.get("USER_ID_CLAIM", "user_id")
        user_id = token.get(claim)
        if user_id is None:
            raise AuthError(
                "Credential carries no user identity",
                error_code="CREDENTIAL_INVALID",
            )
        try:
            return int(user_id)
        except (TypeError, ValueError) as e:
            raise AuthError(
                "Credential carries no user identity",
                error_code="CREDENTIAL_INVALID",
            ) from e

    @classmethod
    def authenticate(cls, credential: str | None) -> User:
        """
        Verify a credential and load the active user it identifies.

        Raises:
            AuthError: Invalid credential, unknown user, or deactivated account
        """
        user_id = cls.verify(credential)
        User = get_user_model()
        user = User.objects.filter(id=user_id, is_active=True).first()
        if user is None:
            logger.info(f"Credential for unknown or inactive user {user_id}")
            raise AuthError(
                "User not found or inactive",
                error_code="USER_INACTIVE",
            )
        return user
