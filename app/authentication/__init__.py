"""
Authentication application.

This app owns the user record and credential verification for both the
REST API and live connections.

Key components:
    - User model: Email-based user with presence and per-user settings
    - IdentityProvider: Maps a JWT access token to an active user id
    - UserSerializer: Public user view embedded in chat responses

Usage:
    from authentication.models import User
    from authentication.identity import IdentityProvider
"""
