"""
Test configuration and fixtures for authentication tests.

This module provides:
- User fixtures (active, inactive)
- JWT access tokens for those users

Usage:
    def test_example(user, access_token):
        assert IdentityProvider.verify(access_token) == user.id
"""

import pytest
from rest_framework_simplejwt.tokens import AccessToken

from authentication.tests.factories import UserFactory


@pytest.fixture
def user(db):
    """Create a basic active user."""
    return UserFactory()


@pytest.fixture
def deactivated_user(db):
    """Create a deactivated user (is_active=False)."""
    return UserFactory(is_active=False)


@pytest.fixture
def access_token(user):
    """A valid JWT access token for `user`."""
    return str(AccessToken.for_user(user))
