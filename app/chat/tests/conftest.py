"""
Test configuration and fixtures for chat tests.

This module provides:
- User fixtures with different conversation roles
- Conversation fixtures (direct and group)
- API client helpers for authenticated requests
- A capture of live events handed to the delivery registry

Usage:
    def test_example(group_conversation, admin_client):
        response = admin_client.get(f"/api/v1/chat/conversations/{group_conversation.id}/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from authentication.tests.factories import UserFactory
from chat.delivery import registry
from chat.models import ParticipantRole
from chat.tests.factories import (
    DirectConversationFactory,
    GroupConversationFactory,
    ParticipantFactory,
)


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def admin_user(db):
    """Create a user who will be a conversation admin."""
    return UserFactory(display_name="Admin")


@pytest.fixture
def member_user(db):
    """Create a user who will be a conversation member."""
    return UserFactory(display_name="Member")


@pytest.fixture
def other_user(db):
    """Create another user for various tests."""
    return UserFactory(display_name="Other")


@pytest.fixture
def outsider(db):
    """Create a user who is not a participant in any test conversation."""
    return UserFactory(display_name="Outsider")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def group_conversation(db, admin_user, member_user):
    """
    Group conversation with one admin and one member.

    admin_user created it and is its only admin.
    """
    return GroupConversationFactory(
        name="Test Group",
        created_by=admin_user,
        members=[member_user],
    )


@pytest.fixture
def direct_conversation(db, admin_user, other_user):
    """Direct conversation between admin_user (admin) and other_user (member)."""
    return DirectConversationFactory(user1=admin_user, user2=other_user)


@pytest.fixture
def second_admin(db, group_conversation):
    """Promote a fresh user to admin of group_conversation."""
    user = UserFactory(display_name="Second Admin")
    ParticipantFactory(
        conversation=group_conversation, user=user, role=ParticipantRole.ADMIN
    )
    return user


# =============================================================================
# Live Event Capture
# =============================================================================


@pytest.fixture
def live_events(monkeypatch):
    """
    Record every notify() call instead of pushing to the channel layer.

    Events are still scheduled with transaction.on_commit; combine with
    django_capture_on_commit_callbacks(execute=True) to see them.

    Each entry: {"conversation_id", "type", "data", "exclude_user_id", "recipients"}
    """
    events = []

    def _record(conversation_id, event_type, data=None, exclude_user_id=None, recipients=None):
        events.append(
            {
                "conversation_id": conversation_id,
                "type": event_type,
                "data": data,
                "exclude_user_id": exclude_user_id,
                "recipients": list(recipients) if recipients is not None else None,
            }
        )
        return 1

    monkeypatch.setattr(registry, "notify", _record)
    return events


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def authenticated_client_factory(db):
    """
    Factory to create authenticated clients for any user.

    Usage:
        def test_example(authenticated_client_factory, some_user):
            client = authenticated_client_factory(some_user)
            response = client.get("/api/v1/chat/conversations/")
    """

    def _make_client(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {AccessToken.for_user(user)}")
        return client

    return _make_client


@pytest.fixture
def admin_client(authenticated_client_factory, admin_user):
    """API client authenticated as the admin user."""
    return authenticated_client_factory(admin_user)


@pytest.fixture
def member_client(authenticated_client_factory, member_user):
    """API client authenticated as the member user."""
    return authenticated_client_factory(member_user)


@pytest.fixture
def outsider_client(authenticated_client_factory, outsider):
    """API client authenticated as a non-participant."""
    return authenticated_client_factory(outsider)
