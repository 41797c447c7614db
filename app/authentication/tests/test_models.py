"""
Tests for the User model and UserManager.
"""

import pytest

from authentication.models import PresenceStatus, User
from authentication.tests.factories import UserFactory


@pytest.mark.django_db
class TestUserManager:
    """Tests for email-based user creation."""

    def test_create_user_normalizes_email_and_hashes_password(self):
        """
        Email domain is lowercased and the password is stored hashed.

        Why it matters: Login looks users up by normalized email.
        """
        user = User.objects.create_user(email="Alice@EXAMPLE.com", password="s3cret-pass")

        assert user.email == "Alice@example.com"
        assert user.password != "s3cret-pass"
        assert user.check_password("s3cret-pass")

    def test_create_user_without_password_is_unusable(self):
        user = User.objects.create_user(email="nopass@example.com")

        assert not user.has_usable_password()

    def test_create_user_requires_email(self):
        with pytest.raises(ValueError, match="Email"):
            User.objects.create_user(email="")

    def test_create_superuser_sets_flags(self):
        admin = User.objects.create_superuser(email="root@example.com", password="x")

        assert admin.is_staff
        assert admin.is_superuser

    def test_create_superuser_rejects_non_staff(self):
        with pytest.raises(ValueError, match="is_staff"):
            User.objects.create_superuser(
                email="bad@example.com", password="x", is_staff=False
            )


@pytest.mark.django_db
class TestUserDefaults:
    """Tests for presence and settings defaults."""

    def test_new_user_is_offline(self):
        user = UserFactory()

        assert user.status == PresenceStatus.OFFLINE
        assert user.last_seen is None

    def test_settings_defaults_are_independent_per_user(self):
        """
        Each user gets its own settings dict.

        Why it matters: A shared mutable default would leak changes between users.
        """
        first = UserFactory()
        second = UserFactory()
        first.privacy_settings["read_receipts"] = False
        first.save()

        second.refresh_from_db()
        assert second.privacy_settings["read_receipts"] is True

    def test_contacts_are_not_symmetrical(self):
        alice = UserFactory()
        bob = UserFactory()

        alice.contacts.add(bob)

        assert bob in alice.contacts.all()
        assert alice not in bob.contacts.all()
        assert alice in bob.contact_of.all()

    def test_full_name_falls_back_to_email(self):
        user = UserFactory(display_name="")

        assert user.get_full_name() == user.email
        assert user.get_short_name() == user.email.split("@")[0]
