"""
Tests for UserManager and the User role helpers.

Related files:
    - managers.py: Implementation under test
    - models.py: User model that uses this manager
"""

import pytest

from authentication.models import User
from authentication.tests.factories import AdminUserFactory, UserFactory


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        user = User.objects.create_user(email="seller@example.com", password="SecurePass123!")

        assert user.pk is not None
        assert user.email == "seller@example.com"
        assert user.check_password("SecurePass123!") is True

    def test_normalizes_email_domain_to_lowercase(self, db):
        user = User.objects.create_user(email="Test.User@EXAMPLE.COM", password="x")

        assert user.email == "Test.User@example.com"

    def test_raises_valueerror_when_email_is_empty(self, db):
        with pytest.raises(ValueError, match="Email"):
            User.objects.create_user(email="", password="x")

    def test_user_without_password_gets_unusable_password(self, db):
        user = User.objects.create_user(email="nopass@example.com")

        assert user.has_usable_password() is False

    def test_sets_default_flags_for_regular_user(self, db):
        user = User.objects.create_user(email="regular@example.com", password="x")

        assert user.is_active is True
        assert user.is_staff is False
        assert user.is_superuser is False


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_creates_superuser_with_correct_flags(self, db):
        admin = User.objects.create_superuser(email="root@example.com", password="x")

        assert admin.is_staff is True
        assert admin.is_superuser is True

    def test_raises_valueerror_when_is_staff_is_false(self, db):
        with pytest.raises(ValueError, match="is_staff"):
            User.objects.create_superuser(email="bad@example.com", password="x", is_staff=False)


class TestUserRoleHelpers:
    """Tests for the admin capacity helper used by marketplace role checks."""

    def test_staff_user_is_admin(self, db):
        assert AdminUserFactory().is_admin is True

    def test_regular_user_is_not_admin(self, db):
        assert UserFactory().is_admin is False

    def test_get_full_name_falls_back_to_email(self, db):
        user = UserFactory(full_name="")

        assert user.get_full_name() == user.email
