"""
Tests for schemasync.schema.protection module.
"""

import pytest

from schemasync.schema.protection import (
    DEFAULT_COLUMNS,
    PRIMARY_KEY_INDEX,
    is_protected_field,
    is_protected_index,
    is_system_class,
)


class TestProtectedFields:
    """Test protected field detection."""

    @pytest.mark.parametrize("field_name", ["objectId", "createdAt", "updatedAt", "ACL"])
    def test_default_fields_protected_everywhere(self, field_name):
        """Default columns are protected on every class."""
        assert is_protected_field("Game", field_name)
        assert is_protected_field("_User", field_name)

    def test_class_specific_fields(self):
        """Built-in columns are protected only on their own class."""
        assert is_protected_field("_User", "username")
        assert is_protected_field("_Role", "users")
        assert not is_protected_field("Game", "username")

    def test_regular_field_not_protected(self):
        assert not is_protected_field("Game", "title")

    def test_default_columns_cover_session(self):
        """The session class declares its user pointer."""
        assert DEFAULT_COLUMNS["_Session"]["user"] == {"type": "Pointer", "targetClass": "_User"}


class TestProtectedIndexes:
    """Test protected index detection."""

    def test_primary_key_index(self):
        """The primary key index is protected on every class."""
        assert is_protected_index("Game", PRIMARY_KEY_INDEX)

    @pytest.mark.parametrize(
        "index_name",
        ["case_insensitive_username", "case_insensitive_email", "username_1", "email_1"],
    )
    def test_user_indexes(self, index_name):
        """Built-in user indexes are protected on _User only."""
        assert is_protected_index("_User", index_name)
        assert not is_protected_index("Game", index_name)

    def test_regular_index_not_protected(self):
        assert not is_protected_index("_User", "title_1")


class TestSystemClasses:
    """Test system class detection."""

    @pytest.mark.parametrize("class_name", ["_User", "_Role", "_Session", "_Idempotency"])
    def test_system_classes(self, class_name):
        assert is_system_class(class_name)

    def test_user_class_is_not_system(self):
        assert not is_system_class("Game")
