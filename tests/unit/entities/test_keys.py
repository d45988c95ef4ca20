"""Tests for the single-table key schema."""

import pytest

from src.user_service.entities.core.keys import (
    email_guard_key,
    email_index_key,
    email_key,
    email_lookup_key,
    normalize_email,
    user_key,
    user_partition,
)


class TestKeyBuilders:
    def test_user_key(self):
        assert user_key("abc") == {"PK": "USER#abc", "SK": "PROFILE"}

    def test_email_key(self):
        assert email_key("abc", "e1") == {"PK": "USER#abc", "SK": "EMAIL#e1"}

    def test_email_index_key_normalizes(self):
        assert email_index_key("  Jane@Example.COM ", "abc") == {
            "GSI1PK": "EMAIL#jane@example.com",
            "GSI1SK": "USER#abc",
        }

    def test_lookup_and_guard_agree_on_normalized_address(self):
        assert email_lookup_key("JANE@example.com") == {"GSI1PK": "EMAIL#jane@example.com"}
        assert email_guard_key(" jane@EXAMPLE.com") == {
            "PK": "EMAIL#jane@example.com",
            "SK": "UNIQUE",
        }

    def test_user_partition(self):
        assert user_partition("abc") == "USER#abc"

    @pytest.mark.parametrize("bad_id", ["", "a#b"])
    def test_rejects_ambiguous_ids(self, bad_id):
        with pytest.raises(ValueError):
            user_key(bad_id)
        with pytest.raises(ValueError):
            email_key("abc", bad_id)

    def test_rejects_blank_email(self):
        with pytest.raises(ValueError, match="email must not be empty"):
            email_lookup_key("   ")


def test_normalize_email():
    assert normalize_email("  Foo.Bar@Example.Com\n") == "foo.bar@example.com"
