"""Tests for password hashing and validation."""

import pytest

from mamba.auth.password import (
    PasswordStrengthError,
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("hunter22")
        assert verify_password("hunter22", hashed) is True

    def test_wrong_password_rejected(self):
        hashed = hash_password("correct-horse")
        assert verify_password("wrong-horse", hashed) is False

    def test_hash_is_argon2id(self):
        assert hash_password("TestPass1").startswith("$argon2id$")

    def test_same_password_hashes_differently(self):
        assert hash_password("same-pass") != hash_password("same-pass")

    def test_hash_does_not_contain_password(self):
        assert "plaintext-secret" not in hash_password("plaintext-secret")

    def test_missing_hash_never_verifies(self):
        assert verify_password("mamba-dummy-password", None) is False

    def test_garbage_hash_rejected(self):
        assert verify_password("anything", "not-a-hash") is False

    def test_check_needs_rehash(self):
        assert check_needs_rehash(hash_password("TestPass1")) is False


class TestPasswordStrength:
    def test_six_characters_accepted(self):
        validate_password_strength("abcdef")  # Should not raise

    def test_empty_password_rejected(self):
        with pytest.raises(PasswordStrengthError):
            validate_password_strength("")

    def test_whitespace_only_rejected(self):
        with pytest.raises(PasswordStrengthError):
            validate_password_strength("        ")

    def test_short_password_rejected(self):
        with pytest.raises(PasswordStrengthError, match="at least 6"):
            validate_password_strength("abcde")

    def test_too_long_password_rejected(self):
        with pytest.raises(PasswordStrengthError):
            validate_password_strength("a" * 129)
