"""
Unit Tests for Security Module
Tests for: password hashing, legacy password formats, JWT tokens, reset tokens
"""
import hashlib
from datetime import timedelta

import pytest

from cidco_records.core.exceptions import InvalidTokenError
from cidco_records.core.security import (
    verify_password,
    verify_legacy_password,
    get_password_hash,
    is_bcrypt_hash,
    create_access_token,
    decode_token,
    generate_reset_token,
)


class TestPasswordHashing:
    """Test password hashing functions"""

    def test_hash_password_returns_bcrypt(self):
        hashed = get_password_hash("testpassword123")

        assert hashed != "testpassword123"
        assert is_bcrypt_hash(hashed)

    def test_hash_password_different_each_time(self):
        """Bcrypt generates different salts"""
        assert get_password_hash("same") != get_password_hash("same")

    def test_verify_password_correct(self):
        hashed = get_password_hash("testpassword123")

        assert verify_password("testpassword123", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = get_password_hash("testpassword123")

        assert verify_password("wrongpassword", hashed) is False

    def test_verify_password_empty_hash(self):
        assert verify_password("anything", None) is False
        assert verify_password("anything", "") is False

    def test_hash_long_password_truncated(self):
        """Bcrypt has a 72 byte limit"""
        long_password = "a" * 100
        hashed = get_password_hash(long_password)

        assert verify_password(long_password, hashed) is True

    def test_stored_hash_is_not_a_password(self):
        """A bcrypt hash never matches itself as plain text"""
        hashed = get_password_hash("secret-1")

        assert verify_password(hashed, hashed) is False


class TestLegacyPasswords:
    """Accounts created before bcrypt"""

    def test_plaintext_match(self):
        assert verify_password("letmein", "letmein") is True

    def test_plaintext_mismatch(self):
        assert verify_password("letmein", "letmeout") is False

    def test_sha256_digest_match(self):
        digest = hashlib.sha256(b"letmein").hexdigest()

        assert verify_password("letmein", digest) is True
        assert verify_legacy_password("letmein", digest) is True

    def test_sha256_digest_mismatch(self):
        digest = hashlib.sha256(b"letmein").hexdigest()

        assert verify_password("other", digest) is False

    def test_is_bcrypt_hash(self):
        assert is_bcrypt_hash("$2b$04$abcdefghijklmnopqrstuv") is True
        assert is_bcrypt_hash("letmein") is False
        assert is_bcrypt_hash(None) is False


class TestTokens:
    """JWT access tokens and reset tokens"""

    def test_access_token_roundtrip(self):
        token = create_access_token({"sub": "7", "role": "admin"})
        payload = decode_token(token)

        assert payload["sub"] == "7"
        assert payload["role"] == "admin"
        assert payload["type"] == "access"

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "7"}, expires_delta=timedelta(seconds=-1))

        with pytest.raises(InvalidTokenError):
            decode_token(token)

    def test_garbage_token_rejected(self):
        with pytest.raises(InvalidTokenError):
            decode_token("not-a-jwt")

    def test_reset_token_is_64_hex_chars(self):
        token = generate_reset_token()

        assert len(token) == 64
        int(token, 16)

    def test_reset_tokens_unique(self):
        assert generate_reset_token() != generate_reset_token()
