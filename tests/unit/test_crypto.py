"""
Tests for password hashing.
"""

from rlscat.utils.crypto import hash_password, verify_password


class TestPasswordHashing:
    """Tests for hash_password and verify_password."""

    def test_hash_is_bcrypt(self):
        hashed = hash_password("secret")
        assert hashed.startswith("$2b$12$")
        assert hashed != "secret"

    def test_verify_correct(self):
        assert verify_password("secret", hash_password("secret")) is True

    def test_verify_incorrect(self):
        assert verify_password("wrong", hash_password("secret")) is False

    def test_salted(self):
        assert hash_password("secret") != hash_password("secret")

    def test_malformed_hash(self):
        assert verify_password("secret", "not-a-hash") is False
