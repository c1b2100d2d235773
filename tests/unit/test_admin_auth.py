"""
Tests for admin authentication service.
"""

import pytest
from datetime import datetime, timedelta, timezone

import jwt

from rlscat.services.admin_auth import AdminAuthService, TOKEN_SUBJECT
from rlscat.config import AdminConfig
from rlscat.utils.crypto import hash_password


class TestAdminAuthService:
    """Tests for AdminAuthService class."""

    @pytest.fixture
    def admin_config(self):
        """Create admin config with test password."""
        return AdminConfig(
            password_hash=hash_password("test_password_123"),
            jwt_secret="test_jwt_secret_key",
            jwt_expire_hours=24,
        )

    @pytest.fixture
    def auth_service(self, admin_config):
        return AdminAuthService(admin_config)

    def test_authenticate_success(self, auth_service):
        token = auth_service.authenticate("test_password_123")
        assert token
        assert auth_service.verify_token(token) is True

    def test_authenticate_wrong_password(self, auth_service):
        assert auth_service.authenticate("wrong_password") is None

    def test_authenticate_empty_password(self, auth_service):
        assert auth_service.authenticate("") is None

    def test_not_configured(self):
        service = AdminAuthService(AdminConfig(password_hash="", jwt_secret="secret"))
        assert service.enabled is False
        assert service.authenticate("any_password") is None

    def test_token_claims(self, auth_service):
        token = auth_service.authenticate("test_password_123")
        claims = jwt.decode(token, "test_jwt_secret_key", algorithms=["HS256"])
        assert claims["sub"] == TOKEN_SUBJECT

    def test_verify_expired_token(self, auth_service):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": TOKEN_SUBJECT, "iat": past, "exp": past + timedelta(hours=1)},
            "test_jwt_secret_key",
            algorithm="HS256",
        )
        assert auth_service.verify_token(token) is False

    def test_verify_wrong_secret(self, auth_service):
        token = jwt.encode({"sub": TOKEN_SUBJECT}, "other_secret", algorithm="HS256")
        assert auth_service.verify_token(token) is False

    def test_verify_wrong_subject(self, auth_service):
        token = jwt.encode({"sub": "someone"}, "test_jwt_secret_key", algorithm="HS256")
        assert auth_service.verify_token(token) is False

    def test_verify_garbage(self, auth_service):
        assert auth_service.verify_token("not-a-token") is False


class TestBearerToken:
    """Tests for Authorization header parsing."""

    def test_valid_header(self):
        assert AdminAuthService.bearer_token("Bearer abc.def") == "abc.def"
        assert AdminAuthService.bearer_token("bearer abc") == "abc"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Basic abc", "Bearer a b", "Bearer   "])
    def test_invalid_header(self, header):
        assert AdminAuthService.bearer_token(header) is None
