"""
Unit tests for the trusted identity header middleware.
"""
from unittest.mock import patch

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from tests.fakes import IDENTITY_KEY
from paywall.auth.middleware import (
    IdentityKeyAuthMiddleware,
    X_BSV_AUTH_IDENTITY_KEY_HEADER,
    is_valid_identity_key,
)
from paywall.payment.middleware import get_request_context


def create_test_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(IdentityKeyAuthMiddleware)

    @app.get("/api/v1/whoami")
    async def whoami(request: Request):
        context = get_request_context(request)
        return {"identity_key": context.identity_key, "payment": context.payment}

    @app.get("/")
    async def health():
        return {"status": "ok"}

    return app


class TestIsValidIdentityKey:
    """Test identity key format checks."""

    def test_compressed_keys(self):
        assert is_valid_identity_key("02" + "a" * 64) is True
        assert is_valid_identity_key("03" + "F" * 64) is True

    def test_invalid_keys(self):
        assert is_valid_identity_key("04" + "a" * 64) is False
        assert is_valid_identity_key("02" + "a" * 63) is False
        assert is_valid_identity_key("02" + "g" * 64) is False
        assert is_valid_identity_key("") is False


class TestIdentityKeyAuthMiddleware:
    """Test request context creation."""

    def test_identity_sets_context(self):
        client = TestClient(create_test_app())
        response = client.get("/api/v1/whoami", headers={X_BSV_AUTH_IDENTITY_KEY_HEADER: IDENTITY_KEY})

        assert response.status_code == 200
        assert response.json() == {"identity_key": IDENTITY_KEY, "payment": None}

    def test_identity_key_lowercased(self):
        client = TestClient(create_test_app())
        response = client.get(
            "/api/v1/whoami",
            headers={X_BSV_AUTH_IDENTITY_KEY_HEADER: IDENTITY_KEY.upper()}
        )

        assert response.json()["identity_key"] == IDENTITY_KEY

    def test_missing_identity(self):
        client = TestClient(create_test_app())
        response = client.get("/api/v1/whoami")

        assert response.status_code == 401
        body = response.json()
        assert body["status"] == "error"
        assert body["code"] == "ERR_UNAUTHORIZED"

    def test_malformed_identity(self):
        client = TestClient(create_test_app())
        response = client.get("/api/v1/whoami", headers={X_BSV_AUTH_IDENTITY_KEY_HEADER: "alice"})

        assert response.status_code == 401
        assert response.json()["code"] == "ERR_UNAUTHORIZED"

    @patch("paywall.auth.middleware.settings")
    def test_public_path_skips_identity(self, mock_settings):
        mock_settings.PUBLIC_PATHS = ["/"]

        client = TestClient(create_test_app())
        response = client.get("/")

        assert response.status_code == 200
