"""Tests for application wiring and logging."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from fedgate.adapters.userservice import UserServiceClient
from fedgate.entrypoints.api import deps
from fedgate.entrypoints.api.app import app
from fedgate.entrypoints.api.logs import redact_secrets


class TestApp:
    """Tests for the FastAPI app."""

    def test_health(self) -> None:
        """Health check answers without the lifespan."""
        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_routes_are_mounted_under_api(self) -> None:
        """SSO and SCIM routes share the /api prefix."""
        paths = {route.path for route in app.routes}

        assert "/api/auth/saml/callback" in paths
        assert "/api/auth/saml/lookup" in paths
        assert "/api/scim/v2/Users" in paths
        assert "/api/scim/v2/Users/{user_id}" in paths

    def test_lifespan_populates_state(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Startup stores the collaborators the dependencies read."""
        validator = MagicMock()
        monkeypatch.setattr(deps, "build_assertion_validator", lambda _settings: validator)

        with TestClient(app) as client:
            assert isinstance(client.app.state.user_service, UserServiceClient)
            assert client.app.state.assertion_validator is validator
            assert client.app.state.settings is deps.settings


class TestSettings:
    """Tests for environment settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The cookie domain defaults to the app URL's apex."""
        monkeypatch.setenv("APP_URL", "https://app.acme.com/")
        monkeypatch.delenv("COOKIE_DOMAIN", raising=False)
        monkeypatch.setenv("SAML_STRICT", "false")

        settings = deps.Settings()

        assert settings.app_url == "https://app.acme.com"
        assert settings.cookie_domain == "acme.com"
        assert settings.saml_strict is False
        assert settings.scim_base_url == "https://app.acme.com/api/scim/v2"

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://app.acme.com", "acme.com"),
            ("https://acme.com", "acme.com"),
            ("http://localhost:3000", "localhost"),
        ],
    )
    def test_apex_domain(self, url: str, expected: str) -> None:
        """Only the last two labels are kept."""
        assert deps.apex_domain(url) == expected


class TestRedaction:
    """Tests for the log redaction processor."""

    def test_masks_credentials(self) -> None:
        """Credential fields are masked and others kept."""
        event = {"event": "x", "apikey": "k", "Token": "t", "email": "a@acme.com"}

        result = redact_secrets(None, "info", event)

        assert result == {
            "event": "x",
            "apikey": "[REDACTED]",
            "Token": "[REDACTED]",
            "email": "a@acme.com",
        }
