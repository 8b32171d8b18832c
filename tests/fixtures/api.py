"""API application fixtures."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fedgate.entrypoints.api.deps import (
    Settings,
    get_assertion_validator,
    get_settings,
    get_user_service,
)
from fedgate.entrypoints.api.routes import api_router


@pytest.fixture
def app_settings() -> Settings:
    """Settings for an app served from app.acme.com."""
    app_settings = Settings()
    app_settings.app_url = "https://app.acme.com"
    app_settings.cookie_domain = "acme.com"
    app_settings.session_ttl_seconds = 3600
    return app_settings


@pytest.fixture
def api_app(
    app_settings: Settings, mock_user_service: MagicMock, mock_validator: MagicMock
) -> FastAPI:
    """Routes mounted under /api with mocked collaborators."""
    app = FastAPI()
    app.include_router(api_router, prefix="/api")
    app.dependency_overrides[get_settings] = lambda: app_settings
    app.dependency_overrides[get_user_service] = lambda: mock_user_service
    app.dependency_overrides[get_assertion_validator] = lambda: mock_validator
    return app


@pytest.fixture
def api_client(api_app: FastAPI) -> TestClient:
    """Test client that does not follow redirects."""
    return TestClient(api_app, follow_redirects=False)
