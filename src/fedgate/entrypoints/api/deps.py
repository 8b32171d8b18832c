"""Dependency injection and application lifespan management."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import structlog
from fastapi import Request

from fedgate.adapters.userservice import UserServiceClient
from fedgate.core.interfaces import AssertionValidator, UserService
from fedgate.core.sso.session import SESSION_TTL_SECONDS

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = structlog.get_logger()


def apex_domain(url: str) -> str:
    """Last two labels of ``url``'s host (``app.acme.com`` -> ``acme.com``)."""
    host = urlsplit(url).hostname or ""
    labels = host.split(".")
    return ".".join(labels[-2:]) if len(labels) > 2 else host


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Application settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables."""
        self.app_url = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")

        # User service
        self.user_service_url = os.getenv("USER_SERVICE_URL", "localhost:8080")
        self.user_service_secret = os.getenv("USER_SERVICE_SECRET", "")
        self.user_service_source = os.getenv("USER_SERVICE_SOURCE", "fedgate")
        self.user_service_timeout = float(os.getenv("USER_SERVICE_TIMEOUT_SECONDS", "30"))

        # Cookies
        self.cookie_domain = os.getenv("COOKIE_DOMAIN") or apex_domain(self.app_url)
        self.session_ttl_seconds = int(os.getenv("SESSION_TTL_SECONDS", str(SESSION_TTL_SECONDS)))
        self.identity_cookie_name = os.getenv("IDENTITY_COOKIE_NAME", "email")
        self.session_cookie_name = os.getenv("SESSION_COOKIE_NAME", "session")

        self.saml_strict = _env_bool("SAML_STRICT", True)
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

    @property
    def scim_base_url(self) -> str:
        """Absolute SCIM root advertised in resource locations."""
        return f"{self.app_url}/api/scim/v2"


settings = Settings()


def build_assertion_validator(app_settings: Settings) -> AssertionValidator:
    """Create the python3-saml validator (needs the ``saml`` extra)."""
    from fedgate.adapters.saml.onelogin import OneLoginAssertionValidator

    return OneLoginAssertionValidator(app_settings.app_url, strict=app_settings.saml_strict)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - setup and teardown.

    This context manager handles:
    - User-service client construction from settings
    - SAML assertion validator construction
    """
    user_service = UserServiceClient(
        base_url=settings.user_service_url,
        secret=settings.user_service_secret,
        source=settings.user_service_source,
        timeout=settings.user_service_timeout,
    )

    app.state.settings = settings
    app.state.user_service = user_service
    app.state.assertion_validator = build_assertion_validator(settings)
    logger.info(
        "fedgate_started",
        user_service=user_service.base_url,
        app_url=settings.app_url,
        saml_strict=settings.saml_strict,
    )

    yield

    await user_service.aclose()


def get_settings(request: Request) -> Settings:
    """Get the settings from app state.

    Args:
        request: The current request.

    Returns:
        The configured Settings.
    """
    app_settings: Settings = getattr(request.app.state, "settings", settings)
    return app_settings


def get_user_service(request: Request) -> UserService:
    """Get the user-service client from app state.

    Args:
        request: The current request.

    Returns:
        The configured UserService.
    """
    user_service: UserService = request.app.state.user_service
    return user_service


def get_assertion_validator(request: Request) -> AssertionValidator:
    """Get the SAML assertion validator from app state.

    Args:
        request: The current request.

    Returns:
        The configured AssertionValidator.
    """
    validator: AssertionValidator = request.app.state.assertion_validator
    return validator
