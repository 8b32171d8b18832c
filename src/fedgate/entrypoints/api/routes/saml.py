"""SAML single sign-on endpoints.

The callback answers browsers, so failures redirect to the application's
error page instead of returning JSON.
"""

from __future__ import annotations

from typing import Annotated, Any
from urllib.parse import urlencode, urlsplit

import structlog
from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from fedgate.core.errors import UserServiceError
from fedgate.core.interfaces import AssertionValidator, UserService
from fedgate.core.sso import ClientContext, LoginFailure, SamlLoginService, generate_login_url
from fedgate.entrypoints.api.deps import (
    Settings,
    get_assertion_validator,
    get_settings,
    get_user_service,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/auth/saml", tags=["sso"])


class SSOLookupData(BaseModel):
    """Login URL for a user's organization."""

    ssoURL: str


class SSOLookupResponse(BaseModel):
    """Successful lookup answer."""

    success: bool = True
    message: str
    data: SSOLookupData


def api_error(status_code: int, message: str) -> JSONResponse:
    """JSON error body shared by the non-SCIM API."""
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def error_redirect(app_url: str, message: str, code: int, redirect_url: str = "") -> RedirectResponse:
    """Send the browser to the SSO error page.

    Args:
        app_url: Public application URL.
        message: Client-safe failure description.
        code: HTTP status of the failure.
        redirect_url: Original target, offered as a retry link.

    Returns:
        302 redirect to ``/auth/error``.
    """
    query = urlencode({"msg": message, "code": str(code), "redirectURL": redirect_url})
    return RedirectResponse(f"{app_url}/auth/error?{query}", status_code=302)


def is_trusted_redirect(target: str, cookie_domain: str) -> bool:
    """True for relative paths and URLs on the cookie domain."""
    if target.startswith("/") and not target.startswith("//"):
        return True
    parts = urlsplit(target)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return False
    host = parts.hostname.lower()
    domain = cookie_domain.lstrip(".").lower()
    return host == domain or host.endswith(f".{domain}")


def success_target(app_url: str, redirect_url: str, cookie_domain: str) -> str:
    """Where to send the browser after a successful login."""
    if redirect_url and is_trusted_redirect(redirect_url, cookie_domain):
        return f"{app_url}{redirect_url}" if redirect_url.startswith("/") else redirect_url
    return f"{app_url}/"


@router.post("/callback")
async def saml_callback(
    request: Request,
    app_settings: Annotated[Settings, Depends(get_settings)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    validator: Annotated[AssertionValidator, Depends(get_assertion_validator)],
    saml_response: Annotated[str | None, Form(alias="SAMLResponse")] = None,
    relay_state: Annotated[str | None, Form(alias="RelayState")] = None,
) -> RedirectResponse:
    """Handle the IdP's HTTP-POST binding.

    Verifies the assertion, provisions the user, opens a session and
    redirects into the application with the session cookies set.
    """
    app_url = app_settings.app_url
    if not saml_response:
        return error_redirect(app_url, "SAML response not found", 400)

    client = ClientContext(
        user_agent=request.headers.get("user-agent"),
        origin=request.headers.get("origin") or app_url,
    )
    try:
        result = await SamlLoginService(user_service, validator).login(
            saml_response, relay_state, client
        )
    except Exception:
        logger.exception("saml_callback_failed")
        return error_redirect(app_url, "Failed to process SAML response", 500)

    if isinstance(result, LoginFailure):
        failure = result.failure
        return error_redirect(app_url, failure.message, failure.status_code, result.redirect_url)

    response = RedirectResponse(
        success_target(app_url, result.redirect_url, app_settings.cookie_domain),
        status_code=302,
    )
    cookie_options: dict[str, Any] = {
        "max_age": app_settings.session_ttl_seconds,
        "domain": app_settings.cookie_domain,
        "httponly": True,
        "secure": True,
        "samesite": "lax",
    }
    response.set_cookie(app_settings.identity_cookie_name, result.email, **cookie_options)
    response.set_cookie(app_settings.session_cookie_name, result.session_id, **cookie_options)
    return response


@router.get("/lookup", response_model=SSOLookupResponse)
async def sso_lookup(
    app_settings: Annotated[Settings, Depends(get_settings)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    email: Annotated[str, Query()] = "",
    redirect_url: Annotated[str, Query(alias="redirectURL")] = "",
) -> SSOLookupResponse | JSONResponse:
    """Return the IdP login URL for a user's organization.

    Args:
        app_settings: Application settings.
        user_service: User-service client.
        email: The user's email address.
        redirect_url: Where to land after login.

    Returns:
        The login URL, or a ``{success: false, error}`` body.
    """
    email = email.strip()
    if not email:
        return api_error(400, "Email required")
    domain = email.split("@", 1)[1] if "@" in email else ""
    if not domain:
        return api_error(400, "Invalid email domain")

    try:
        account = await user_service.get_account_by_domain(domain)
    except UserServiceError as e:
        logger.error("sso_lookup_failed", domain=domain, error=str(e))
        return api_error(500, "Failed to lookup organization, try again")

    org = account.organization if account else None
    if org is None:
        return api_error(404, f'Organization not found for "{domain}"')
    if not org.sso_enabled:
        return api_error(
            403, "SSO is not configured for this organization, please contact the admin"
        )
    if org.saml_config is None:
        return api_error(403, "SAML configuration is not setup for this organization")

    try:
        sso_url = generate_login_url(org.saml_config, org.id, redirect_url)
    except Exception:
        logger.exception("sso_login_url_failed", org_id=org.id)
        return api_error(500, "Failed to lookup organization, try again")
    logger.info(
        "sso_login_url_issued", org_id=org.id, idp=org.saml_config.identity_provider_kind.value
    )
    return SSOLookupResponse(message="SSO login url", data=SSOLookupData(ssoURL=sso_url))
