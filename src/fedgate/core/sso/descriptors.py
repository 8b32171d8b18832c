"""Service Provider and Identity Provider descriptors built from tenant config.

The settings dictionaries produced here follow the layout expected by
python3-saml (``OneLogin_Saml2_Settings``).
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit

from cryptography import x509

from fedgate.core.errors import ErrorKind, Failure
from fedgate.core.types import SAMLConfig

BINDING_HTTP_POST = "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-POST"
BINDING_HTTP_REDIRECT = "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-Redirect"
NAME_ID_FORMAT_EMAIL = "urn:oasis:names:tc:SAML:1.1:nameid-format:emailAddress"

PEM_HEADER = "-----BEGIN CERTIFICATE-----"
PEM_FOOTER = "-----END CERTIFICATE-----"


def wrap_certificate(body: str) -> str:
    """Reconstruct a PEM certificate from a stored body.

    Bodies that already carry the header and footer are returned unchanged.
    """
    body = body.strip()
    if body.startswith(PEM_HEADER):
        return body
    return f"{PEM_HEADER}\n{body}\n{PEM_FOOTER}"


def check_certificate(body: str) -> Failure | None:
    """Return a failure if the stored certificate body does not load."""
    try:
        x509.load_pem_x509_certificate(wrap_certificate(body).encode("ascii"))
    except (ValueError, UnicodeEncodeError) as e:
        return Failure(
            ErrorKind.ASSERTION_INVALID,
            "IdP signing certificate is malformed",
            {"error": str(e)},
        )
    return None


def sp_entity_id(app_url: str) -> str:
    """Entity id of this system as a Service Provider."""
    return f"{app_url.rstrip('/')}/saml/metadata"


def default_logout_url(callback_url: str) -> str:
    """Fallback IdP logout location: the callback URL before its ``/api`` path."""
    return callback_url.split("/api")[0]


def service_provider(app_url: str, callback_url: str) -> dict[str, Any]:
    """SP descriptor keyed by this system's public callback URL."""
    return {
        "entityId": sp_entity_id(app_url),
        "assertionConsumerService": {
            "url": callback_url,
            "binding": BINDING_HTTP_POST,
        },
        "singleLogoutService": {
            "url": f"{app_url.rstrip('/')}/saml/logout",
            "binding": BINDING_HTTP_REDIRECT,
        },
        "NameIDFormat": NAME_ID_FORMAT_EMAIL,
    }


def identity_provider(config: SAMLConfig, redirect_binding: bool = False) -> dict[str, Any]:
    """IdP descriptor from the tenant's SAML configuration."""
    return {
        "entityId": config.entity_id,
        "singleSignOnService": {
            "url": config.entry_point,
            "binding": BINDING_HTTP_REDIRECT if redirect_binding else BINDING_HTTP_POST,
        },
        "singleLogoutService": {
            "url": config.logout_url or default_logout_url(config.callback_url),
            "binding": BINDING_HTTP_REDIRECT,
        },
        "x509cert": wrap_certificate(config.certificate),
    }


def saml_settings(app_url: str, config: SAMLConfig, strict: bool = True) -> dict[str, Any]:
    """Full python3-saml settings for verifying a tenant's responses."""
    name_id_format = config.metadata.name_id_format
    sp = service_provider(app_url, config.callback_url)
    if name_id_format:
        sp["NameIDFormat"] = name_id_format

    return {
        "strict": strict,
        "debug": False,
        "sp": sp,
        "idp": identity_provider(config),
        "security": {
            "wantAssertionsSigned": False,
            "wantMessagesSigned": False,
            "wantNameId": True,
        },
    }


def acs_request_data(callback_url: str, saml_response: str) -> dict[str, Any]:
    """Request description for a POST to the assertion consumer service.

    python3-saml checks the response ``Destination`` against the URL rebuilt
    from these fields, so they are derived from the tenant callback URL.
    """
    parts = urlsplit(callback_url)
    https = parts.scheme == "https"
    port = parts.port or (443 if https else 80)
    return {
        "https": "on" if https else "off",
        "http_host": parts.hostname or "",
        "server_port": port,
        "script_name": parts.path,
        "get_data": {},
        "post_data": {"SAMLResponse": saml_response},
    }
