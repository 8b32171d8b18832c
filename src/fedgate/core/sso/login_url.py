"""Build the IdP-bound login URL for SP-initiated logins."""

from __future__ import annotations

import base64
import secrets
import zlib
from datetime import UTC, datetime
from urllib.parse import quote
from xml.sax.saxutils import escape, quoteattr

from fedgate.core.sso.descriptors import BINDING_HTTP_POST
from fedgate.core.sso.relay import encode_relay_token
from fedgate.core.types import IdentityProviderKind, SAMLConfig


def build_authn_request(config: SAMLConfig, request_id: str, issue_instant: str) -> str:
    """Render an ``AuthnRequest`` for the HTTP-Redirect binding."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<samlp:AuthnRequest xmlns:samlp="urn:oasis:names:tc:SAML:2.0:protocol" '
        'xmlns:saml="urn:oasis:names:tc:SAML:2.0:assertion" '
        f"ID={quoteattr(request_id)} "
        'Version="2.0" '
        f"IssueInstant={quoteattr(issue_instant)} "
        f"Destination={quoteattr(config.entry_point)} "
        f"AssertionConsumerServiceURL={quoteattr(config.callback_url)} "
        f'ProtocolBinding="{BINDING_HTTP_POST}">'
        f"<saml:Issuer>{escape(config.issuer)}</saml:Issuer>"
        "</samlp:AuthnRequest>"
    )


def deflate_and_encode(xml: str) -> str:
    """Raw-DEFLATE then base64, as the HTTP-Redirect binding requires."""
    compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -15)
    deflated = compressor.compress(xml.encode("utf-8")) + compressor.flush()
    return base64.b64encode(deflated).decode("ascii")


def generate_login_url(config: SAMLConfig, org_id: str, redirect_url: str = "") -> str:
    """Return the URL that starts a login at the tenant's IdP.

    Okta accepts a bare ``RelayState`` on its app-embed link; every other
    provider gets a deflated ``AuthnRequest`` alongside the relay state.

    Args:
        config: Tenant SAML configuration.
        org_id: Organization id to carry in the relay token.
        redirect_url: Post-login destination to carry in the relay token.

    Returns:
        IdP login URL.
    """
    relay = quote(encode_relay_token(org_id, redirect_url), safe="")

    if config.identity_provider_kind == IdentityProviderKind.OKTA:
        return f"{config.entry_point}?RelayState={relay}"

    request_id = f"_{secrets.token_hex(16)}"
    issue_instant = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    saml_request = quote(
        deflate_and_encode(build_authn_request(config, request_id, issue_instant)), safe=""
    )
    separator = "&" if "?" in config.entry_point else "?"
    return f"{config.entry_point}{separator}SAMLRequest={saml_request}&RelayState={relay}"
