"""RelayState token carried through SP-initiated logins.

The token is base64 of ``{"orgId": ..., "redirectURL": ...}``. In-flight
logins depend on this format, so it must not change.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from urllib.parse import unquote

from fedgate.core.errors import ErrorKind, Failure


@dataclass(frozen=True)
class RelayToken:
    """Decoded relay state."""

    org_id: str
    redirect_url: str = ""


def encode_relay_token(org_id: str, redirect_url: str = "") -> str:
    """Encode a relay token.

    Args:
        org_id: Organization the login is for.
        redirect_url: Where to send the user after login.

    Returns:
        Base64 text (not URL-encoded).
    """
    payload = json.dumps({"orgId": org_id, "redirectURL": redirect_url}, separators=(",", ":"))
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_relay_token(raw: str) -> RelayToken | Failure:
    """Decode a relay token, failing closed on anything malformed.

    Args:
        raw: RelayState value as posted back by the IdP. A value that is
            still percent-encoded is unquoted first.

    Returns:
        The decoded token, or ``Failure(INVALID_RELAY)``.
    """
    text = raw.strip()
    if "%" in text:
        text = unquote(text)

    try:
        decoded = base64.b64decode(text, validate=True).decode("utf-8")
        payload = json.loads(decoded)
    except (binascii.Error, ValueError) as e:
        return Failure(ErrorKind.INVALID_RELAY, f"Invalid relayState: {_describe(e)}")

    if not isinstance(payload, dict):
        return Failure(ErrorKind.INVALID_RELAY, "Invalid relayState: not a JSON object")

    org_id = payload.get("orgId")
    if not isinstance(org_id, str) or not org_id:
        return Failure(ErrorKind.INVALID_RELAY, "Invalid relayState: orgId is missing")

    redirect_url = payload.get("redirectURL") or ""
    if not isinstance(redirect_url, str):
        redirect_url = ""

    return RelayToken(org_id=org_id, redirect_url=redirect_url)


def _describe(error: Exception) -> str:
    if isinstance(error, binascii.Error):
        return "not valid base64"
    if isinstance(error, UnicodeDecodeError):
        return "not valid UTF-8"
    return "not valid JSON"
