"""Tests for relay-state tokens."""

import base64
import json
from urllib.parse import quote

import pytest

from fedgate.core.errors import ErrorKind, Failure
from fedgate.core.sso.relay import RelayToken, decode_relay_token, encode_relay_token


def _b64(payload: object) -> str:
    return base64.b64encode(json.dumps(payload).encode()).decode()


class TestEncodeDecode:
    """Round trip of well-formed tokens."""

    @pytest.mark.parametrize(
        ("org_id", "redirect_url"),
        [
            ("org-1", ""),
            ("org-1", "/dashboard?tab=users"),
            ("9f1c-ü", "https://app.acme.com/x"),
        ],
    )
    def test_round_trip(self, org_id: str, redirect_url: str) -> None:
        """decode(encode(t)) == t."""
        token = encode_relay_token(org_id, redirect_url)

        assert decode_relay_token(token) == RelayToken(org_id, redirect_url)

    def test_wire_format(self) -> None:
        """Payload keys are orgId and redirectURL."""
        token = encode_relay_token("org-1", "/home")

        assert json.loads(base64.b64decode(token)) == {"orgId": "org-1", "redirectURL": "/home"}

    def test_accepts_percent_encoded_token(self) -> None:
        """A token that is still URL-encoded decodes."""
        token = encode_relay_token("org-1", "/a?b=c")

        assert decode_relay_token(quote(token, safe="")) == RelayToken("org-1", "/a?b=c")

    def test_missing_redirect_defaults_to_empty(self) -> None:
        """redirectURL is optional."""
        assert decode_relay_token(_b64({"orgId": "org-1"})) == RelayToken("org-1", "")


class TestInvalidTokens:
    """Malformed tokens fail with INVALID_RELAY."""

    @pytest.mark.parametrize(
        ("raw", "reason"),
        [
            ("not base64!!", "not valid base64"),
            (base64.b64encode(b"\xff\xfe").decode(), "not valid UTF-8"),
            (base64.b64encode(b"{oops").decode(), "not valid JSON"),
            (_b64(["org-1"]), "not a JSON object"),
            (_b64({"redirectURL": "/x"}), "orgId is missing"),
            (_b64({"orgId": ""}), "orgId is missing"),
            (_b64({"orgId": 42}), "orgId is missing"),
        ],
    )
    def test_rejected(self, raw: str, reason: str) -> None:
        """Each malformation is reported."""
        result = decode_relay_token(raw)

        assert isinstance(result, Failure)
        assert result.kind is ErrorKind.INVALID_RELAY
        assert result.status_code == 400
        assert result.message == f"Invalid relayState: {reason}"
