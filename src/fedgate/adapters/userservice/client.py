"""HTTP client for the remote user service.

The user service exposes RPC-style JSON endpoints (``POST /user/<op>``).
Every payload is signed with ``refer``, a microsecond timestamp ``ts`` and
``token``, an unsigned 32-bit rolling hash of ``refer + ts + secret``.
"""

from __future__ import annotations

import json
import time
from typing import Any

import httpx
import structlog

from fedgate.core.errors import UserServiceError
from fedgate.core.types import AccountInfo, User

logger = structlog.get_logger()

DEFAULT_REFER = "bvector-web-client"
DEFAULT_TIMEOUT_SECONDS = 30.0

OP_LIST_USERS = 1
OP_COUNT_USERS = 99


def _to_int32(value: int) -> int:
    return ((value + 2**31) % 2**32) - 2**31


def hash_code(text: str) -> int:
    """Rolling string hash the user service verifies.

    ``h = h * 31 + c`` over UTF-16 code units with 32-bit wraparound on the
    multiply; a negative result is folded into the unsigned range.
    """
    data = text.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = _to_int32(_to_int32(h) << 5) - h + unit
    return h * -1 + 0xFFFFFFFF if h < 0 else h


def sign_payload(
    payload: dict[str, Any], secret: str, refer: str = DEFAULT_REFER, now: float | None = None
) -> dict[str, Any]:
    """Return ``payload`` with the ``refer``/``ts``/``token`` signature added."""
    ts = str(int((time.time() if now is None else now) * 1000) * 1000)
    return {**payload, "refer": refer, "ts": ts, "token": hash_code(refer + ts + secret)}


def normalize_base_url(host: str) -> str:
    """Accept a bare host (the usual config form) or a full URL."""
    host = host.strip().rstrip("/")
    if not host.startswith(("http://", "https://")):
        host = f"https://{host}"
    return f"{host}/"


class UserServiceClient:
    """``UserService`` implementation over httpx.

    Each method is exactly one POST with no retry; the client-wide timeout
    bounds it. Transport errors, non-2xx answers, ``error`` members and
    undecodable bodies raise ``UserServiceError``.
    """

    def __init__(
        self,
        base_url: str,
        secret: str,
        source: str = "",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        refer: str = DEFAULT_REFER,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: User-service host, with or without scheme.
            secret: Shared signing secret.
            source: Value of the ``x-api-src`` header.
            timeout: Per-request timeout in seconds.
            refer: Caller name included in every signature.
            transport: Optional httpx transport (tests).
        """
        self._secret = secret
        self._refer = refer
        self._client = httpx.AsyncClient(
            base_url=normalize_base_url(base_url),
            headers={
                "Content-Type": "application/json; charset=UTF-8",
                "x-api-src": source,
            },
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        """Resolved base URL."""
        return str(self._client.base_url)

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def _call(self, operation: str, payload: dict[str, Any]) -> Any:
        """POST a signed payload and decode the JSON answer.

        Args:
            operation: Endpoint path, e.g. ``user/info``.
            payload: Unsigned request body.

        Returns:
            Decoded JSON body.

        Raises:
            UserServiceError: On any transport or protocol fault.
        """
        body = sign_payload(payload, self._secret, self._refer)
        try:
            response = await self._client.post(operation, json=body)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "user_service_http_error",
                operation=operation,
                status_code=e.response.status_code,
            )
            raise UserServiceError(operation, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("user_service_unreachable", operation=operation, error=str(e))
            raise UserServiceError(operation, type(e).__name__) from e
        except ValueError as e:
            raise UserServiceError(operation, "response is not JSON") from e

        if isinstance(result, dict) and result.get("error"):
            error = result["error"]
            message = error[0] if isinstance(error, list) and error else str(error)
            raise UserServiceError(operation, str(message))
        return result

    async def get_user(self, email: str) -> User | None:
        """Fetch a user by email (the user id)."""
        result = await self._call("user/info", {"userid": email})
        if not isinstance(result, dict) or not result.get("userid"):
            return None
        return User.model_validate(result)

    async def create_user(self, user_info: dict[str, Any], signup: bool = False) -> None:
        """Create a user from a ``user_info`` record."""
        payload: dict[str, Any] = {"user_info": user_info}
        if signup:
            payload["signup"] = 1
        await self._call("user/create", payload)

    async def update_user(self, userid: str, user_info: dict[str, Any]) -> User:
        """Apply a partial update and return the stored user."""
        result = await self._call("user/update", {"userid": userid, "user_info": user_info})
        if not isinstance(result, dict) or not result.get("userid"):
            # Some deployments acknowledge without echoing the row.
            user = await self.get_user(userid)
            if user is None:
                raise UserServiceError("user/update", "updated user not found")
            return user
        return User.model_validate(result)

    async def create_api_key(self, userid: str) -> str:
        """Mint an API key for a user."""
        result = await self._call("user/create_api_key", {"userid": userid})
        apikey = result.get("apikey") if isinstance(result, dict) else None
        if not apikey:
            raise UserServiceError("user/create_api_key", "no apikey in response")
        return str(apikey)

    async def list_users(self, org_id: str) -> list[User]:
        """List every user of an organization."""
        result = await self._call("user/get_users", {"op": OP_LIST_USERS, "user_account": org_id})
        rows = result.get("users") if isinstance(result, dict) else None
        return [User.model_validate(row) for row in rows or [] if row.get("userid")]

    async def count_users(self, org_id: str) -> int:
        """Count every user of an organization."""
        result = await self._call(
            "user/get_users", {"op": OP_COUNT_USERS, "user_account": org_id}
        )
        count = result.get("count") if isinstance(result, dict) else None
        if count is None:
            raise UserServiceError("user/get_users", "Failed to get the total count of users")
        return int(count)

    async def _account_by(self, attribute: str, value: str) -> AccountInfo | None:
        if not value or '"' in value:
            # Cannot be quoted into the filter; no organization can match.
            return None
        result = await self._call(
            "user/get_account_info",
            {
                "userid": value,
                "option": "all",
                "filter": f'(organization.{attribute} = "{value}")',
            },
        )
        rows = result.get("rows") if isinstance(result, dict) else None
        if not rows:
            return None
        raw = rows[0].get("v")
        try:
            data = json.loads(raw) if isinstance(raw, str) else raw
        except ValueError as e:
            raise UserServiceError("user/get_account_info", "account row is not JSON") from e
        if not isinstance(data, dict):
            return None
        account = AccountInfo.model_validate(data)
        if account.organization is None or not account.organization.id:
            return None
        return account

    async def get_account_by_id(self, org_id: str) -> AccountInfo | None:
        """Fetch an organization by id."""
        return await self._account_by("id", org_id)

    async def get_account_by_domain(self, domain: str) -> AccountInfo | None:
        """Fetch the organization claiming an email domain."""
        return await self._account_by("domain", domain)

    async def get_account_by_scim_token(self, token: str) -> AccountInfo | None:
        """Fetch the organization bound to a SCIM bearer token."""
        return await self._account_by("scimToken", token)

    async def create_session(
        self,
        userid: str,
        apikey: str,
        user_agent: str | None = None,
        origin: str | None = None,
    ) -> str | None:
        """Open a session and return its id."""
        result = await self._call(
            "user/ext_session",
            {
                "userid": userid,
                "apikey": apikey,
                "client": {"user_agent": user_agent or "", "origin": origin or ""},
            },
        )
        session_id = result.get("sessionid") if isinstance(result, dict) else None
        return str(session_id) if session_id else None
