"""SCIM bearer-token authentication."""

from __future__ import annotations

import hashlib
from typing import Annotated

import structlog
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fedgate.core.errors import ErrorKind, Failure, UserServiceError
from fedgate.core.interfaces import UserService
from fedgate.core.types import AccountInfo
from fedgate.entrypoints.api.deps import get_user_service

logger = structlog.get_logger()

SCIM_BEARER = HTTPBearer(auto_error=False)

_UNAUTHORIZED = Failure(ErrorKind.UNAUTHORIZED, "Unauthorized")


def _fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()[:12]


async def verify_scim_token(
    user_service: Annotated[UserService, Depends(get_user_service)],
    credentials: HTTPAuthorizationCredentials | None = Security(SCIM_BEARER),
) -> AccountInfo | Failure:
    """Bind the request to the organization owning the bearer token.

    Returns the organization's account info, or ``Failure(UNAUTHORIZED)``
    when the token is missing, unknown, or its organization has SSO
    disabled. The route answers the failure before touching any data.
    """
    if credentials is None or not credentials.credentials:
        logger.info("scim_token_missing")
        return _UNAUTHORIZED

    token = credentials.credentials
    try:
        account = await user_service.get_account_by_scim_token(token)
    except UserServiceError as e:
        logger.error("scim_token_lookup_failed", error=str(e))
        return Failure(ErrorKind.UPSTREAM_ERROR, "Internal server error")

    org = account.organization if account else None
    if org is None or not org.id:
        logger.warning("scim_token_invalid", fingerprint=_fingerprint(token))
        return _UNAUTHORIZED
    if not org.sso_enabled:
        logger.warning("scim_token_sso_disabled", org_id=org.id)
        return _UNAUTHORIZED

    return account
