"""Exchange a provisioned identity for a user-service session."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from fedgate.core.errors import ErrorKind, Failure, UserServiceError
from fedgate.core.interfaces import UserService

logger = structlog.get_logger()

SESSION_TTL_SECONDS = 60 * 60 * 24


@dataclass(frozen=True)
class ClientContext:
    """Minimal metadata about the browser that is logging in."""

    user_agent: str | None = None
    origin: str | None = None


class SessionIssuer:
    """Requests sessions from the user service."""

    def __init__(self, user_service: UserService) -> None:
        """Initialize the issuer.

        Args:
            user_service: User-service client.
        """
        self._users = user_service

    async def issue(
        self, email: str, apikey: str, client: ClientContext | None = None
    ) -> str | Failure:
        """Open a session for ``email``.

        Args:
            email: User id.
            apikey: The user's access credential.
            client: Browser metadata forwarded to the user service.

        Returns:
            Session id, or ``Failure(SESSION_ERROR)``.
        """
        client = client or ClientContext()
        try:
            session_id = await self._users.create_session(
                email, apikey, user_agent=client.user_agent, origin=client.origin
            )
        except UserServiceError as e:
            logger.error("session_request_failed", email=email, error=str(e))
            return Failure(ErrorKind.SESSION_ERROR, "Failed to create session")

        if not session_id:
            logger.error("session_missing", email=email)
            return Failure(ErrorKind.SESSION_ERROR, "Failed to create session")

        return session_id
