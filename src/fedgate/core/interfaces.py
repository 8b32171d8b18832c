"""Protocol definitions for the external collaborators of the core.

The core only depends on these protocols. The HTTP user-service client and
the SAML library binding in ``fedgate.adapters`` implement them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from fedgate.core.errors import Failure
    from fedgate.core.types import AccountInfo, SAMLConfig, User

RawAttributes = dict[str, Any]


@runtime_checkable
class UserService(Protocol):
    """Narrow RPC contract of the remote user service.

    Every method performs exactly one remote call. Transport and protocol
    faults raise ``UserServiceError``; "not found" is a ``None`` result.
    """

    async def get_user(self, email: str) -> User | None:
        """Fetch a user by email (the user id)."""
        ...

    async def create_user(self, user_info: dict[str, Any], signup: bool = False) -> None:
        """Create a user from a ``user_info`` record."""
        ...

    async def update_user(self, userid: str, user_info: dict[str, Any]) -> User:
        """Apply a partial update and return the stored user."""
        ...

    async def create_api_key(self, userid: str) -> str:
        """Mint an API key for a user."""
        ...

    async def list_users(self, org_id: str) -> list[User]:
        """List every user of an organization."""
        ...

    async def count_users(self, org_id: str) -> int:
        """Count every user of an organization."""
        ...

    async def get_account_by_id(self, org_id: str) -> AccountInfo | None:
        """Fetch an organization by id."""
        ...

    async def get_account_by_domain(self, domain: str) -> AccountInfo | None:
        """Fetch the organization claiming an email domain."""
        ...

    async def get_account_by_scim_token(self, token: str) -> AccountInfo | None:
        """Fetch the organization bound to a SCIM bearer token."""
        ...

    async def create_session(
        self,
        userid: str,
        apikey: str,
        user_agent: str | None = None,
        origin: str | None = None,
    ) -> str | None:
        """Open a session and return its id."""
        ...


@runtime_checkable
class AssertionValidator(Protocol):
    """Verifies a SAML response against a tenant's IdP trust configuration."""

    def validate(self, saml_response: str, config: SAMLConfig) -> RawAttributes | Failure:
        """Verify a base64 SAML response.

        Args:
            saml_response: The ``SAMLResponse`` form value.
            config: The tenant's SAML configuration.

        Returns:
            The assertion's attribute bag, or a ``Failure`` of kind
            ``ASSERTION_INVALID``.
        """
        ...
