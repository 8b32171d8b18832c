"""Just-in-time provisioning of SSO users."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from fedgate.core.credentials import generate_password
from fedgate.core.errors import ErrorKind, Failure
from fedgate.core.interfaces import UserService
from fedgate.core.types import User, UserAttributes, UserRole, UserStatus

logger = structlog.get_logger()

DEFAULT_LICENSE = "L1"
DEFAULT_USER_TYPE = "POWER"


@dataclass(frozen=True)
class ProvisionedIdentity:
    """A user ready for session issuance."""

    email: str
    apikey: str
    created: bool = False


def new_user_info(
    attrs: UserAttributes,
    org_id: str,
    owner: str | None,
    status: UserStatus = UserStatus.ACTIVE,
) -> dict[str, Any]:
    """Build the ``user_info`` record for a user the gateway creates."""
    return {
        "userid": attrs.email,
        "email": attrs.email,
        "first_name": attrs.first_name,
        "last_name": attrs.last_name,
        "name": f"{attrs.first_name} {attrs.last_name}",
        "status": int(status),
        "user_role": UserRole.MEMBER.value,
        "user_account": org_id,
        "license": DEFAULT_LICENSE,
        "user_type": DEFAULT_USER_TYPE,
        "power_user": owner,
        "pwd": generate_password(),
    }


class UserProvisioner:
    """Reconciles an asserted identity with the tenant's user store.

    Existing users are reused as stored: SSO re-login never rewrites profile
    fields, status or role. New users are created ACTIVE with the MEMBER
    role and receive a freshly minted API key.
    """

    def __init__(self, user_service: UserService) -> None:
        """Initialize the provisioner.

        Args:
            user_service: User-service client.
        """
        self._users = user_service

    async def provision(
        self, org_id: str, attrs: UserAttributes, owner: str | None = None
    ) -> ProvisionedIdentity | Failure:
        """Find or create the user and return its access credential.

        Args:
            org_id: Organization the login belongs to.
            attrs: Identity extracted from the assertion.
            owner: Organization owner, linked as the new user's power user.

        Returns:
            The provisioned identity, or ``Failure(PROVISION_ERROR)``.
        """
        try:
            existing = await self._users.get_user(attrs.email)
            if existing is not None:
                return await self._reuse(existing)
            return await self._create(org_id, attrs, owner)
        except Exception as e:
            logger.exception(
                "user_provisioning_failed",
                org_id=org_id,
                email=attrs.email,
                first_name=attrs.first_name,
                last_name=attrs.last_name,
                error=str(e),
            )
            return Failure(ErrorKind.PROVISION_ERROR, "Failed to provision user")

    async def _reuse(self, user: User) -> ProvisionedIdentity:
        apikey = user.apikey
        if not apikey:
            apikey = await self._users.create_api_key(user.userid)
        logger.info("sso_user_reused", email=user.email, status=user.status.name)
        return ProvisionedIdentity(email=user.email, apikey=apikey)

    async def _create(
        self, org_id: str, attrs: UserAttributes, owner: str | None
    ) -> ProvisionedIdentity:
        await self._users.create_user(new_user_info(attrs, org_id, owner))
        # A failure from here on leaves the user row without a key; the login
        # fails and the admin resolves it out-of-band.
        apikey = await self._users.create_api_key(attrs.email)
        logger.info("sso_user_created", org_id=org_id, email=attrs.email)
        return ProvisionedIdentity(email=attrs.email, apikey=apikey, created=True)
