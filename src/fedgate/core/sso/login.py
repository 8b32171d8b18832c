"""SAML callback pipeline: resolve, verify, map, provision, open a session."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from fedgate.core.errors import ErrorKind, Failure
from fedgate.core.interfaces import AssertionValidator, UserService
from fedgate.core.sso.attributes import map_attributes
from fedgate.core.sso.provisioner import UserProvisioner
from fedgate.core.sso.resolver import OrgResolver
from fedgate.core.sso.session import ClientContext, SessionIssuer

logger = structlog.get_logger()


@dataclass(frozen=True)
class LoginOutcome:
    """A completed SSO login."""

    org_id: str
    email: str
    session_id: str
    redirect_url: str = ""
    created: bool = False


@dataclass(frozen=True)
class LoginFailure:
    """A failed SSO login, with the relay target for a retry link."""

    failure: Failure
    redirect_url: str = ""


class SamlLoginService:
    """Runs an inbound SAML response through every login stage.

    Each stage returns its result or a ``Failure``; the first failure ends
    the login.
    """

    def __init__(self, user_service: UserService, validator: AssertionValidator) -> None:
        """Initialize the service.

        Args:
            user_service: User-service client.
            validator: SAML assertion validator.
        """
        self._resolver = OrgResolver(user_service)
        self._validator = validator
        self._provisioner = UserProvisioner(user_service)
        self._sessions = SessionIssuer(user_service)

    async def login(
        self,
        saml_response: str,
        relay_state: str | None = None,
        client: ClientContext | None = None,
    ) -> LoginOutcome | LoginFailure:
        """Process a SAML response posted to the callback.

        Args:
            saml_response: Base64 ``SAMLResponse`` form value.
            relay_state: ``RelayState`` form value, if any.
            client: Browser metadata for the session request.

        Returns:
            The login outcome or the first failure.
        """
        resolved = await self._resolver.resolve(relay_state, saml_response)
        if isinstance(resolved, Failure):
            logger.warning(
                "org_resolution_failed", kind=resolved.kind.value, **resolved.context
            )
            return LoginFailure(resolved, resolved.context.get("redirect_url", ""))

        org = resolved.organization
        redirect_url = resolved.relay.redirect_url if resolved.relay else ""

        raw = await asyncio.to_thread(
            self._validator.validate, saml_response, resolved.saml_config
        )
        if isinstance(raw, Failure):
            logger.warning(
                "assertion_rejected", org_id=org.id, reason=raw.message, **raw.context
            )
            return LoginFailure(raw, redirect_url)

        mapping = resolved.saml_config.attribute_mapping
        assert mapping is not None  # guaranteed by OrgResolver
        extraction = map_attributes(raw, mapping)
        if extraction.attributes is None:
            logger.warning(
                "assertion_attributes_missing",
                org_id=org.id,
                missing=list(extraction.missing),
                received=sorted(raw),
            )
            failure = Failure(
                ErrorKind.ATTRIBUTES_MISSING,
                "Failed to extract user attributes from SAML response",
                {"missing": list(extraction.missing)},
            )
            return LoginFailure(failure, redirect_url)

        identity = await self._provisioner.provision(
            org.id, extraction.attributes, resolved.owner
        )
        if isinstance(identity, Failure):
            return LoginFailure(identity, redirect_url)

        session_id = await self._sessions.issue(identity.email, identity.apikey, client)
        if isinstance(session_id, Failure):
            return LoginFailure(session_id, redirect_url)

        logger.info(
            "sso_login_succeeded", org_id=org.id, email=identity.email, created=identity.created
        )
        return LoginOutcome(
            org_id=org.id,
            email=identity.email,
            session_id=session_id,
            redirect_url=redirect_url,
            created=identity.created,
        )
