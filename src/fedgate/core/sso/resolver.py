"""Resolve the tenant organization an inbound SAML response belongs to."""

from __future__ import annotations

import base64
import binascii
import xml.etree.ElementTree as ET
from dataclasses import dataclass, replace

import structlog

from fedgate.core.errors import ErrorKind, Failure, UserServiceError
from fedgate.core.interfaces import UserService
from fedgate.core.sso.relay import RelayToken, decode_relay_token
from fedgate.core.types import AccountInfo, Organization, SAMLConfig

logger = structlog.get_logger()

SAML_ASSERTION_NS = "urn:oasis:names:tc:SAML:2.0:assertion"
_NAME_ID_PATH = f".//{{{SAML_ASSERTION_NS}}}Subject/{{{SAML_ASSERTION_NS}}}NameID"


@dataclass(frozen=True)
class ResolvedOrganization:
    """Outcome of organization resolution.

    Attributes:
        organization: The tenant, with SSO enabled and SAML configured.
        saml_config: The tenant's SAML configuration.
        owner: User id of the organization owner, if known.
        relay: Decoded relay token for SP-initiated logins.
    """

    organization: Organization
    saml_config: SAMLConfig
    owner: str | None = None
    relay: RelayToken | None = None


def extract_name_id(saml_response: str) -> str | None:
    """Return the Subject NameID of a base64 SAML response, if present.

    Only namespace-qualified element lookup is used; the document is not
    validated against the SAML schema. Documents with a DOCTYPE are rejected.
    """
    try:
        xml_text = base64.b64decode(saml_response, validate=False).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None

    if "<!DOCTYPE" in xml_text or "<!ENTITY" in xml_text:
        return None

    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError:
        return None

    node = root.find(_NAME_ID_PATH)
    if node is None or not node.text:
        return None
    return node.text.strip()


def email_domain(email: str) -> str:
    """Substring after the first ``@``."""
    return email.split("@", 1)[1]


def _with_redirect(
    result: ResolvedOrganization | Failure, relay: RelayToken
) -> ResolvedOrganization | Failure:
    if isinstance(result, Failure):
        return replace(result, context={**result.context, "redirect_url": relay.redirect_url})
    return result


class OrgResolver:
    """Determines the tenant for an inbound SAML response.

    SP-initiated logins carry the organization id in a relay token;
    IdP-initiated logins are routed by the NameID's email domain.
    """

    def __init__(self, user_service: UserService) -> None:
        """Initialize the resolver.

        Args:
            user_service: User-service client used for organization lookups.
        """
        self._users = user_service

    async def resolve(
        self, relay_state: str | None, saml_response: str
    ) -> ResolvedOrganization | Failure:
        """Resolve and vet the organization for a SAML response.

        Args:
            relay_state: Raw ``RelayState`` form value, if any.
            saml_response: Raw base64 ``SAMLResponse`` form value.

        Returns:
            The resolved organization or the first failing check. Failures
            after a relay token decodes carry its ``redirect_url`` in
            ``context``.
        """
        if relay_state:
            relay = decode_relay_token(relay_state)
            if isinstance(relay, Failure):
                logger.warning("relay_state_rejected", reason=relay.message)
                return relay
            lookup = await self._lookup("id", relay.org_id)
            if isinstance(lookup, Failure):
                return _with_redirect(lookup, relay)
            return _with_redirect(self._vet(lookup, relay), relay)

        name_id = extract_name_id(saml_response)
        if not name_id or "@" not in name_id:
            return Failure(
                ErrorKind.INVALID_IDP_INITIATED,
                "Cannot determine organization: no RelayState and invalid email "
                "in SAML response",
            )
        domain = email_domain(name_id)
        lookup = await self._lookup("domain", domain)
        if lookup is None:
            return Failure(
                ErrorKind.ORG_NOT_FOUND,
                f"No organization found for domain: {domain}",
                {"domain": domain},
            )
        if isinstance(lookup, Failure):
            return lookup
        return self._vet(lookup, None)

    async def _lookup(self, by: str, value: str) -> AccountInfo | Failure | None:
        try:
            if by == "id":
                return await self._users.get_account_by_id(value)
            return await self._users.get_account_by_domain(value)
        except UserServiceError as e:
            logger.error("organization_lookup_failed", by=by, value=value, error=str(e))
            return Failure(
                ErrorKind.UPSTREAM_ERROR, "Failed to fetch organization", {by: value}
            )

    def _vet(
        self, account: AccountInfo | None, relay: RelayToken | None
    ) -> ResolvedOrganization | Failure:
        org = account.organization if account else None

        if org is None or not org.id:
            return Failure(ErrorKind.ORG_NOT_FOUND, "Organization not found")

        config = org.saml_config
        mapping = config.attribute_mapping if config else None
        if config is None or mapping is None or mapping.is_empty():
            return Failure(
                ErrorKind.SAML_NOT_CONFIGURED,
                "SAML SSO not configured for this organization",
                {"org_id": org.id},
            )

        if not org.sso_enabled:
            return Failure(
                ErrorKind.SSO_DISABLED,
                "SSO not enabled for this organization",
                {"org_id": org.id},
            )

        return ResolvedOrganization(
            organization=org,
            saml_config=config,
            owner=account.owner if account else None,
            relay=relay,
        )
