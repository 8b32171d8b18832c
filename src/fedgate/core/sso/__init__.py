"""SAML single sign-on: tenant resolution, attribute mapping, JIT provisioning."""

from fedgate.core.sso.attributes import AttributeExtraction, extract_attributes, map_attributes
from fedgate.core.sso.login import LoginFailure, LoginOutcome, SamlLoginService
from fedgate.core.sso.login_url import generate_login_url
from fedgate.core.sso.provisioner import ProvisionedIdentity, UserProvisioner
from fedgate.core.sso.relay import RelayToken, decode_relay_token, encode_relay_token
from fedgate.core.sso.resolver import OrgResolver, ResolvedOrganization, extract_name_id
from fedgate.core.sso.session import ClientContext, SessionIssuer

__all__ = [
    "AttributeExtraction",
    "ClientContext",
    "LoginFailure",
    "LoginOutcome",
    "OrgResolver",
    "ProvisionedIdentity",
    "RelayToken",
    "ResolvedOrganization",
    "SamlLoginService",
    "SessionIssuer",
    "UserProvisioner",
    "decode_relay_token",
    "encode_relay_token",
    "extract_attributes",
    "extract_name_id",
    "generate_login_url",
    "map_attributes",
]
