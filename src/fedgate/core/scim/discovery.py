"""SCIM discovery documents (RFC 7643 §5 and §7)."""

from __future__ import annotations

from typing import Any

from fedgate.core.scim.schemas import SCIM_LIST_SCHEMA, SCIM_USER_SCHEMA

SCIM_SERVICE_PROVIDER_CONFIG_SCHEMA = (
    "urn:ietf:params:scim:schemas:core:2.0:ServiceProviderConfig"
)
SCIM_SCHEMA_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:Schema"

MAX_PAGE_SIZE = 500
DEFAULT_PAGE_SIZE = 50


def _attribute(
    name: str,
    description: str,
    type_: str = "string",
    *,
    required: bool = False,
    multi_valued: bool = False,
    case_exact: bool = False,
    mutability: str = "readWrite",
    returned: str = "default",
    uniqueness: str = "none",
    sub_attributes: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    result: dict[str, Any] = {
        "name": name,
        "type": type_,
        "multiValued": multi_valued,
        "description": description,
        "required": required,
        "mutability": mutability,
        "returned": returned,
    }
    if type_ == "string":
        result["caseExact"] = case_exact
    if type_ != "complex":
        result["uniqueness"] = uniqueness
    if sub_attributes:
        result["subAttributes"] = sub_attributes
    return result


def user_schema(base_url: str) -> dict[str, Any]:
    """The core User schema as supported by this server."""
    return {
        "schemas": [SCIM_SCHEMA_SCHEMA],
        "id": SCIM_USER_SCHEMA,
        "name": "User",
        "description": "User Account",
        "attributes": [
            _attribute(
                "userName",
                "Unique identifier for the User. Usually an email.",
                required=True,
                uniqueness="server",
            ),
            _attribute("externalId", "External unique identifier of the User."),
            _attribute(
                "name",
                "The components of the user's real name.",
                "complex",
                sub_attributes=[
                    _attribute("givenName", "The given name of the user."),
                    _attribute("familyName", "The family name of the user."),
                ],
            ),
            _attribute(
                "emails",
                "Email addresses for the user.",
                "complex",
                multi_valued=True,
                sub_attributes=[
                    _attribute("value", "Email address value."),
                    _attribute(
                        "type",
                        'A label indicating the attribute\'s function; e.g., "work".',
                    ),
                    _attribute(
                        "primary", "A boolean value indicating the primary email.", "boolean"
                    ),
                ],
            ),
            _attribute(
                "active", "A boolean value indicating the User's administrative status.", "boolean"
            ),
            _attribute(
                "id",
                "A unique identifier for the User.",
                case_exact=True,
                mutability="readOnly",
                returned="always",
                uniqueness="global",
            ),
        ],
        "meta": {
            "resourceType": "Schema",
            "location": f"{base_url}/Schemas/{SCIM_USER_SCHEMA}",
        },
    }


def schemas_document(base_url: str) -> dict[str, Any]:
    """``GET /Schemas`` list response."""
    return {
        "schemas": [SCIM_LIST_SCHEMA],
        "totalResults": 1,
        "startIndex": 1,
        "itemsPerPage": 1,
        "Resources": [user_schema(base_url)],
    }


def service_provider_config(base_url: str, documentation_uri: str | None = None) -> dict[str, Any]:
    """``GET /ServiceProviderConfig`` document."""
    return {
        "schemas": [SCIM_SERVICE_PROVIDER_CONFIG_SCHEMA],
        "documentationUri": documentation_uri or f"{base_url}/docs",
        "patch": {"supported": True},
        "bulk": {"supported": False, "maxOperations": 0, "maxPayloadSize": 0},
        "filter": {"supported": True, "maxResults": MAX_PAGE_SIZE},
        "changePassword": {"supported": False},
        "sort": {"supported": False},
        "etag": {"supported": False},
        "authenticationSchemes": [
            {
                "name": "OAuth Bearer Token",
                "description": "Authentication via OAuth 2.0 Bearer Token",
                "specUri": "https://tools.ietf.org/html/rfc6750",
                "type": "oauthbearertoken",
                "primary": True,
            }
        ],
        "meta": {
            "resourceType": "ServiceProviderConfig",
            "location": f"{base_url}/ServiceProviderConfig",
        },
    }
