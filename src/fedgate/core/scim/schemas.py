"""SCIM 2.0 resource shapes.

Based on RFC 7643 (SCIM Core Schema) and RFC 7644 (SCIM Protocol).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from fedgate.core.types import User

# SCIM Schema URNs
SCIM_USER_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:User"
SCIM_ERROR_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:Error"
SCIM_PATCH_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:PatchOp"
SCIM_LIST_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:ListResponse"

SCIM_CONTENT_TYPE = "application/scim+json"


class SCIMPatchOp(str, Enum):
    """SCIM patch operation types."""

    ADD = "Add"
    REMOVE = "Remove"
    REPLACE = "Replace"

    @classmethod
    def parse(cls, value: str) -> SCIMPatchOp | None:
        """Match an operation name case-insensitively."""
        for op in cls:
            if op.value.lower() == value.lower():
                return op
        return None


@dataclass
class SCIMName:
    """SCIM user name component."""

    given_name: str = ""
    family_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to SCIM JSON format."""
        return {"givenName": self.given_name, "familyName": self.family_name}


@dataclass
class SCIMUserEmail:
    """SCIM user email address."""

    value: str
    primary: bool = False
    type: str = "work"

    def to_dict(self) -> dict[str, Any]:
        """Convert to SCIM JSON format."""
        return {
            "value": self.value,
            "type": self.type,
            "primary": self.primary,
        }


@dataclass
class SCIMMeta:
    """SCIM resource metadata."""

    created: datetime
    last_modified: datetime
    location: str | None = None
    resource_type: str = "User"

    def to_dict(self) -> dict[str, Any]:
        """Convert to SCIM JSON format."""
        result: dict[str, Any] = {
            "resourceType": self.resource_type,
            "created": _isoformat(self.created),
            "lastModified": _isoformat(self.last_modified),
        }
        if self.location:
            result["location"] = self.location
        return result


@dataclass
class SCIMUser:
    """SCIM 2.0 User resource."""

    id: str
    user_name: str
    active: bool = True
    name: SCIMName | None = None
    emails: list[SCIMUserEmail] = field(default_factory=list)
    external_id: str | None = None
    meta: SCIMMeta | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to SCIM JSON format."""
        result: dict[str, Any] = {
            "schemas": [SCIM_USER_SCHEMA],
            "id": self.id,
            "userName": self.user_name,
            "active": self.active,
        }
        if self.external_id:
            result["externalId"] = self.external_id
        if self.name:
            result["name"] = self.name.to_dict()
        if self.emails:
            result["emails"] = [e.to_dict() for e in self.emails]
        if self.meta:
            result["meta"] = self.meta.to_dict()
        return result

    @classmethod
    def from_user(cls, user: User, base_url: str | None = None) -> SCIMUser:
        """Represent a stored user. The SCIM id is the user's email."""
        now = datetime.now(UTC)
        location = f"{base_url.rstrip('/')}/Users/{user.email}" if base_url else None
        return cls(
            id=user.email,
            user_name=user.email,
            active=user.is_active,
            name=SCIMName(given_name=user.first_name or "", family_name=user.last_name or ""),
            emails=[SCIMUserEmail(value=user.email, primary=True)],
            external_id=user.email,
            meta=SCIMMeta(created=now, last_modified=now, location=location),
        )


@dataclass
class SCIMListResponse:
    """SCIM list response for paginated results."""

    total_results: int
    resources: list[dict[str, Any]]
    start_index: int = 1
    items_per_page: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to SCIM JSON format."""
        return {
            "schemas": [SCIM_LIST_SCHEMA],
            "totalResults": self.total_results,
            "startIndex": self.start_index,
            "itemsPerPage": self.items_per_page,
            "Resources": self.resources,
        }


@dataclass
class SCIMError:
    """SCIM error response."""

    status: int
    detail: str
    scim_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to SCIM JSON format."""
        result: dict[str, Any] = {
            "schemas": [SCIM_ERROR_SCHEMA],
            "status": str(self.status),
            "detail": self.detail,
        }
        if self.scim_type:
            result["scimType"] = self.scim_type
        return result


def _isoformat(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
