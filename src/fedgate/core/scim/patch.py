"""SCIM PATCH interpretation.

Okta and Entra spell the same user attribute differently. Every known path
spelling maps to one ``CanonicalField``; each canonical field maps to the
internal user-service field it updates. Unknown spellings map to
``CanonicalField.UNKNOWN`` and are ignored.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fedgate.core.errors import ErrorKind, Failure
from fedgate.core.scim.schemas import SCIMPatchOp
from fedgate.core.types import UserStatus

logger = structlog.get_logger()

# Fields a PATCH may change, whatever the interpreter produced.
ALLOWED_UPDATE_FIELDS = ("first_name", "last_name", "email", "externalId", "status")

_USER_SCHEMA_PREFIX = "urn:ietf:params:scim:schemas:core:2.0:user:"


class CanonicalField(str, Enum):
    """User attributes a PATCH path can address."""

    GIVEN_NAME = "givenName"
    FAMILY_NAME = "familyName"
    DISPLAY_NAME = "displayName"
    EMAIL = "email"
    ACTIVE = "active"
    EXTERNAL_ID = "externalId"
    USER_NAME = "userName"
    UNKNOWN = "unknown"


# Lowercased, whitespace-collapsed path spelling -> canonical field.
PATH_SPELLINGS: dict[str, CanonicalField] = {
    # RFC 7643 (Okta)
    "name.givenname": CanonicalField.GIVEN_NAME,
    "name.familyname": CanonicalField.FAMILY_NAME,
    # Entra
    "displayname": CanonicalField.DISPLAY_NAME,
    "name.formatted": CanonicalField.DISPLAY_NAME,
    # Non-standard
    "givenname": CanonicalField.GIVEN_NAME,
    "firstname": CanonicalField.GIVEN_NAME,
    "familyname": CanonicalField.FAMILY_NAME,
    "lastname": CanonicalField.FAMILY_NAME,
    # Email
    'emails[type eq "work"].value': CanonicalField.EMAIL,
    "emails[primary eq true].value": CanonicalField.EMAIL,
    "email": CanonicalField.EMAIL,
    "active": CanonicalField.ACTIVE,
    "externalid": CanonicalField.EXTERNAL_ID,
    "username": CanonicalField.USER_NAME,
}

# Canonical field -> user-service field. DISPLAY_NAME is split into both names.
INTERNAL_FIELDS: dict[CanonicalField, str | None] = {
    CanonicalField.GIVEN_NAME: "first_name",
    CanonicalField.FAMILY_NAME: "last_name",
    CanonicalField.DISPLAY_NAME: None,
    CanonicalField.EMAIL: "email",
    CanonicalField.ACTIVE: "status",
    CanonicalField.EXTERNAL_ID: "externalId",
    CanonicalField.USER_NAME: "email",
    CanonicalField.UNKNOWN: None,
}


class ScimPatchOperation(BaseModel):
    """One entry of a PATCH ``Operations`` array."""

    model_config = ConfigDict(extra="ignore")

    op: SCIMPatchOp
    path: str
    value: Any = None

    @field_validator("op", mode="before")
    @classmethod
    def _parse_op(cls, value: Any) -> SCIMPatchOp:
        op = SCIMPatchOp.parse(value) if isinstance(value, str) else None
        if op is None:
            raise ValueError("op must be one of Add, Remove, Replace")
        return op

    @property
    def has_value(self) -> bool:
        """True when the request carried a ``value`` member."""
        return "value" in self.model_fields_set


class ScimPatchRequest(BaseModel):
    """A SCIM PatchOp message."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    schemas: list[str]
    operations: list[ScimPatchOperation] = Field(alias="Operations")


def canonical_field(path: str) -> CanonicalField:
    """Map a PATCH path, in any known spelling, to its canonical field."""
    key = re.sub(r"\s+", " ", path.strip().lower())
    if key.startswith(_USER_SCHEMA_PREFIX):
        key = key[len(_USER_SCHEMA_PREFIX) :]
    return PATH_SPELLINGS.get(key, CanonicalField.UNKNOWN)


def parse_full_name(full_name: Any) -> tuple[str, str]:
    """Split a display name into first and last name.

    The final whitespace-delimited token is the last name; everything before
    it is the first name.

    Examples:
        >>> parse_full_name("Mary Ann Smith")
        ('Mary Ann', 'Smith')
        >>> parse_full_name("Cher")
        ('Cher', '')
    """
    if not isinstance(full_name, str):
        return "", ""
    parts = full_name.split()
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return " ".join(parts[:-1]), parts[-1]


def _status_from_active(value: Any) -> UserStatus | None:
    if isinstance(value, str):
        value = {"true": True, "false": False}.get(value.strip().lower())
    if value is True:
        return UserStatus.ACTIVE
    if value is False:
        return UserStatus.TERMINATED
    return None


def apply_patch_operations(operations: Sequence[ScimPatchOperation]) -> dict[str, Any]:
    """Fold PATCH operations into a flat user-service update.

    Only ``Add`` and ``Replace`` mutate; ``Remove`` and unknown paths are
    skipped. Operations apply in order, so a later write to the same field
    wins.
    """
    update: dict[str, Any] = {}
    for operation in operations:
        if operation.op not in (SCIMPatchOp.ADD, SCIMPatchOp.REPLACE):
            continue

        field = canonical_field(operation.path)
        if field is CanonicalField.UNKNOWN:
            logger.debug("scim_patch_path_ignored", path=operation.path)
            continue

        if field is CanonicalField.DISPLAY_NAME:
            if operation.value:
                update["first_name"], update["last_name"] = parse_full_name(operation.value)
            continue

        if field is CanonicalField.ACTIVE:
            status = _status_from_active(operation.value)
            if status is None:
                logger.debug("scim_patch_active_ignored", value=operation.value)
                continue
            update["status"] = int(status)
            continue

        update[INTERNAL_FIELDS[field]] = operation.value
    return update


def restrict_update(update: dict[str, Any]) -> dict[str, Any]:
    """Keep only the fields a PATCH is allowed to change."""
    return {key: update[key] for key in ALLOWED_UPDATE_FIELDS if key in update}


def parse_patch_request(body: Any) -> ScimPatchRequest | Failure:
    """Validate a PATCH body's envelope shape."""
    try:
        return ScimPatchRequest.model_validate(body)
    except ValidationError as e:
        issue = e.errors()[0]
        location = ".".join(str(part) for part in issue["loc"])
        prefix = f"{location} - " if location else ""
        return Failure(
            ErrorKind.INVALID_REQUEST,
            f"Invalid SCIM PATCH request: {prefix}{issue['msg']}",
        )


def validate_operations(operations: Sequence[ScimPatchOperation]) -> Failure | None:
    """Check each operation is complete enough to interpret."""
    if not operations:
        return Failure(
            ErrorKind.INVALID_REQUEST, "Operations array is required and must not be empty"
        )
    for operation in operations:
        if not operation.path:
            return Failure(ErrorKind.INVALID_REQUEST, "Operation path is required")
        if operation.op is SCIMPatchOp.REPLACE and not operation.has_value:
            return Failure(ErrorKind.INVALID_REQUEST, "Replace operation requires a value")
    return None
