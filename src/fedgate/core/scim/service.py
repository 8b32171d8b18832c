"""SCIM 2.0 Users operations for one authenticated organization.

Every operation returns a ``ScimResponse`` carrying the status code and the
SCIM body, so the HTTP layer only serializes. User-service faults propagate
as ``UserServiceError`` and are answered by the route's catch-all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fedgate.core.errors import ErrorKind, Failure, UserServiceError
from fedgate.core.interfaces import UserService
from fedgate.core.scim.discovery import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from fedgate.core.scim.filters import compile_filter, point_lookup_value, project_user
from fedgate.core.scim.patch import (
    apply_patch_operations,
    parse_patch_request,
    restrict_update,
    validate_operations,
)
from fedgate.core.scim.schemas import SCIMError, SCIMListResponse, SCIMUser
from fedgate.core.sso.provisioner import new_user_info
from fedgate.core.types import AccountInfo, User, UserAttributes, UserRole, UserStatus

logger = structlog.get_logger()

_SCIM_TYPES = {
    ErrorKind.INVALID_FILTER: "invalidFilter",
    ErrorKind.INVALID_REQUEST: "invalidValue",
    ErrorKind.CONFLICT: "uniqueness",
}


@dataclass(frozen=True)
class ScimResponse:
    """Status code and body of a SCIM answer. ``body`` is None for 204."""

    status_code: int
    body: dict[str, Any] | None = None


@dataclass(frozen=True)
class Pagination:
    """1-based SCIM page window."""

    start_index: int = 1
    count: int = DEFAULT_PAGE_SIZE

    def apply(self, items: list[Any]) -> list[Any]:
        """Slice ``items`` to this page."""
        offset = self.start_index - 1
        return items[offset : offset + self.count]


class ScimNameRequest(BaseModel):
    """``name`` member of a SCIM user body."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    given_name: str | None = Field(default=None, alias="givenName")
    family_name: str | None = Field(default=None, alias="familyName")


class ScimEmailRequest(BaseModel):
    """One ``emails`` entry of a SCIM user body."""

    model_config = ConfigDict(extra="ignore")

    value: str
    type: str | None = None
    primary: bool = False


class ScimUserRequest(BaseModel):
    """Body of ``POST /Users`` and ``PUT /Users/{id}``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_name: str | None = Field(default=None, alias="userName")
    name: ScimNameRequest | None = None
    emails: list[ScimEmailRequest] = Field(default_factory=list)
    active: bool | None = None
    external_id: str | None = Field(default=None, alias="externalId")

    @property
    def email(self) -> str | None:
        """Primary email if flagged, else the first email, else ``userName``."""
        for entry in self.emails:
            if entry.primary and entry.value:
                return entry.value
        if self.emails and self.emails[0].value:
            return self.emails[0].value
        return self.user_name or None

    @property
    def first_name(self) -> str:
        """Given name, or empty."""
        return (self.name.given_name if self.name else None) or ""

    @property
    def last_name(self) -> str:
        """Family name, or empty."""
        return (self.name.family_name if self.name else None) or ""

    @property
    def status(self) -> UserStatus:
        """Status written by create and replace."""
        return UserStatus.SUSPENDED if self.active is False else UserStatus.ACTIVE


def scim_error(status_code: int, detail: str, scim_type: str | None = None) -> ScimResponse:
    """Build a SCIM error answer."""
    return ScimResponse(
        status_code, SCIMError(status=status_code, detail=detail, scim_type=scim_type).to_dict()
    )


def failure_response(failure: Failure) -> ScimResponse:
    """Render a ``Failure`` as a SCIM error answer."""
    return scim_error(failure.status_code, failure.message, _SCIM_TYPES.get(failure.kind))


def parse_pagination(start_index: str | None, count: str | None) -> Pagination | Failure:
    """Parse ``startIndex``/``count`` query values.

    ``startIndex`` defaults to 1 and must be at least 1; ``count`` defaults to
    50 and must lie in 1..500.
    """
    try:
        start = int(start_index) if start_index not in (None, "") else 1
        size = int(count) if count not in (None, "") else DEFAULT_PAGE_SIZE
    except ValueError:
        return Failure(ErrorKind.INVALID_REQUEST, "startIndex and count must be integers")
    if start < 1:
        return Failure(ErrorKind.INVALID_REQUEST, "startIndex must be >= 1")
    if size < 1:
        return Failure(ErrorKind.INVALID_REQUEST, "count must be >= 1")
    if size > MAX_PAGE_SIZE:
        return Failure(ErrorKind.INVALID_REQUEST, f"count cannot exceed {MAX_PAGE_SIZE}")
    return Pagination(start, size)


def _parse_user_request(body: Any) -> ScimUserRequest | Failure:
    try:
        request = ScimUserRequest.model_validate(body)
    except ValidationError as e:
        issue = e.errors()[0]
        location = ".".join(str(part) for part in issue["loc"])
        prefix = f"{location} - " if location else ""
        return Failure(ErrorKind.INVALID_REQUEST, f"Invalid SCIM user: {prefix}{issue['msg']}")
    if not request.email:
        return Failure(ErrorKind.INVALID_REQUEST, "Missing required fields: userName or emails")
    return request


class ScimUserService:
    """SCIM Users resource backed by the user service."""

    def __init__(self, user_service: UserService, base_url: str | None = None) -> None:
        """Initialize the service.

        Args:
            user_service: User-service client.
            base_url: Absolute SCIM root (``.../scim/v2``) for ``meta.location``.
        """
        self._users = user_service
        self._base_url = base_url

    def _format(self, user: User) -> dict[str, Any]:
        return SCIMUser.from_user(user, self._base_url).to_dict()

    async def list_users(
        self, account: AccountInfo, filter_expr: str | None, pagination: Pagination
    ) -> ScimResponse:
        """List the organization's users, optionally filtered.

        A simple ``<email attribute> eq "<value>"`` filter is answered with a
        single lookup; any other filter scans the organization. A lookup that
        finds nothing is an empty list. Otherwise ``totalResults`` is the
        organization's user count, fetched separately from the page.
        """
        org_id = account.organization.id
        filter_expr = (filter_expr or "").strip()

        predicate = None
        if filter_expr:
            predicate = compile_filter(filter_expr)
            if isinstance(predicate, Failure):
                logger.info("scim_filter_rejected", org_id=org_id, filter=filter_expr)
                return failure_response(predicate)

        lookup = point_lookup_value(filter_expr) if filter_expr else None
        if lookup is not None:
            user = await self._users.get_user(lookup)
            candidates = [user] if user is not None and user.user_account == org_id else []
        else:
            candidates = await self._users.list_users(org_id)

        matched = candidates
        if predicate is not None:
            matched = [u for u in candidates if predicate(project_user(u))]

        if lookup is not None and not matched:
            logger.info("scim_point_lookup_miss", org_id=org_id, filter=filter_expr)
            return ScimResponse(
                200,
                SCIMListResponse(
                    total_results=0, resources=[], start_index=pagination.start_index
                ).to_dict(),
            )

        total = await self._users.count_users(org_id)
        page = pagination.apply(matched)
        logger.info(
            "scim_users_listed",
            org_id=org_id,
            filter=filter_expr or None,
            point_lookup=lookup is not None,
            returned=len(page),
            total=total,
        )
        return ScimResponse(
            200,
            SCIMListResponse(
                total_results=total,
                resources=[self._format(u) for u in page],
                start_index=pagination.start_index,
                items_per_page=len(page),
            ).to_dict(),
        )

    async def get_user(self, account: AccountInfo, user_id: str) -> ScimResponse:
        """Fetch one user of the organization by id (email)."""
        user = await self._users.get_user(user_id)
        if user is None or user.user_account != account.organization.id:
            return scim_error(404, f"User not found: {user_id}")
        return ScimResponse(200, self._format(user))

    async def create_user(self, account: AccountInfo, body: Any) -> ScimResponse:
        """Create a user; an existing email is a conflict, never an upsert."""
        request = _parse_user_request(body)
        if isinstance(request, Failure):
            return failure_response(request)

        org_id = account.organization.id
        email = request.email
        if await self._users.get_user(email) is not None:
            logger.info("scim_user_conflict", org_id=org_id, email=email)
            return failure_response(
                Failure(ErrorKind.CONFLICT, f"User with email {email} already exists")
            )

        attrs = UserAttributes(
            email=email, first_name=request.first_name, last_name=request.last_name
        )
        await self._users.create_user(
            new_user_info(attrs, org_id, account.owner, request.status), signup=True
        )
        logger.info("scim_user_created", org_id=org_id, email=email, status=request.status.name)

        user = User(
            userid=email,
            email=email,
            first_name=attrs.first_name,
            last_name=attrs.last_name,
            status=request.status,
            user_role=UserRole.MEMBER,
            user_account=org_id,
        )
        return ScimResponse(201, self._format(user))

    async def replace_user(self, account: AccountInfo, user_id: str, body: Any) -> ScimResponse:
        """Overwrite a user's names and status from a full representation."""
        request = _parse_user_request(body)
        if isinstance(request, Failure):
            return failure_response(request)

        existing = await self._users.get_user(request.email)
        if existing is None:
            return scim_error(404, f"User not found: {user_id}")
        if existing.user_account != account.organization.id:
            return scim_error(400, "user not in organization")

        update: dict[str, Any] = {
            "email": request.email,
            "first_name": request.first_name,
            "last_name": request.last_name,
            "status": int(request.status),
        }
        update = {k: v for k, v in update.items() if _current(existing, k) != v}
        if not update:
            return ScimResponse(200, self._format(existing))

        updated = await self._users.update_user(existing.userid, update)
        logger.info("scim_user_replaced", email=existing.email, fields=sorted(update))
        return ScimResponse(200, self._format(updated))

    async def patch_user(self, account: AccountInfo, user_id: str, body: Any) -> ScimResponse:
        """Apply a SCIM PatchOp message to a user of the organization."""
        request = parse_patch_request(body)
        if isinstance(request, Failure):
            return failure_response(request)
        invalid = validate_operations(request.operations)
        if invalid is not None:
            return failure_response(invalid)

        update = restrict_update(apply_patch_operations(request.operations))

        user = await self._users.get_user(user_id)
        if user is None:
            return scim_error(404, f"User not found: {user_id}")
        if user.user_account != account.organization.id:
            logger.warning(
                "scim_cross_org_patch_rejected",
                org_id=account.organization.id,
                email=user.email,
            )
            return scim_error(400, "user not in organization")

        if not update:
            return ScimResponse(200, self._format(user))

        updated = await self._users.update_user(user.userid, update)
        logger.info("scim_user_patched", email=user.email, fields=sorted(update))
        return ScimResponse(200, self._format(updated))

    async def delete_user(
        self, account: AccountInfo, body: Any, external_id: str | None = None
    ) -> ScimResponse:
        """Deprovision a user by marking it TERMINATED.

        The target comes from ``externalId`` in the body, else the query.
        """
        if isinstance(body, dict) and body.get("externalId"):
            external_id = body["externalId"]
        if not external_id:
            return scim_error(400, "externalId is required")

        user = await self._users.get_user(external_id)
        if user is None:
            return scim_error(404, f"User not found: {external_id}")
        if user.user_account != account.organization.id:
            return scim_error(400, "user not in organization")

        try:
            await self._users.update_user(user.userid, {"status": int(UserStatus.TERMINATED)})
        except UserServiceError as e:
            logger.error("scim_user_delete_failed", email=user.email, error=str(e))
            return scim_error(500, "Failed to delete user")

        logger.info("scim_user_deactivated", org_id=account.organization.id, email=user.email)
        return ScimResponse(204)


def _current(user: User, field: str) -> Any:
    value = getattr(user, field)
    return int(value) if field == "status" else value
