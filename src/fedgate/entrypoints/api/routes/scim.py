"""SCIM 2.0 provisioning endpoints.

Implements RFC 7643 (SCIM Core Schema) and RFC 7644 (SCIM Protocol) for the
Users resource. Every answer, errors included, is ``application/scim+json``.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from fedgate.core.errors import Failure
from fedgate.core.interfaces import UserService
from fedgate.core.scim import (
    SCIM_CONTENT_TYPE,
    ScimResponse,
    ScimUserService,
    failure_response,
    parse_pagination,
    schemas_document,
    scim_error,
    service_provider_config,
)
from fedgate.core.types import AccountInfo
from fedgate.entrypoints.api.deps import Settings, get_settings, get_user_service
from fedgate.entrypoints.api.middleware import verify_scim_token

logger = structlog.get_logger()

router = APIRouter(prefix="/scim/v2", tags=["scim"])

ScimAccount = Annotated[AccountInfo | Failure, Depends(verify_scim_token)]


def get_scim_service(
    user_service: Annotated[UserService, Depends(get_user_service)],
    app_settings: Annotated[Settings, Depends(get_settings)],
) -> ScimUserService:
    """Build the SCIM service for this request."""
    return ScimUserService(user_service, app_settings.scim_base_url)


ScimService = Annotated[ScimUserService, Depends(get_scim_service)]


def scim_response(result: ScimResponse) -> Response:
    """Serialize a ``ScimResponse`` with the SCIM media type."""
    if result.body is None:
        return Response(status_code=result.status_code)
    return JSONResponse(
        content=result.body, status_code=result.status_code, media_type=SCIM_CONTENT_TYPE
    )


async def _handle(event: str, action: Callable[[], Awaitable[ScimResponse]]) -> Response:
    try:
        result = await action()
    except Exception:
        logger.exception(event)
        result = scim_error(500, "Internal server error")
    return scim_response(result)


async def _read_json(request: Request, required: bool = True) -> Any | ScimResponse:
    raw = await request.body()
    if not raw.strip():
        return scim_error(400, "Request body is required") if required else {}
    try:
        return json.loads(raw)
    except ValueError:
        return scim_error(400, "Request body is not valid JSON")


# Discovery


@router.get("/ServiceProviderConfig")
async def get_service_provider_config(
    app_settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    """Advertise supported SCIM features."""
    return scim_response(ScimResponse(200, service_provider_config(app_settings.scim_base_url)))


@router.get("/Schemas")
async def get_schemas(app_settings: Annotated[Settings, Depends(get_settings)]) -> Response:
    """Describe the User schema."""
    return scim_response(ScimResponse(200, schemas_document(app_settings.scim_base_url)))


# Users


@router.get("/Users")
async def list_users(
    account: ScimAccount,
    service: ScimService,
    filter: Annotated[str | None, Query()] = None,
    start_index: Annotated[str | None, Query(alias="startIndex")] = None,
    count: Annotated[str | None, Query()] = None,
) -> Response:
    """List users (SCIM 2.0).

    Args:
        account: Organization bound to the bearer token.
        service: SCIM service.
        filter: SCIM filter expression.
        start_index: 1-based start index for pagination.
        count: Maximum number of results.

    Returns:
        SCIM list response.
    """
    if isinstance(account, Failure):
        return scim_response(failure_response(account))
    pagination = parse_pagination(start_index, count)
    if isinstance(pagination, Failure):
        return scim_response(failure_response(pagination))
    return await _handle(
        "scim_list_users_failed", lambda: service.list_users(account, filter, pagination)
    )


@router.post("/Users")
async def create_user(request: Request, account: ScimAccount, service: ScimService) -> Response:
    """Create a user (SCIM 2.0)."""
    if isinstance(account, Failure):
        return scim_response(failure_response(account))
    body = await _read_json(request)
    if isinstance(body, ScimResponse):
        return scim_response(body)
    return await _handle("scim_create_user_failed", lambda: service.create_user(account, body))


@router.get("/Users/{user_id}")
async def get_user(user_id: str, account: ScimAccount, service: ScimService) -> Response:
    """Get a user by id (SCIM 2.0)."""
    if isinstance(account, Failure):
        return scim_response(failure_response(account))
    return await _handle("scim_get_user_failed", lambda: service.get_user(account, user_id))


@router.put("/Users/{user_id}")
async def replace_user(
    user_id: str, request: Request, account: ScimAccount, service: ScimService
) -> Response:
    """Replace a user (SCIM 2.0)."""
    if isinstance(account, Failure):
        return scim_response(failure_response(account))
    body = await _read_json(request)
    if isinstance(body, ScimResponse):
        return scim_response(body)
    return await _handle(
        "scim_replace_user_failed", lambda: service.replace_user(account, user_id, body)
    )


@router.patch("/Users/{user_id}")
async def patch_user(
    user_id: str, request: Request, account: ScimAccount, service: ScimService
) -> Response:
    """Partially update a user (SCIM 2.0)."""
    if isinstance(account, Failure):
        return scim_response(failure_response(account))
    body = await _read_json(request)
    if isinstance(body, ScimResponse):
        return scim_response(body)
    return await _handle(
        "scim_patch_user_failed", lambda: service.patch_user(account, user_id, body)
    )


@router.delete("/Users/{user_id}")
async def delete_user(
    user_id: str,
    request: Request,
    account: ScimAccount,
    service: ScimService,
    external_id: Annotated[str | None, Query(alias="externalId")] = None,
) -> Response:
    """Deprovision a user (SCIM 2.0).

    The user is addressed by ``externalId`` from the body or query string.
    """
    if isinstance(account, Failure):
        return scim_response(failure_response(account))
    body = await _read_json(request, required=False)
    if isinstance(body, ScimResponse):
        body = {}
    logger.debug("scim_delete_requested", path_id=user_id, external_id=external_id)
    return await _handle(
        "scim_delete_user_failed", lambda: service.delete_user(account, body, external_id)
    )
