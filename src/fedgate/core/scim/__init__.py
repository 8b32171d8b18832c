"""SCIM 2.0 user provisioning (RFC 7643, RFC 7644)."""

from fedgate.core.scim.discovery import schemas_document, service_provider_config
from fedgate.core.scim.filters import compile_filter, point_lookup_value, project_user
from fedgate.core.scim.patch import (
    CanonicalField,
    ScimPatchOperation,
    ScimPatchRequest,
    apply_patch_operations,
    canonical_field,
    parse_full_name,
)
from fedgate.core.scim.schemas import (
    SCIM_CONTENT_TYPE,
    SCIMError,
    SCIMListResponse,
    SCIMName,
    SCIMPatchOp,
    SCIMUser,
    SCIMUserEmail,
)
from fedgate.core.scim.service import (
    Pagination,
    ScimResponse,
    ScimUserService,
    failure_response,
    parse_pagination,
    scim_error,
)

__all__ = [
    "SCIM_CONTENT_TYPE",
    "CanonicalField",
    "Pagination",
    "SCIMError",
    "SCIMListResponse",
    "SCIMName",
    "SCIMPatchOp",
    "SCIMUser",
    "SCIMUserEmail",
    "ScimPatchOperation",
    "ScimPatchRequest",
    "ScimResponse",
    "ScimUserService",
    "apply_patch_operations",
    "canonical_field",
    "compile_filter",
    "failure_response",
    "parse_full_name",
    "parse_pagination",
    "point_lookup_value",
    "project_user",
    "schemas_document",
    "scim_error",
    "service_provider_config",
]
