"""API route modules."""

from fastapi import APIRouter

from fedgate.entrypoints.api.routes.saml import router as saml_router
from fedgate.entrypoints.api.routes.scim import router as scim_router

# Create main API router
api_router = APIRouter()

api_router.include_router(saml_router)
api_router.include_router(scim_router)

__all__ = ["api_router"]
