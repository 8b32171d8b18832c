"""FastAPI application definition."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fedgate import __version__

from .deps import lifespan, settings
from .logs import configure_logging
from .routes import api_router

configure_logging(settings.log_level)

app = FastAPI(
    title="fedgate",
    description="SAML single sign-on and SCIM 2.0 provisioning gateway",
    version=__version__,
    lifespan=lifespan,
    redirect_slashes=False,  # IdPs do not follow redirects on SCIM calls
)

# CORS middleware for the login page
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.app_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
