"""Request authentication dependencies."""

from fedgate.entrypoints.api.middleware.scim_auth import verify_scim_token

__all__ = ["verify_scim_token"]
