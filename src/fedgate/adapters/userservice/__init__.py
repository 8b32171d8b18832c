"""Remote user-service adapter."""

from fedgate.adapters.userservice.client import UserServiceClient, hash_code, sign_payload

__all__ = ["UserServiceClient", "hash_code", "sign_payload"]
