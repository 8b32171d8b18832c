"""Mock objects for testing."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from fedgate.core.interfaces import UserService


@pytest.fixture
def mock_user_service() -> MagicMock:
    """User service whose every call succeeds with an empty answer."""
    service = MagicMock(spec=UserService)
    service.get_user = AsyncMock(return_value=None)
    service.create_user = AsyncMock(return_value=None)
    service.update_user = AsyncMock()
    service.create_api_key = AsyncMock(return_value="new-key")
    service.list_users = AsyncMock(return_value=[])
    service.count_users = AsyncMock(return_value=0)
    service.get_account_by_id = AsyncMock(return_value=None)
    service.get_account_by_domain = AsyncMock(return_value=None)
    service.get_account_by_scim_token = AsyncMock(return_value=None)
    service.create_session = AsyncMock(return_value="sess-1")
    return service


@pytest.fixture
def mock_validator(raw_attributes: dict[str, Any]) -> MagicMock:
    """Assertion validator that accepts every response."""
    validator = MagicMock()
    validator.validate = MagicMock(return_value=raw_attributes)
    return validator
