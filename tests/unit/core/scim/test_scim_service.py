"""Tests for the SCIM Users service."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from fedgate.core.errors import ErrorKind, Failure, UserServiceError
from fedgate.core.scim.schemas import SCIM_PATCH_SCHEMA, SCIM_USER_SCHEMA
from fedgate.core.scim.service import Pagination, ScimUserService, parse_pagination
from fedgate.core.types import AccountInfo, UserStatus
from tests.fixtures.domain_objects import ORG_ID, OWNER, make_account, make_user

BASE = "https://app.acme.com/api/scim/v2"


def _patch(*operations: dict[str, Any]) -> dict[str, Any]:
    return {"schemas": [SCIM_PATCH_SCHEMA], "Operations": list(operations)}


@pytest.fixture
def scim_account() -> AccountInfo:
    """Organization the SCIM token belongs to."""
    return make_account()


@pytest.fixture
def service(mock_user_service: MagicMock) -> ScimUserService:
    """SCIM service over the mock user service."""
    return ScimUserService(mock_user_service, BASE)


class TestParsePagination:
    """Tests for parse_pagination."""

    def test_defaults(self) -> None:
        """Missing values fall back to 1 and 50."""
        assert parse_pagination(None, None) == Pagination(1, 50)
        assert parse_pagination("", "") == Pagination(1, 50)

    def test_explicit(self) -> None:
        """Numeric strings parse."""
        assert parse_pagination("3", "500") == Pagination(3, 500)

    @pytest.mark.parametrize(
        ("start_index", "count", "message"),
        [
            ("x", None, "startIndex and count must be integers"),
            (None, "1.5", "startIndex and count must be integers"),
            ("0", None, "startIndex must be >= 1"),
            (None, "0", "count must be >= 1"),
            (None, "501", "count cannot exceed 500"),
        ],
    )
    def test_invalid(self, start_index: str | None, count: str | None, message: str) -> None:
        """Out-of-range values are INVALID_REQUEST."""
        result = parse_pagination(start_index, count)

        assert isinstance(result, Failure)
        assert result.kind is ErrorKind.INVALID_REQUEST
        assert result.message == message

    def test_apply_is_one_based(self) -> None:
        """startIndex 2, count 2 is the second and third item."""
        assert Pagination(2, 2).apply([1, 2, 3, 4, 5]) == [2, 3]
        assert Pagination(6, 2).apply([1, 2, 3, 4, 5]) == []


class TestListUsers:
    """Tests for ScimUserService.list_users."""

    @pytest.mark.asyncio
    async def test_unfiltered_page(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """totalResults is the org's count; the page is a 1-based window."""
        users = [make_user(f"u{i}@acme.com") for i in range(5)]
        mock_user_service.list_users.return_value = users
        mock_user_service.count_users.return_value = 5

        response = await service.list_users(scim_account, None, Pagination(2, 2))

        assert response.status_code == 200
        body = response.body
        assert body["totalResults"] == 5
        assert body["startIndex"] == 2
        assert body["itemsPerPage"] == 2
        assert [r["id"] for r in body["Resources"]] == ["u1@acme.com", "u2@acme.com"]
        mock_user_service.list_users.assert_awaited_once_with(ORG_ID)

    @pytest.mark.asyncio
    async def test_point_lookup(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """A userName eq filter is one lookup; the total is still the org count."""
        mock_user_service.get_user.return_value = make_user("alice@acme.com")
        mock_user_service.count_users.return_value = 7

        response = await service.list_users(
            scim_account, 'userName eq "alice@acme.com"', Pagination()
        )

        assert response.body["totalResults"] == 7
        assert response.body["itemsPerPage"] == 1
        assert response.body["Resources"][0]["userName"] == "alice@acme.com"
        mock_user_service.get_user.assert_awaited_once_with("alice@acme.com")
        mock_user_service.list_users.assert_not_called()
        mock_user_service.count_users.assert_awaited_once_with(ORG_ID)

    @pytest.mark.asyncio
    async def test_point_lookup_miss(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """An unknown user is an empty list with no count, not a 404."""
        mock_user_service.count_users.return_value = 7

        response = await service.list_users(
            scim_account, 'userName eq "ghost@acme.com"', Pagination()
        )

        assert response.status_code == 200
        assert response.body["totalResults"] == 0
        assert response.body["Resources"] == []
        mock_user_service.count_users.assert_not_called()

    @pytest.mark.asyncio
    async def test_point_lookup_other_org(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """Users of another organization are invisible."""
        mock_user_service.get_user.return_value = make_user("eve@acme.com", org_id="org-other")

        response = await service.list_users(
            scim_account, 'userName eq "eve@acme.com"', Pagination()
        )

        assert response.body["totalResults"] == 0

    @pytest.mark.asyncio
    async def test_full_filter(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """Other filters scan; totalResults is the org count, not the match count."""
        mock_user_service.list_users.return_value = [
            make_user("a@acme.com", first_name="Ann"),
            make_user("b@acme.com", first_name="Bo", status=UserStatus.SUSPENDED),
            make_user("c@acme.com", first_name="Cy"),
        ]
        mock_user_service.count_users.return_value = 3

        response = await service.list_users(scim_account, "active eq true", Pagination(1, 1))

        assert response.body["totalResults"] == 3
        assert response.body["itemsPerPage"] == 1
        assert response.body["Resources"][0]["id"] == "a@acme.com"
        mock_user_service.count_users.assert_awaited_once_with(ORG_ID)

    @pytest.mark.asyncio
    async def test_invalid_filter(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """Malformed filters are a 400 invalidFilter with no lookups."""
        response = await service.list_users(scim_account, "userName zz", Pagination())

        assert response.status_code == 400
        assert response.body["scimType"] == "invalidFilter"
        assert response.body["status"] == "400"
        mock_user_service.list_users.assert_not_called()


class TestGetUser:
    """Tests for ScimUserService.get_user."""

    @pytest.mark.asyncio
    async def test_found(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """Members are returned as SCIM users."""
        mock_user_service.get_user.return_value = make_user("alice@acme.com")

        response = await service.get_user(scim_account, "alice@acme.com")

        assert response.status_code == 200
        assert response.body["schemas"] == [SCIM_USER_SCHEMA]

    @pytest.mark.asyncio
    async def test_other_org_is_not_found(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """Cross-org reads look like missing users."""
        mock_user_service.get_user.return_value = make_user("eve@acme.com", org_id="org-other")

        response = await service.get_user(scim_account, "eve@acme.com")

        assert response.status_code == 404
        assert response.body["detail"] == "User not found: eve@acme.com"


class TestCreateUser:
    """Tests for ScimUserService.create_user."""

    BODY = {
        "schemas": [SCIM_USER_SCHEMA],
        "userName": "bob@acme.com",
        "name": {"givenName": "Bob", "familyName": "Builder"},
        "emails": [{"value": "bob@acme.com", "type": "work", "primary": True}],
        "active": True,
    }

    @pytest.mark.asyncio
    async def test_creates(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """New users are created in the org and returned with 201."""
        response = await service.create_user(scim_account, self.BODY)

        assert response.status_code == 201
        assert response.body["userName"] == "bob@acme.com"
        assert response.body["active"] is True
        info = mock_user_service.create_user.await_args.args[0]
        assert info["user_account"] == ORG_ID
        assert info["power_user"] == OWNER
        assert info["status"] == int(UserStatus.ACTIVE)
        assert mock_user_service.create_user.await_args.kwargs == {"signup": True}

    @pytest.mark.asyncio
    async def test_inactive_is_suspended(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """active false creates a suspended user."""
        response = await service.create_user(scim_account, {**self.BODY, "active": False})

        assert response.body["active"] is False
        info = mock_user_service.create_user.await_args.args[0]
        assert info["status"] == int(UserStatus.SUSPENDED)

    @pytest.mark.asyncio
    async def test_existing_email_conflicts(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """An existing email is a 409 and nothing is written."""
        mock_user_service.get_user.return_value = make_user("bob@acme.com")

        response = await service.create_user(scim_account, self.BODY)

        assert response.status_code == 409
        assert response.body["scimType"] == "uniqueness"
        assert response.body["detail"] == "User with email bob@acme.com already exists"
        mock_user_service.create_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_username_only(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """userName alone is enough."""
        response = await service.create_user(scim_account, {"userName": "solo@acme.com"})

        assert response.status_code == 201
        mock_user_service.get_user.assert_awaited_once_with("solo@acme.com")

    @pytest.mark.asyncio
    async def test_missing_identity(
        self, service: ScimUserService, scim_account: AccountInfo
    ) -> None:
        """Without userName or emails the request is rejected."""
        response = await service.create_user(scim_account, {"name": {"givenName": "X"}})

        assert response.status_code == 400
        assert response.body["detail"] == "Missing required fields: userName or emails"


class TestReplaceUser:
    """Tests for ScimUserService.replace_user."""

    BODY = {
        "userName": "alice@acme.com",
        "name": {"givenName": "Alice", "familyName": "Liddell"},
        "active": True,
    }

    @pytest.mark.asyncio
    async def test_only_changed_fields_are_sent(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """Unchanged fields are left out of the update."""
        mock_user_service.get_user.return_value = make_user(
            "alice@acme.com", first_name="Alice", last_name="Old"
        )
        mock_user_service.update_user.return_value = make_user(
            "alice@acme.com", first_name="Alice", last_name="Liddell"
        )

        response = await service.replace_user(scim_account, "alice@acme.com", self.BODY)

        assert response.status_code == 200
        assert response.body["name"]["familyName"] == "Liddell"
        mock_user_service.update_user.assert_awaited_once_with(
            "alice@acme.com", {"last_name": "Liddell"}
        )

    @pytest.mark.asyncio
    async def test_no_change(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """An identical representation writes nothing."""
        mock_user_service.get_user.return_value = make_user(
            "alice@acme.com", first_name="Alice", last_name="Liddell"
        )

        response = await service.replace_user(scim_account, "alice@acme.com", self.BODY)

        assert response.status_code == 200
        mock_user_service.update_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_other_org(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """Users of another organization cannot be replaced."""
        mock_user_service.get_user.return_value = make_user(
            "alice@acme.com", org_id="org-other"
        )

        response = await service.replace_user(scim_account, "alice@acme.com", self.BODY)

        assert response.status_code == 400
        mock_user_service.update_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing(self, service: ScimUserService, scim_account: AccountInfo) -> None:
        """Unknown users are 404."""
        response = await service.replace_user(scim_account, "alice@acme.com", self.BODY)

        assert response.status_code == 404


class TestPatchUser:
    """Tests for ScimUserService.patch_user."""

    @pytest.mark.asyncio
    async def test_deactivate(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """active false terminates the user."""
        mock_user_service.get_user.return_value = make_user("alice@acme.com")
        mock_user_service.update_user.return_value = make_user(
            "alice@acme.com", status=UserStatus.TERMINATED
        )

        response = await service.patch_user(
            scim_account,
            "alice@acme.com",
            _patch({"op": "Replace", "path": "active", "value": False}),
        )

        assert response.status_code == 200
        assert response.body["active"] is False
        mock_user_service.update_user.assert_awaited_once_with(
            "alice@acme.com", {"status": int(UserStatus.TERMINATED)}
        )

    @pytest.mark.asyncio
    async def test_remove_only_is_a_no_op(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """An empty update returns the current user unchanged."""
        mock_user_service.get_user.return_value = make_user("alice@acme.com", first_name="Alice")

        response = await service.patch_user(
            scim_account, "alice@acme.com", _patch({"op": "Remove", "path": "name.givenName"})
        )

        assert response.status_code == 200
        assert response.body["name"]["givenName"] == "Alice"
        mock_user_service.update_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_entra_display_name(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """displayName becomes first and last name."""
        mock_user_service.get_user.return_value = make_user("alice@acme.com")
        mock_user_service.update_user.return_value = make_user("alice@acme.com")

        await service.patch_user(
            scim_account,
            "alice@acme.com",
            _patch({"op": "Add", "path": "displayName", "value": "Alice P Liddell"}),
        )

        mock_user_service.update_user.assert_awaited_once_with(
            "alice@acme.com", {"first_name": "Alice P", "last_name": "Liddell"}
        )

    @pytest.mark.asyncio
    async def test_other_org(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """Cross-org patches are rejected."""
        mock_user_service.get_user.return_value = make_user("eve@acme.com", org_id="org-other")

        response = await service.patch_user(
            scim_account,
            "eve@acme.com",
            _patch({"op": "Replace", "path": "active", "value": False}),
        )

        assert response.status_code == 400
        assert response.body["detail"] == "user not in organization"
        mock_user_service.update_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_user(
        self, service: ScimUserService, scim_account: AccountInfo
    ) -> None:
        """Unknown users are 404."""
        response = await service.patch_user(
            scim_account,
            "ghost@acme.com",
            _patch({"op": "Replace", "path": "active", "value": True}),
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_envelope(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """Bad envelopes are rejected before any lookup."""
        response = await service.patch_user(scim_account, "alice@acme.com", _patch())

        assert response.status_code == 400
        assert response.body["scimType"] == "invalidValue"
        mock_user_service.get_user.assert_not_called()


class TestDeleteUser:
    """Tests for ScimUserService.delete_user."""

    @pytest.mark.asyncio
    async def test_soft_delete(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """Deleting terminates the user and answers 204."""
        mock_user_service.get_user.return_value = make_user("alice@acme.com")

        response = await service.delete_user(scim_account, {"externalId": "alice@acme.com"})

        assert response.status_code == 204
        assert response.body is None
        mock_user_service.update_user.assert_awaited_once_with(
            "alice@acme.com", {"status": int(UserStatus.TERMINATED)}
        )

    @pytest.mark.asyncio
    async def test_external_id_from_query(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """The query parameter is used when the body has none."""
        mock_user_service.get_user.return_value = make_user("alice@acme.com")

        response = await service.delete_user(scim_account, None, "alice@acme.com")

        assert response.status_code == 204
        mock_user_service.get_user.assert_awaited_once_with("alice@acme.com")

    @pytest.mark.asyncio
    async def test_external_id_required(
        self, service: ScimUserService, scim_account: AccountInfo
    ) -> None:
        """No target is a 400."""
        response = await service.delete_user(scim_account, {})

        assert response.status_code == 400
        assert response.body["detail"] == "externalId is required"

    @pytest.mark.asyncio
    async def test_update_failure(
        self,
        service: ScimUserService,
        mock_user_service: MagicMock,
        scim_account: AccountInfo,
    ) -> None:
        """A failed write is a 500."""
        mock_user_service.get_user.return_value = make_user("alice@acme.com")
        mock_user_service.update_user = AsyncMock(
            side_effect=UserServiceError("user/update", "HTTP 502")
        )

        response = await service.delete_user(scim_account, {"externalId": "alice@acme.com"})

        assert response.status_code == 500
        assert response.body["detail"] == "Failed to delete user"
