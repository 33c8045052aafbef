"""
Tests for the Supabase identity repository.
"""

import pytest
from unittest.mock import Mock, MagicMock, AsyncMock, patch

from voice_router.clients.supabase_client import (
    DatabaseManager,
    IdentityRepository,
    RecordWriteError,
    SupabaseClient,
)
from voice_router.models.internal_models import IdentityInfo, IdentityRecord


PHONE = "+15555550100"


def make_result(data):
    result = Mock()
    result.data = data
    return result


class TestIdentityRepository:
    """Test cases for IdentityRepository."""

    @pytest.fixture
    def table(self):
        """Query builder returned by client.table(); every step chains to itself."""
        table = MagicMock()
        for step in ("select", "eq", "limit", "insert", "update"):
            getattr(table, step).return_value = table
        return table

    @pytest.fixture
    def supabase_client(self, table):
        client = Mock()
        client.client.table.return_value = table
        return client

    @pytest.fixture
    def repository(self, supabase_client):
        return IdentityRepository(supabase_client, table="connect_identities")

    @pytest.mark.asyncio
    async def test_get_identity_found(self, repository, supabase_client, table):
        """Test that a stored row maps onto the record shape."""
        table.execute.return_value = make_result([{
            "phone_number": PHONE,
            "user_id": "usr_abc123",
            "enrolling": False,
            "verifying": True,
            "num_enrollments": 3,
            "verified": True,
            "auth_time": "2024-05-01T12:00:00Z",
        }])

        record = await repository.get_identity(PHONE)

        supabase_client.client.table.assert_called_once_with("connect_identities")
        table.eq.assert_called_once_with("phone_number", PHONE)
        assert record == IdentityRecord(
            phone_number=PHONE,
            info=IdentityInfo(
                user_id="usr_abc123",
                enrolling=False,
                verifying=True,
                num_enrollments=3,
                verified=True,
                auth_time="2024-05-01T12:00:00Z",
            ),
        )

    @pytest.mark.asyncio
    async def test_get_identity_missing_returns_none(self, repository, table):
        """Test that no rows means the caller is unknown."""
        table.execute.return_value = make_result([])

        assert await repository.get_identity(PHONE) is None

    @pytest.mark.asyncio
    async def test_get_identity_with_null_columns(self, repository, table):
        """Test that a row with null columns is still a record."""
        table.execute.return_value = make_result([{
            "phone_number": "",
            "user_id": None,
            "enrolling": None,
            "verifying": None,
            "num_enrollments": None,
            "verified": None,
            "auth_time": None,
        }])

        record = await repository.get_identity(PHONE)

        assert record is not None
        assert record.phone_number == ""
        assert record.info == IdentityInfo(user_id="")

    @pytest.mark.asyncio
    async def test_get_identity_propagates_errors(self, repository, table):
        table.execute.side_effect = ConnectionError("connection refused")

        with pytest.raises(ConnectionError):
            await repository.get_identity(PHONE)

    @pytest.mark.asyncio
    async def test_create_identity(self, repository, table):
        """Test that every record field is written on creation."""
        record = IdentityRecord(
            phone_number=PHONE,
            info=IdentityInfo(user_id="usr_new", enrolling=True, auth_time="2024-05-01T12:00:00Z"),
        )
        table.execute.return_value = make_result([{"phone_number": PHONE}])

        result = await repository.create_identity(record)

        assert result is record
        table.insert.assert_called_once_with({
            "phone_number": PHONE,
            "user_id": "usr_new",
            "enrolling": True,
            "verifying": False,
            "num_enrollments": 0,
            "verified": False,
            "auth_time": "2024-05-01T12:00:00Z",
        })

    @pytest.mark.asyncio
    async def test_create_identity_failure(self, repository, table):
        table.execute.side_effect = Exception("duplicate key")
        record = IdentityRecord(phone_number=PHONE, info=IdentityInfo(user_id="usr_new"))

        with pytest.raises(RecordWriteError, match="Failed to create identity"):
            await repository.create_identity(record)

    @pytest.mark.asyncio
    async def test_create_identity_no_rows(self, repository, table):
        table.execute.return_value = make_result([])
        record = IdentityRecord(phone_number=PHONE, info=IdentityInfo(user_id="usr_new"))

        with pytest.raises(RecordWriteError, match="Insert returned no rows"):
            await repository.create_identity(record)

    @pytest.mark.asyncio
    async def test_update_identity_writes_only_named_fields(self, repository, table):
        """Test that partial updates send only the given columns."""
        table.execute.return_value = make_result([{"phone_number": PHONE}])

        written = await repository.update_identity(PHONE, {"verifying": True, "enrolling": False})

        assert written == {"verifying": True, "enrolling": False}
        table.update.assert_called_once_with({"verifying": True, "enrolling": False})
        table.eq.assert_called_once_with("phone_number", PHONE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["user_id", "phone_number", "unknown"])
    async def test_update_identity_rejects_immutable_fields(self, repository, table, field):
        with pytest.raises(ValueError, match="Cannot update identity fields"):
            await repository.update_identity(PHONE, {field: "x"})

        table.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_identity_no_match(self, repository, table):
        """Test that updating a vanished record is a write failure."""
        table.execute.return_value = make_result([])

        with pytest.raises(RecordWriteError, match="Update matched no identity"):
            await repository.update_identity(PHONE, {"verified": False})

    @pytest.mark.asyncio
    async def test_update_identity_failure(self, repository, table):
        table.execute.side_effect = Exception("timeout")

        with pytest.raises(RecordWriteError, match="Failed to update identity"):
            await repository.update_identity(PHONE, {"verified": False})


class TestSupabaseClient:
    """Test cases for SupabaseClient."""

    @patch('voice_router.clients.supabase_client.create_client')
    def test_client_created_lazily_once(self, mock_create_client):
        client = SupabaseClient(url="http://db.example.com", key="service-key")

        mock_create_client.assert_not_called()
        first = client.client
        second = client.client

        assert first is second
        mock_create_client.assert_called_once_with("http://db.example.com", "service-key")

    @pytest.mark.asyncio
    async def test_health_check_failure(self):
        client = SupabaseClient(url="http://db.example.com", key="service-key")
        client._client = Mock()
        client._client.table.side_effect = Exception("unreachable")

        assert await client.health_check("connect_identities") is False

    @pytest.mark.asyncio
    async def test_database_manager_health_check_uses_identity_table(self):
        supabase_client = Mock()
        supabase_client.health_check = AsyncMock(return_value=True)

        db = DatabaseManager(supabase_client=supabase_client, table="identities_test")

        assert await db.health_check() is True
        supabase_client.health_check.assert_awaited_once_with("identities_test")
