"""
Tests for the VoiceIt enrollment provider client.
"""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import voice_router.clients.voiceit_client as voiceit_module
from voice_router.clients.voiceit_client import (
    EnrollmentProviderError,
    VoiceItClient,
    get_enrollment_provider,
)


def make_response(payload):
    response = MagicMock()
    response.raise_for_status = MagicMock()
    response.json.return_value = payload
    return response


class TestVoiceItClient:
    """Test cases for VoiceItClient."""

    @pytest.fixture
    def client(self):
        return VoiceItClient(
            api_key="key_test",
            api_token="tok_test",
            base_url="https://api.voiceit.example/",
            timeout=5.0
        )

    def test_init(self, client):
        """Test client initialization."""
        assert client.base_url == "https://api.voiceit.example"
        assert client.timeout == 5.0
        assert client.is_configured

    def test_not_configured_without_token(self):
        assert not VoiceItClient(api_key="key_test", api_token="").is_configured

    @pytest.mark.asyncio
    async def test_create_subject_success(self, client):
        """Test that a SUCC response yields the new user id."""
        response = make_response({
            "message": "Created user with userId : usr_49b8f1c2",
            "status": 201,
            "userId": "usr_49b8f1c2",
            "responseCode": "SUCC"
        })

        with patch('httpx.AsyncClient') as mock_client:
            post = AsyncMock(return_value=response)
            mock_client.return_value.__aenter__.return_value.post = post

            user_id = await client.create_subject()

        assert user_id == "usr_49b8f1c2"
        post.assert_awaited_once_with(
            "https://api.voiceit.example/users",
            auth=("key_test", "tok_test")
        )
        mock_client.assert_called_once_with(timeout=5.0)

    @pytest.mark.asyncio
    async def test_create_subject_rejected(self, client):
        """Test that a non-success response code is an error."""
        response = make_response({"status": 401, "responseCode": "UNAC", "message": "Unauthorized"})

        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(return_value=response)

            with pytest.raises(EnrollmentProviderError, match="Subject creation rejected: UNAC"):
                await client.create_subject()

    @pytest.mark.asyncio
    async def test_create_subject_missing_user_id(self, client):
        response = make_response({"responseCode": "SUCC"})

        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(return_value=response)

            with pytest.raises(EnrollmentProviderError, match="Subject creation rejected"):
                await client.create_subject()

    @pytest.mark.asyncio
    async def test_create_subject_http_error(self, client):
        """Test that HTTP error statuses are wrapped."""
        request = httpx.Request("POST", "https://api.voiceit.example/users")
        response = make_response({})
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Server error", request=request, response=httpx.Response(503, request=request)
        )

        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(return_value=response)

            with pytest.raises(EnrollmentProviderError, match="HTTP error creating subject: 503"):
                await client.create_subject()

    @pytest.mark.asyncio
    async def test_create_subject_timeout(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                side_effect=httpx.ReadTimeout("timed out")
            )

            with pytest.raises(EnrollmentProviderError, match="Timeout creating subject"):
                await client.create_subject()

    @pytest.mark.asyncio
    async def test_create_subject_unexpected_error(self, client):
        with patch('httpx.AsyncClient') as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                side_effect=Exception("connection reset")
            )

            with pytest.raises(EnrollmentProviderError, match="Failed to create subject"):
                await client.create_subject()

    @pytest.mark.asyncio
    async def test_create_subject_without_credentials(self):
        """Test that missing credentials fail before any request is made."""
        client = VoiceItClient(api_key="", api_token="")

        with patch('httpx.AsyncClient') as mock_client:
            with pytest.raises(EnrollmentProviderError, match="credentials are not configured"):
                await client.create_subject()

            mock_client.assert_not_called()


class TestGlobalEnrollmentProvider:
    """Test cases for the process-wide provider."""

    def test_get_enrollment_provider_singleton(self):
        provider1 = get_enrollment_provider()
        provider2 = get_enrollment_provider()

        assert provider1 is provider2
        assert isinstance(provider1, VoiceItClient)

    @patch.object(voiceit_module, '_enrollment_provider', None)
    def test_get_enrollment_provider_creates_new(self):
        provider = get_enrollment_provider()

        assert isinstance(provider, VoiceItClient)
