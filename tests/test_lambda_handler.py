"""
Tests for the AWS Lambda contact flow entry point.
"""

import pytest
from unittest.mock import AsyncMock, Mock, patch

from voice_router import lambda_handler
from voice_router.models.internal_models import Branch
from voice_router.services.call_router import RecordLookupError


def connect_event(address="+15555550100"):
    return {
        "Name": "ContactFlowEvent",
        "Details": {
            "ContactData": {
                "ContactId": "c0ffee00-1111-2222-3333-444455556666",
                "CustomerEndpoint": {"Address": address, "Type": "TELEPHONE_NUMBER"}
            },
            "Parameters": {}
        }
    }


@pytest.fixture
def lambda_context():
    context = Mock()
    context.aws_request_id = "req-0001"
    return context


class TestLambdaHandler:
    """Test cases for handler()."""

    @patch('voice_router.lambda_handler.DatabaseManager')
    @patch('voice_router.lambda_handler.CallStateRouter')
    def test_handler_returns_branch_map(self, mock_router_cls, mock_db_cls, lambda_context):
        """Test that the handler returns the flat Branch map."""
        mock_router_cls.return_value.route = AsyncMock(return_value=Branch.ENROLL_FROM_SCRATCH)

        result = lambda_handler.handler(connect_event(), lambda_context)

        assert result == {"Branch": "enrollfromscratch"}
        mock_router_cls.return_value.route.assert_awaited_once_with("+15555550100")
        mock_router_cls.assert_called_once_with(
            enrollment_provider=lambda_handler.enrollment_provider,
            db_manager=mock_db_cls.return_value
        )

    @patch('voice_router.lambda_handler.DatabaseManager')
    @patch('voice_router.lambda_handler.CallStateRouter')
    def test_handler_opens_store_per_invocation(self, mock_router_cls, mock_db_cls, lambda_context):
        mock_router_cls.return_value.route = AsyncMock(return_value=Branch.VERIFY)

        lambda_handler.handler(connect_event(), lambda_context)
        lambda_handler.handler(connect_event(), lambda_context)

        assert mock_db_cls.call_count == 2

    @patch('voice_router.lambda_handler.DatabaseManager')
    @patch('voice_router.lambda_handler.CallStateRouter')
    def test_handler_propagates_lookup_failure(self, mock_router_cls, mock_db_cls, lambda_context):
        """Test that a lookup failure surfaces as an invocation error."""
        mock_router_cls.return_value.route = AsyncMock(side_effect=RecordLookupError("store unreachable"))

        with pytest.raises(RecordLookupError):
            lambda_handler.handler(connect_event(), lambda_context)

    @patch('voice_router.lambda_handler.CallStateRouter')
    def test_handler_rejects_event_without_caller(self, mock_router_cls, lambda_context):
        with pytest.raises(ValueError):
            lambda_handler.handler(connect_event(address=""), lambda_context)

        mock_router_cls.assert_not_called()

    @patch('voice_router.lambda_handler.CallStateRouter')
    def test_handler_rejects_malformed_event(self, mock_router_cls, lambda_context):
        with pytest.raises(ValueError):
            lambda_handler.handler({"Details": {}}, lambda_context)

        mock_router_cls.assert_not_called()

    @patch('voice_router.lambda_handler.DatabaseManager')
    def test_handler_end_to_end_with_real_router(self, mock_db_cls, lambda_context):
        """Test the real router behind the handler with a mocked store."""
        identities = Mock()
        identities.get_identity = AsyncMock(return_value=None)
        identities.create_identity = AsyncMock()
        mock_db_cls.return_value.identities = identities

        with patch.object(lambda_handler.enrollment_provider, 'create_subject',
                          AsyncMock(return_value="usr_lambda01")):
            result = lambda_handler.handler(connect_event(), lambda_context)

        assert result == {"Branch": "enrollfromscratch"}
        created = identities.create_identity.call_args[0][0]
        assert created.info.user_id == "usr_lambda01"
        assert created.info.enrolling is True
