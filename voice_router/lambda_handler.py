"""
AWS Lambda entry point for Amazon Connect contact flows.

Connect invokes the function synchronously and branches on the flat string
map it returns. Raising lets the contact flow take its error branch.
"""

import asyncio
from typing import Any, Dict

import structlog

from voice_router.clients.supabase_client import DatabaseManager
from voice_router.clients.voiceit_client import get_enrollment_provider
from voice_router.config import settings
from voice_router.models.api_models import ConnectEvent, ConnectResponse
from voice_router.observability import configure_logging
from voice_router.services.call_router import CallStateRouter

configure_logging(settings.log_level)
logger = structlog.get_logger()

# Created at cold start and reused by every warm invocation
enrollment_provider = get_enrollment_provider()


def handler(event: Dict[str, Any], context: Any) -> Dict[str, str]:
    """
    Route one contact flow invocation.

    Args:
        event: Raw Connect contact flow event
        context: Lambda context (only the request id is used, for logging)

    Returns:
        ``{"Branch": "<label>"}``

    Raises:
        ValueError: If the event carries no caller phone number
        RecordLookupError: If the identity record cannot be read
    """
    connect_event = ConnectEvent.model_validate(event)
    correlation_id = connect_event.contact_id or getattr(context, "aws_request_id", "unknown")

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

    call_router = CallStateRouter(
        enrollment_provider=enrollment_provider,
        db_manager=DatabaseManager()
    )

    try:
        branch = asyncio.run(call_router.route(connect_event.phone_number))
    except Exception as e:
        logger.error("Contact flow routing failed", error=str(e), error_type=type(e).__name__)
        raise

    logger.info("Contact flow routed", phone=connect_event.phone_number, branch=branch.label)
    return ConnectResponse.from_branch(branch).to_wire()
