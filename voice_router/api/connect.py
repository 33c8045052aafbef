"""
Amazon Connect contact flow endpoints for call routing.
"""

import time
from datetime import datetime
from typing import Dict, Any, Optional

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from voice_router.clients.supabase_client import DatabaseManager
from voice_router.clients.voiceit_client import get_enrollment_provider
from voice_router.models.api_models import ConnectEvent, ConnectResponse, ErrorResponse
from voice_router.observability import trace_function, record_routing_metrics
from voice_router.services.call_router import CallStateRouter, RecordLookupError

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/connect", tags=["connect"])


def get_call_router() -> CallStateRouter:
    """Build a router with a fresh record store session for this call."""
    return CallStateRouter(
        enrollment_provider=get_enrollment_provider(),
        db_manager=DatabaseManager()
    )


def create_error_response(
    error_type: str,
    message: str,
    correlation_id: str,
    status_code: int = 500
) -> JSONResponse:
    """Create standardized error response."""
    error_response = ErrorResponse(
        error=error_type,
        message=message,
        correlation_id=correlation_id,
        timestamp=datetime.utcnow()
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json")
    )


def _correlation_id(http_request: Request, contact_id: Optional[str] = None) -> str:
    return (
        contact_id
        or getattr(http_request.state, "correlation_id", None)
        or http_request.headers.get("X-Contact-ID", "unknown")
    )


def _section(payload: Any, key: str) -> Dict[str, Any]:
    value = payload.get(key) if isinstance(payload, dict) else None
    return value if isinstance(value, dict) else {}


def extract_phone_from_connect_payload(payload: Dict[str, Any]) -> Optional[str]:
    """Extract the caller phone number from a raw contact flow event."""
    contact_data = _section(_section(payload, "Details"), "ContactData")
    endpoint = _section(contact_data, "CustomerEndpoint")
    address = endpoint.get("Address")

    if isinstance(address, str) and address.strip():
        return address.strip()

    logger.warning("Could not extract phone number from Connect payload", payload_keys=list(payload.keys()))
    return None


def extract_contact_id_from_connect_payload(payload: Dict[str, Any]) -> Optional[str]:
    contact_data = _section(_section(payload, "Details"), "ContactData")
    return contact_data.get("ContactId")


@router.post("/route", response_model=ConnectResponse, responses={503: {"model": ErrorResponse}})
@trace_function("connect_route_endpoint")
async def route_contact(
    event: ConnectEvent,
    http_request: Request,
    call_router: CallStateRouter = Depends(get_call_router)
):
    """
    Decide the next call flow step for an inbound caller.

    Reads the caller's identity record, applies the routing rules and
    returns the branch label the contact flow switches on.

    Args:
        event: Contact flow event carrying the caller's phone number
        http_request: HTTP request for correlation ID extraction
        call_router: Router bound to this call's record store session

    Returns:
        ConnectResponse with the single Branch key, or a 503 error body when
        the identity record cannot be read
    """
    correlation_id = _correlation_id(http_request, event.contact_id)
    phone = event.phone_number
    start_time = time.time()

    logger.info("Routing request received", phone=phone, correlation_id=correlation_id)

    try:
        branch = await call_router.route(phone)
    except RecordLookupError as e:
        logger.error(
            "Routing aborted, identity lookup failed",
            phone=phone,
            error=str(e),
            correlation_id=correlation_id
        )
        return create_error_response(
            "RecordStoreUnavailable",
            "Identity lookup failed; no routing decision was made",
            correlation_id,
            status_code=503
        )
    except ValueError as e:
        return create_error_response("ValidationError", str(e), correlation_id, status_code=422)

    processing_time = time.time() - start_time
    record_routing_metrics(branch.label, processing_time)

    logger.info(
        "Routing completed",
        phone=phone,
        branch=branch.label,
        process_time_ms=round(processing_time * 1000, 2),
        correlation_id=correlation_id
    )

    return ConnectResponse.from_branch(branch)


@router.post("/debug")
async def debug_connect_payload(request: Request) -> JSONResponse:
    """
    Debug endpoint to inspect contact flow payloads.

    Shows what the router would extract from an event without reading or
    writing any identity record.
    """
    correlation_id = _correlation_id(request)

    try:
        payload = await request.json()
    except ValueError as e:
        logger.error("Error in debug endpoint", error=str(e), correlation_id=correlation_id)
        return create_error_response("InvalidJSON", "Request body is not valid JSON", correlation_id, 400)

    if not isinstance(payload, dict):
        return create_error_response("InvalidPayload", "Expected a JSON object", correlation_id, 400)

    contact_data = _section(_section(payload, "Details"), "ContactData")
    debug_info = {
        "extracted_phone": extract_phone_from_connect_payload(payload),
        "extracted_contact_id": extract_contact_id_from_connect_payload(payload),
        "payload_structure": {
            "top_level_keys": list(payload.keys()),
            "details_keys": list(_section(payload, "Details").keys()),
            "contact_data_keys": list(contact_data.keys()),
        },
        "correlation_id": correlation_id,
        "timestamp": datetime.utcnow().isoformat()
    }

    logger.info("Connect payload debug", debug_info=debug_info)
    return JSONResponse(status_code=200, content=debug_info)
