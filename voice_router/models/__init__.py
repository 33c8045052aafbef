"""Data models for the voice call router."""

from .api_models import (
    ConnectEvent,
    ConnectResponse,
    HealthResponse,
    ErrorResponse
)
from .internal_models import (
    Branch,
    IdentityInfo,
    IdentityRecord
)

__all__ = [
    "ConnectEvent",
    "ConnectResponse",
    "HealthResponse",
    "ErrorResponse",
    "Branch",
    "IdentityInfo",
    "IdentityRecord"
]
