"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .internal_models import Branch


class CustomerEndpointModel(BaseModel):
    """Caller endpoint as reported by Amazon Connect."""

    model_config = ConfigDict(populate_by_name=True)

    address: str = Field(..., alias="Address", description="Caller phone number in E.164 format")
    endpoint_type: Optional[str] = Field(None, alias="Type", description="Endpoint type, e.g. TELEPHONE_NUMBER")

    @field_validator('address')
    @classmethod
    def validate_address(cls, v):
        """Reject blank caller addresses."""
        if not v or not v.strip():
            raise ValueError('Customer endpoint address must not be empty')
        return v.strip()


class ContactDataModel(BaseModel):
    """Subset of the Connect contact data the router reads."""

    model_config = ConfigDict(populate_by_name=True)

    customer_endpoint: CustomerEndpointModel = Field(..., alias="CustomerEndpoint")
    contact_id: Optional[str] = Field(None, alias="ContactId", description="Connect contact identifier")


class ContactDetailsModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contact_data: ContactDataModel = Field(..., alias="ContactData")
    parameters: Dict[str, Any] = Field(default_factory=dict, alias="Parameters")


class ConnectEvent(BaseModel):
    """Request model for a contact flow invocation."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "Name": "ContactFlowEvent",
                "Details": {
                    "ContactData": {
                        "ContactId": "3c1d2a40-0d6b-4f1c-9b7e-4e1f0c2a9d11",
                        "CustomerEndpoint": {
                            "Address": "+15555550100",
                            "Type": "TELEPHONE_NUMBER"
                        }
                    },
                    "Parameters": {}
                }
            }
        }
    )

    details: ContactDetailsModel = Field(..., alias="Details")
    name: Optional[str] = Field(None, alias="Name", description="Event name, usually ContactFlowEvent")

    @property
    def phone_number(self) -> str:
        return self.details.contact_data.customer_endpoint.address

    @property
    def contact_id(self) -> Optional[str]:
        return self.details.contact_data.contact_id


class ConnectResponse(BaseModel):
    """Flat single-key response the contact flow branches on."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "Branch": "verify"
            }
        }
    )

    branch: str = Field(..., alias="Branch", description="Routing label for the next call flow step")

    @classmethod
    def from_branch(cls, branch: Branch) -> "ConnectResponse":
        return cls(branch=branch.label)

    def to_wire(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""

    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field("1.0.0", description="Service version")


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    correlation_id: str = Field(..., description="Request correlation ID for tracing")
    timestamp: datetime = Field(..., description="Error timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "RecordStoreUnavailable",
                "message": "Identity lookup failed",
                "correlation_id": "3c1d2a40-0d6b-4f1c-9b7e-4e1f0c2a9d11",
                "timestamp": "2024-01-01T12:00:00Z"
            }
        }
    )
