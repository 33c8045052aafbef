"""Internal data models for the voice call router."""

from dataclasses import dataclass, field
from enum import Enum


class Branch(str, Enum):
    """Routing decision handed back to the telephony front end."""

    ENROLL_FROM_SCRATCH = "enrollfromscratch"
    ENROLL = "enroll"
    VERIFY = "verify"
    VERIFIED = "verified"
    FAILED_VERIFIED = "failedverified"

    @property
    def label(self) -> str:
        """Wire label consumed by the contact flow."""
        return self.value


@dataclass
class IdentityInfo:
    """Mutable per-caller authentication state."""

    user_id: str  # Opaque VoiceIt subject id, empty if creation failed
    enrolling: bool = False
    verifying: bool = False
    num_enrollments: int = 0
    verified: bool = False
    auth_time: str = ""  # RFC3339, only meaningful while verified

    def __post_init__(self):
        """Validate enrollment count after initialization."""
        if self.num_enrollments < 0:
            raise ValueError(f"num_enrollments must be >= 0, got {self.num_enrollments}")


@dataclass
class IdentityRecord:
    """Internal identity record, one per caller phone number."""

    phone_number: str  # Primary key
    info: IdentityInfo = field(default_factory=lambda: IdentityInfo(user_id=""))
