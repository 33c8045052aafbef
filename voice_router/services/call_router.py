"""
Call state router for voice authentication call flows.

Decides, once per inbound call, which workflow the caller enters:
- enrollfromscratch: first call from this number, identity record is created
- enroll: enrollment was started earlier but never reached the threshold
- verify: caller is fully enrolled and must pass a voice verification
- verified: a verification succeeded moments ago on this same call
- failedverified: a verified flag is left over from an earlier call

The router reads one identity record, issues at most one write, and returns
a Branch. Write failures are logged and do not change the decision.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from voice_router.clients.supabase_client import DatabaseManager
from voice_router.clients.voiceit_client import VoiceItClient, EnrollmentProviderError
from voice_router.config import settings
from voice_router.models.internal_models import Branch, IdentityInfo, IdentityRecord
from voice_router.observability import record_provider_failure, record_store_failure
from voice_router.utils.time_utils import (
    TimestampParseError,
    format_rfc3339,
    parse_rfc3339,
    utcnow
)

logger = logging.getLogger(__name__)


class RoutingError(Exception):
    """Base exception for call routing errors."""
    pass


class RecordLookupError(RoutingError):
    """Raised when the identity record cannot be read; no branch can be chosen."""
    pass


class CallStateRouter:
    """
    Classifies a caller's identity record into a routing branch.

    Classification order, first match wins:
    1. no record                        -> ENROLL_FROM_SCRATCH
    2. verified                         -> VERIFIED or FAILED_VERIFIED
    3. num_enrollments < threshold      -> ENROLL
    4. otherwise                        -> VERIFY
    """

    def __init__(
        self,
        enrollment_provider: VoiceItClient,
        db_manager: Optional[DatabaseManager] = None,
        clock: Optional[Callable[[], datetime]] = None,
        enrollment_threshold: Optional[int] = None,
        verification_window_seconds: Optional[float] = None
    ):
        """
        Initialize the router.

        Args:
            enrollment_provider: Long-lived client used to mint subject ids
            db_manager: Record store for this invocation. If None, creates a new one.
            clock: Returns the current aware datetime; defaults to UTC now
            enrollment_threshold: Samples needed before a caller can verify
            verification_window_seconds: How long a fresh verification stays valid
        """
        self.enrollment_provider = enrollment_provider
        self.db = db_manager or DatabaseManager()
        self._clock = clock or utcnow
        self.enrollment_threshold = (
            enrollment_threshold if enrollment_threshold is not None
            else settings.enrollment_threshold
        )
        self.verification_window = timedelta(
            seconds=verification_window_seconds if verification_window_seconds is not None
            else settings.verification_window_seconds
        )

    async def route(self, phone_number: str) -> Branch:
        """
        Route a call from the given phone number.

        Args:
            phone_number: Caller phone number, the identity record key

        Returns:
            Branch for the contact flow to follow

        Raises:
            ValueError: If the phone number is empty
            RecordLookupError: If the identity record cannot be read
        """
        if not phone_number or not phone_number.strip():
            raise ValueError("Phone number is required for routing")

        try:
            record = await self.db.identities.get_identity(phone_number)
        except Exception as e:
            logger.error(f"Identity lookup failed for {phone_number}: {e}")
            record_store_failure("lookup")
            raise RecordLookupError(f"Failed to look up identity for {phone_number}: {e}") from e

        if record is None:
            branch = await self._enroll_from_scratch(phone_number)
        elif record.info.verified:
            branch = await self._check_verification_freshness(phone_number, record.info.auth_time)
        elif record.info.num_enrollments < self.enrollment_threshold:
            branch = await self._resume_enrollment(phone_number)
        else:
            branch = await self._start_verification(phone_number)

        logger.info(f"Routed call from {phone_number} to {branch.label}")
        return branch

    async def _enroll_from_scratch(self, phone_number: str) -> Branch:
        """Create the identity record for a first-time caller."""
        try:
            user_id = await self.enrollment_provider.create_subject()
        except EnrollmentProviderError as e:
            # The record is still created so the call can continue; the
            # subject id stays empty until the record is repaired.
            logger.error(f"Subject creation failed for {phone_number}, continuing with empty user id: {e}")
            record_provider_failure()
            user_id = ""

        record = IdentityRecord(
            phone_number=phone_number,
            info=IdentityInfo(
                user_id=user_id,
                enrolling=True,
                verifying=False,
                num_enrollments=0,
                verified=False,
                auth_time=format_rfc3339(self._clock()),
            ),
        )

        try:
            await self.db.identities.create_identity(record)
        except Exception as e:
            logger.error(f"Failed to create identity for {phone_number}: {e}")
            record_store_failure("create")

        return Branch.ENROLL_FROM_SCRATCH

    async def _resume_enrollment(self, phone_number: str) -> Branch:
        await self._apply(phone_number, {"enrolling": True, "verifying": False})
        return Branch.ENROLL

    async def _start_verification(self, phone_number: str) -> Branch:
        await self._apply(phone_number, {"verifying": True, "enrolling": False})
        return Branch.VERIFY

    async def _check_verification_freshness(self, phone_number: str, auth_time: str) -> Branch:
        """
        Decide whether a stored verification belongs to the current call.

        A verification younger than the window is consumed (verified reset to
        false). Anything older, or an auth time that cannot be parsed, forces
        a fresh verification attempt.
        """
        elapsed: Optional[timedelta] = None
        try:
            elapsed = self._clock() - parse_rfc3339(auth_time)
        except TimestampParseError as e:
            logger.warning(f"Unparsable auth time for {phone_number}, treating verification as stale: {e}")

        if elapsed is not None and elapsed < self.verification_window:
            await self._apply(phone_number, {"verified": False})
            return Branch.VERIFIED

        await self._apply(phone_number, {"verified": False, "verifying": True})
        return Branch.FAILED_VERIFIED

    async def _apply(self, phone_number: str, fields: Dict[str, Any]) -> None:
        """Best-effort partial update; failures are logged, never raised."""
        try:
            await self.db.identities.update_identity(phone_number, fields)
        except Exception as e:
            logger.error(f"Failed to update identity {phone_number} with {fields}: {e}")
            record_store_failure("update")
