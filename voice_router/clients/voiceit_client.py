"""
VoiceIt REST client for biometric subject creation.

Only user (subject) creation lives here. Voice enrollments and
verifications are captured by the telephony-side workflow against the same
VoiceIt account, keyed by the subject id this client hands out.
"""

import logging
from typing import Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

SUCCESS_CODE = "SUCC"


class EnrollmentProviderError(Exception):
    """Raised when the enrollment provider cannot create a subject."""
    pass


class VoiceItClient:
    """
    Minimal async client for the VoiceIt API.

    Holds credentials only; each request opens its own HTTP connection, so
    one instance can be shared by every routed call for the process lifetime.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize VoiceIt client.

        Args:
            api_key: VoiceIt API key (defaults to VOICEIT_API_KEY)
            api_token: VoiceIt API token (defaults to VOICEIT_API_TOKEN)
            base_url: API root URL
            timeout: Request timeout in seconds
        """
        self.api_key = api_key if api_key is not None else settings.voiceit_api_key
        self.api_token = api_token if api_token is not None else settings.voiceit_api_token
        self.base_url = (base_url or settings.voiceit_base_url).rstrip("/")
        self.timeout = timeout or settings.voiceit_timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_token)

    async def create_subject(self) -> str:
        """
        Create a new VoiceIt user.

        Returns:
            The opaque subject id (``usr_...``)

        Raises:
            EnrollmentProviderError: If credentials are missing or the API call fails
        """
        if not self.is_configured:
            raise EnrollmentProviderError("VoiceIt credentials are not configured")

        url = f"{self.base_url}/users"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, auth=(self.api_key, self.api_token))
                response.raise_for_status()
                payload = response.json()

        except httpx.TimeoutException as e:
            logger.error(f"Timeout creating VoiceIt user: {e}")
            raise EnrollmentProviderError(f"Timeout creating subject: {e}")
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error creating VoiceIt user: {e}")
            raise EnrollmentProviderError(f"HTTP error creating subject: {e.response.status_code}")
        except Exception as e:
            logger.error(f"Unexpected error creating VoiceIt user: {e}")
            raise EnrollmentProviderError(f"Failed to create subject: {e}")

        response_code = payload.get("responseCode") if isinstance(payload, dict) else None
        user_id = payload.get("userId") if isinstance(payload, dict) else None

        if response_code != SUCCESS_CODE or not user_id:
            logger.error(f"VoiceIt rejected user creation: responseCode={response_code}")
            raise EnrollmentProviderError(f"Subject creation rejected: {response_code}")

        logger.info(f"Created VoiceIt subject {user_id}")
        return user_id


# Global client instance
_enrollment_provider: Optional[VoiceItClient] = None


def get_enrollment_provider() -> VoiceItClient:
    """
    Get the process-wide enrollment provider client.

    Returns:
        VoiceItClient: The shared client instance
    """
    global _enrollment_provider
    if _enrollment_provider is None:
        _enrollment_provider = VoiceItClient()
        if not _enrollment_provider.is_configured:
            logger.warning("VoiceIt credentials missing; new callers will get an empty subject id")
    return _enrollment_provider
