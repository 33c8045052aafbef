"""Client modules for external service integrations."""

from voice_router.clients.supabase_client import (
    SupabaseClient,
    IdentityRepository,
    DatabaseManager,
    RecordStoreError,
    RecordWriteError
)

from voice_router.clients.voiceit_client import (
    VoiceItClient,
    EnrollmentProviderError,
    get_enrollment_provider
)

__all__ = [
    "SupabaseClient",
    "IdentityRepository",
    "DatabaseManager",
    "RecordStoreError",
    "RecordWriteError",
    "VoiceItClient",
    "EnrollmentProviderError",
    "get_enrollment_provider"
]
