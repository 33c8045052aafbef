"""Supabase client for identity record storage."""

import logging
from typing import Any, Dict, Optional

from supabase import create_client, Client
from postgrest.exceptions import APIError

from ..config import settings
from ..models.internal_models import IdentityInfo, IdentityRecord

logger = logging.getLogger(__name__)

# Columns the router may change after a record has been created
UPDATABLE_FIELDS = frozenset({
    "enrolling",
    "verifying",
    "num_enrollments",
    "verified",
    "auth_time",
})


class RecordStoreError(Exception):
    """Base exception for identity record store failures."""
    pass


class RecordWriteError(RecordStoreError):
    """Raised when creating or updating an identity record fails."""
    pass


class SupabaseClient:
    """Client for Supabase database operations."""

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None):
        """Initialize Supabase client with configuration."""
        self._client: Optional[Client] = None
        self._url = url or settings.supabase_url
        self._key = key or settings.supabase_key

    @property
    def client(self) -> Client:
        """Get or create Supabase client instance."""
        if self._client is None:
            self._client = create_client(self._url, self._key)
        return self._client

    async def health_check(self, table: str) -> bool:
        """Check if database connection is healthy."""
        try:
            self.client.table(table).select("phone_number", count="exact").limit(0).execute()
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


class IdentityRepository:
    """Repository for identity records keyed by phone number."""

    def __init__(self, supabase_client: SupabaseClient, table: Optional[str] = None):
        """Initialize repository with Supabase client."""
        self.client = supabase_client
        self.table = table or settings.identity_table

    @staticmethod
    def _to_row(record: IdentityRecord) -> Dict[str, Any]:
        info = record.info
        return {
            "phone_number": record.phone_number,
            "user_id": info.user_id,
            "enrolling": info.enrolling,
            "verifying": info.verifying,
            "num_enrollments": info.num_enrollments,
            "verified": info.verified,
            "auth_time": info.auth_time,
        }

    @staticmethod
    def _from_row(row: Dict[str, Any], phone_number: str) -> IdentityRecord:
        stored_phone = row.get("phone_number")
        return IdentityRecord(
            phone_number=stored_phone if stored_phone is not None else phone_number,
            info=IdentityInfo(
                user_id=row.get("user_id") or "",
                enrolling=bool(row.get("enrolling")),
                verifying=bool(row.get("verifying")),
                num_enrollments=int(row.get("num_enrollments") or 0),
                verified=bool(row.get("verified")),
                auth_time=row.get("auth_time") or "",
            ),
        )

    async def get_identity(self, phone_number: str) -> Optional[IdentityRecord]:
        """
        Retrieve the identity record for a phone number.

        Returns:
            The record, or None if this number has never called before

        Raises:
            APIError: On database errors
        """
        try:
            result = (
                self.client.client.table(self.table)
                .select("*")
                .eq("phone_number", phone_number)
                .limit(1)
                .execute()
            )

            if not result.data:
                return None

            return self._from_row(result.data[0], phone_number)

        except APIError as e:
            logger.error(f"Database error retrieving identity {phone_number}: {e}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error retrieving identity {phone_number}: {e}")
            raise

    async def create_identity(self, record: IdentityRecord) -> IdentityRecord:
        """Create a new identity record."""
        try:
            result = self.client.client.table(self.table).insert(self._to_row(record)).execute()

            if not result.data:
                raise RecordWriteError(f"Insert returned no rows for {record.phone_number}")

            logger.info(f"Successfully created identity {record.phone_number}")
            return record

        except RecordWriteError:
            raise
        except Exception as e:
            logger.error(f"Database error creating identity {record.phone_number}: {e}")
            raise RecordWriteError(f"Failed to create identity {record.phone_number}: {e}") from e

    async def update_identity(self, phone_number: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Partially update an identity record.

        Only the given columns are written; everything else is left as stored.

        Args:
            phone_number: Primary key of the record
            fields: Column name to new value

        Returns:
            The fields that were written

        Raises:
            ValueError: If a field is unknown or immutable
            RecordWriteError: If the update fails or matches no record
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update identity fields: {sorted(unknown)}")
        if not fields:
            return {}

        try:
            result = (
                self.client.client.table(self.table)
                .update(dict(fields))
                .eq("phone_number", phone_number)
                .execute()
            )

            if not result.data:
                raise RecordWriteError(f"Update matched no identity for {phone_number}")

            logger.info(f"Updated identity {phone_number}: {fields}")
            return dict(fields)

        except RecordWriteError:
            raise
        except Exception as e:
            logger.error(f"Database error updating identity {phone_number}: {e}")
            raise RecordWriteError(f"Failed to update identity {phone_number}: {e}") from e


class DatabaseManager:
    """High-level database manager that coordinates repositories."""

    def __init__(self, supabase_client: Optional[SupabaseClient] = None, table: Optional[str] = None):
        """Initialize database manager with client and repositories."""
        self.client = supabase_client or SupabaseClient()
        self.identities = IdentityRepository(self.client, table=table)

    async def health_check(self) -> bool:
        """Check overall database health."""
        return await self.client.health_check(self.identities.table)
