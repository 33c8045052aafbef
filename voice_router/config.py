"""Configuration management for the voice call router."""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Ignore extra environment variables
    )

    # Server configuration
    port: int = 8000
    host: str = "0.0.0.0"

    # Supabase configuration (identity record store)
    supabase_url: str = "http://localhost:54321"
    supabase_key: str = ""
    identity_table: str = "connect_identities"

    # VoiceIt enrollment provider
    voiceit_api_key: str = ""
    voiceit_api_token: str = ""
    voiceit_base_url: str = "https://api.voiceit.io"
    voiceit_timeout: float = 10.0

    # Routing rules
    enrollment_threshold: int = 3
    verification_window_seconds: float = 10.0

    # Logging and telemetry configuration
    log_level: str = "INFO"
    otlp_endpoint: Optional[str] = None
    otel_console_export: bool = False

    @field_validator('supabase_url')
    @classmethod
    def validate_supabase_url(cls, v):
        if not v:
            raise ValueError('SUPABASE_URL environment variable is required')
        return v

    @field_validator('identity_table')
    @classmethod
    def validate_identity_table(cls, v):
        if not v:
            raise ValueError('IDENTITY_TABLE must not be empty')
        return v

    @field_validator('enrollment_threshold')
    @classmethod
    def validate_enrollment_threshold(cls, v):
        if v < 1:
            raise ValueError('ENROLLMENT_THRESHOLD must be at least 1')
        return v

    @field_validator('verification_window_seconds', 'voiceit_timeout')
    @classmethod
    def validate_positive_seconds(cls, v):
        if v <= 0:
            raise ValueError('Durations must be greater than zero seconds')
        return v


# Global settings instance
settings = Settings()
