"""
Configuration settings for the Reiki Agenda service.
Loads from environment variables with validation.
"""

from functools import lru_cache
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 8082
    cors_origin: Optional[str] = Field(
        default=None,
        description="Allowed CORS origin; echoes the request origin when unset"
    )

    # Supabase Configuration
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_anon_key: str = Field(..., description="Supabase anonymous key")

    # Practice Configuration
    practice_name: str = "Agenda de Terapias Reiki"
    timezone: str = Field(
        default="America/Argentina/Buenos_Aires",
        description="Timezone the day grid is laid out in"
    )
    day_start_hour: int = 8   # 8 AM
    day_end_hour: int = 20    # 8 PM
    slot_step_minutes: int = 30
    appointment_minutes: int = 30
    default_service: str = "Reiki"

    # Booking Policy
    booking_buffer_enabled: bool = False
    booking_buffer_minutes: int = Field(
        default=90,
        description="Minutes blocked on each side of an appointment start"
    )
    booking_phone_check: bool = Field(
        default=False,
        description="Book through the phone-validating remote procedure"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
