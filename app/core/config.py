from functools import lru_cache
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Attendance Reconciliation API"
    app_env: str = "development"
    app_version: str = "0.1.0"
    api_prefix: str = "/api"
    allowed_origins: Annotated[list[str], NoDecode] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    attendance_store: str = "mongodb"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "attendance_reconciliation"
    mongodb_live_sessions_collection: str = "live_sessions"
    mongodb_attendance_collection: str = "attendance"
    mongodb_clients_collection: str = "clients"
    mongodb_events_collection: str = "events"
    mongodb_deliveries_collection: str = "client_event_deliveries"
    mongodb_integrations_collection: str = "integrations"
    mongodb_outbox_collection: str = "outbox_tasks"
    mongodb_connect_timeout_ms: int = 2000
    zoom_webhook_secret: str = ""
    zoom_signature_verification_enabled: bool = True
    zoom_signature_tolerance_seconds: int = 300
    google_meet_webhook_secret: str = ""
    # Legacy: resolve the tenant from the single connected integration when
    # the webhook URL carries no account_id.
    legacy_integration_account_lookup_enabled: bool = True
    reconciliation_window_hours: float = 2.0
    max_meeting_title_length: int = 500
    max_participant_name_length: int = 200

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("attendance_store", mode="before")
    @classmethod
    def normalize_attendance_store(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("zoom_signature_tolerance_seconds", mode="before")
    @classmethod
    def normalize_signature_tolerance(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 300
        return parsed_value

    @field_validator("reconciliation_window_hours", mode="before")
    @classmethod
    def normalize_reconciliation_window(cls, value: float | str) -> float:
        parsed_value = float(value)
        if parsed_value <= 0:
            return 2.0
        return parsed_value

    @field_validator("max_meeting_title_length", "max_participant_name_length", mode="before")
    @classmethod
    def normalize_max_lengths(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 200
        return parsed_value


@lru_cache
def get_settings() -> Settings:
    return Settings()
