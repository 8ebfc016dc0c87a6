from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class LivePlatform(StrEnum):
    zoom = "zoom"
    google_meet = "google_meet"


PLATFORM_LABELS = {
    LivePlatform.zoom: "Zoom",
    LivePlatform.google_meet: "Google Meet",
}

# Integration type whose connected record identifies the tenant for each platform.
PLATFORM_INTEGRATION_TYPES = {
    LivePlatform.zoom: "zoom",
    LivePlatform.google_meet: "google",
}


class EventKind(StrEnum):
    url_validation = "url_validation"
    session_started = "session_started"
    session_ended = "session_ended"
    participant_joined = "participant_joined"
    participant_left = "participant_left"
    ignored = "ignored"


class DeliveryStatus(StrEnum):
    delivered = "delivered"


class ParticipantSignal(BaseModel):
    display_name: str | None = None
    email: str | None = None
    earliest_join_time: datetime | None = None
    latest_leave_time: datetime | None = None


class SessionWindow(BaseModel):
    start: datetime | None = None
    end: datetime | None = None


class NormalizedEvent(BaseModel):
    platform: LivePlatform
    provider_event_type: str | None = None
    kind: EventKind
    session_ref: str | None = None
    title: str | None = None
    participant: ParticipantSignal | None = None
    session_window: SessionWindow | None = None
    challenge_token: str | None = None


class LiveSession(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    account_id: str
    platform: LivePlatform
    external_meeting_id: str
    title: str
    start_time: datetime
    end_time: datetime | None = None


class ClientIdentity(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    account_id: str
    full_name: str = ""
    emails: list[str] = Field(default_factory=list)
    product_ids: list[str] = Field(default_factory=list)


class AttendanceRecord(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    account_id: str
    live_session_id: str
    client_id: str
    join_time: datetime
    leave_time: datetime | None = None
    join_delay_sec: int = 0
    duration_sec: int | None = None
    duration_clamped: bool = False


class ScheduledEvent(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    account_id: str
    event_type: str
    title: str = ""
    scheduled_at: datetime
    eligible_product_ids: list[str] = Field(default_factory=list)


class DeliveryRecord(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    account_id: str
    client_id: str
    event_id: str
    status: DeliveryStatus
    delivered_at: datetime
    delivery_method: str
    notes: str = ""


class OutboxTask(BaseModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    account_id: str
    task_type: str
    dedupe_key: str
    payload: dict[str, Any] = Field(default_factory=dict)
    status: str = "pending"
    created_at: datetime


class ZoomUrlValidationResponse(BaseModel):
    plain_token: str = Field(serialization_alias="plainToken")
    encrypted_token: str = Field(serialization_alias="encryptedToken")


class ZoomWebhookResponse(BaseModel):
    success: bool = True
    event: str | None = None
    outcome: str | None = None


class GoogleMeetWebhookResponse(BaseModel):
    success: bool = True
    event_type: str | None = Field(default=None, serialization_alias="eventType")
    outcome: str | None = None
