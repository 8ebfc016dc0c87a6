from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from app.core.config import Settings
from app.schemas.attendance import (
    EventKind,
    LivePlatform,
    NormalizedEvent,
    ParticipantSignal,
    SessionWindow,
)
from app.services.webhook_security import sanitize_text

ZOOM_EVENT_KINDS = {
    "endpoint.url_validation": EventKind.url_validation,
    "meeting.started": EventKind.session_started,
    "meeting.ended": EventKind.session_ended,
    "meeting.participant_joined": EventKind.participant_joined,
    "meeting.participant_left": EventKind.participant_left,
}

GOOGLE_MEET_EVENT_KINDS = {
    "google.workspace.meet.conference.v2.started": EventKind.session_started,
    "google.workspace.meet.conference.v2.ended": EventKind.session_ended,
    "google.workspace.meet.participant.v2.joined": EventKind.participant_joined,
    "google.workspace.meet.participant.v2.left": EventKind.participant_left,
}

_FRACTIONAL_SECONDS_PATTERN = re.compile(r"(\.\d{6})\d+")

logger = logging.getLogger(__name__)


class EventNormalizationError(ValueError):
    pass


class EventNormalizer:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def normalize_zoom(self, payload: Mapping[str, Any]) -> NormalizedEvent:
        provider_event_type = _extract_first_string(payload, paths=("event",))
        kind = ZOOM_EVENT_KINDS.get(provider_event_type or "", EventKind.ignored)

        if kind == EventKind.url_validation:
            challenge_token = _extract_path(payload, "payload.plainToken")
            return NormalizedEvent(
                platform=LivePlatform.zoom,
                provider_event_type=provider_event_type,
                kind=kind,
                challenge_token=challenge_token if isinstance(challenge_token, str) else None,
            )

        participant = None
        raw_participant = _extract_path(payload, "payload.object.participant")
        if isinstance(raw_participant, Mapping):
            participant = ParticipantSignal(
                display_name=self._sanitize_name(
                    _extract_first_string(raw_participant, paths=("user_name", "name")),
                ),
                email=_normalize_email(_extract_first_string(raw_participant, paths=("email",))),
                earliest_join_time=parse_timestamp(raw_participant.get("join_time")),
                latest_leave_time=parse_timestamp(raw_participant.get("leave_time")),
            )

        return NormalizedEvent(
            platform=LivePlatform.zoom,
            provider_event_type=provider_event_type,
            kind=kind,
            session_ref=_extract_first_string(payload, paths=("payload.object.id",)),
            title=self._sanitize_title(_extract_first_string(payload, paths=("payload.object.topic",))),
            participant=participant,
            session_window=SessionWindow(
                start=parse_timestamp(_extract_path(payload, "payload.object.start_time")),
                end=parse_timestamp(_extract_path(payload, "payload.object.end_time")),
            ),
        )

    def normalize_google_meet(self, raw_body: bytes) -> NormalizedEvent:
        payload = unwrap_pubsub_envelope(raw_body)
        provider_event_type = _extract_first_string(payload, paths=("eventType",))
        kind = GOOGLE_MEET_EVENT_KINDS.get(provider_event_type or "", EventKind.ignored)

        participant = None
        raw_participant = payload.get("participant")
        if isinstance(raw_participant, Mapping):
            participant = ParticipantSignal(
                display_name=self._sanitize_name(
                    _extract_first_string(
                        raw_participant,
                        paths=(
                            "user.displayName",
                            "anonymousUser.displayName",
                            "phoneUser.displayName",
                        ),
                    ),
                ),
                email=_normalize_email(_extract_first_string(raw_participant, paths=("user.email",))),
                earliest_join_time=parse_timestamp(raw_participant.get("earliestStartTime")),
                latest_leave_time=parse_timestamp(raw_participant.get("latestEndTime")),
            )

        return NormalizedEvent(
            platform=LivePlatform.google_meet,
            provider_event_type=provider_event_type,
            kind=kind,
            session_ref=_extract_first_string(payload, paths=("conferenceRecord.name",)),
            title=self._sanitize_title(_extract_first_string(payload, paths=("conferenceRecord.space",))),
            participant=participant,
            session_window=SessionWindow(
                start=parse_timestamp(_extract_path(payload, "conferenceRecord.startTime")),
                end=parse_timestamp(_extract_path(payload, "conferenceRecord.endTime")),
            ),
        )

    def _sanitize_title(self, value: str | None) -> str | None:
        return sanitize_text(value, self.settings.max_meeting_title_length) or None

    def _sanitize_name(self, value: str | None) -> str | None:
        return sanitize_text(value, self.settings.max_participant_name_length) or None


def decode_json_object(raw_body: bytes) -> dict[str, Any]:
    try:
        parsed_payload = json.loads(raw_body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise EventNormalizationError("Request body must be valid JSON.") from exc

    if not isinstance(parsed_payload, dict):
        raise EventNormalizationError("Request body must be a JSON object.")
    return parsed_payload


def unwrap_pubsub_envelope(raw_body: bytes) -> dict[str, Any]:
    """Return the event carried by a pub/sub push, or the flat body itself."""
    try:
        envelope = decode_json_object(raw_body)
        encoded_data = _extract_path(envelope, "message.data")
        if isinstance(encoded_data, str) and encoded_data:
            decoded_data = base64.b64decode(encoded_data, validate=False)
            return decode_json_object(decoded_data)
    except (EventNormalizationError, binascii.Error, ValueError):
        logger.info("Pub/sub envelope could not be unwrapped; parsing flat body")

    return decode_json_object(raw_body)


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    else:
        text = _to_text(value)
        if not text:
            return None
        text = _FRACTIONAL_SECONDS_PATTERN.sub(r"\1", text)
        if text.endswith(("Z", "z")):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    try:
        return parsed.astimezone(UTC)
    except (OverflowError, ValueError):
        return None


def _normalize_email(value: str | None) -> str | None:
    if not value:
        return None
    return value.strip().lower() or None


def _extract_first_string(payload: Mapping[str, Any], paths: tuple[str, ...]) -> str | None:
    for path in paths:
        text = _to_text(_extract_path(payload, path))
        if text:
            return text
    return None


def _extract_path(payload: Mapping[str, Any], path: str) -> Any:
    value: Any = payload
    for segment in path.split("."):
        if not isinstance(value, Mapping):
            return None
        if segment not in value:
            return None
        value = value[segment]
    return value


def _to_text(value: Any) -> str | None:
    if value is None or isinstance(value, (Mapping, list, bool)):
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        return cleaned or None
    return str(value)
