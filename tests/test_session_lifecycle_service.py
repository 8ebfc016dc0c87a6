from datetime import UTC, datetime

import pytest
from fastapi import HTTPException

from app.core.config import Settings
from app.schemas.attendance import EventKind, LivePlatform, NormalizedEvent, SessionWindow
from app.services.account_resolver import AccountResolver
from app.services.attendance_store import InMemoryAttendanceStore
from app.services.session_lifecycle_service import SessionLifecycleService

T0 = datetime(2026, 3, 2, 15, 0, tzinfo=UTC)


def _event(
    kind: EventKind,
    *,
    session_ref: str | None = "meeting-1",
    start: datetime | None = None,
    end: datetime | None = None,
    title: str | None = None,
    platform: LivePlatform = LivePlatform.zoom,
) -> NormalizedEvent:
    return NormalizedEvent(
        platform=platform,
        provider_event_type="test",
        kind=kind,
        session_ref=session_ref,
        title=title,
        session_window=SessionWindow(start=start, end=end),
    )


@pytest.fixture
def store() -> InMemoryAttendanceStore:
    return InMemoryAttendanceStore()


@pytest.fixture
def service(store: InMemoryAttendanceStore) -> SessionLifecycleService:
    return SessionLifecycleService(store, clock=lambda: T0)


def test_start_creates_session_with_event_start_time(service: SessionLifecycleService) -> None:
    result = service.start_session(
        account_id="account-1",
        event=_event(EventKind.session_started, start=T0, title="Weekly class"),
    )

    assert result.outcome == "session_started"
    assert result.session is not None
    assert result.session.title == "Weekly class"
    assert result.session.start_time == T0
    assert result.session.end_time is None
    assert result.session.platform == LivePlatform.zoom


def test_start_defaults_title_and_start_time(service: SessionLifecycleService) -> None:
    result = service.start_session(
        account_id="account-1",
        event=_event(EventKind.session_started, platform=LivePlatform.google_meet),
    )

    assert result.session is not None
    assert result.session.title == "Google Meet Session"
    assert result.session.start_time == T0


def test_redelivered_start_keeps_single_session(
    service: SessionLifecycleService,
    store: InMemoryAttendanceStore,
) -> None:
    first = service.start_session(account_id="account-1", event=_event(EventKind.session_started, start=T0))
    second = service.start_session(account_id="account-1", event=_event(EventKind.session_started, start=T0))

    assert first.outcome == "session_started"
    assert second.outcome == "session_already_started"
    assert first.session is not None and second.session is not None
    assert first.session.id == second.session.id


def test_same_meeting_id_is_distinct_per_account_and_platform(service: SessionLifecycleService) -> None:
    zoom = service.start_session(account_id="account-1", event=_event(EventKind.session_started))
    other_account = service.start_session(account_id="account-2", event=_event(EventKind.session_started))
    meet = service.start_session(
        account_id="account-1",
        event=_event(EventKind.session_started, platform=LivePlatform.google_meet),
    )

    assert {zoom.outcome, other_account.outcome, meet.outcome} == {"session_started"}


def test_start_without_meeting_id_is_ignored(service: SessionLifecycleService) -> None:
    result = service.start_session(
        account_id="account-1",
        event=_event(EventKind.session_started, session_ref=None),
    )

    assert result.outcome == "ignored_missing_session_ref"
    assert result.session is None


def test_end_closes_session_once(service: SessionLifecycleService) -> None:
    service.start_session(account_id="account-1", event=_event(EventKind.session_started, start=T0))
    end_time = datetime(2026, 3, 2, 16, 0, tzinfo=UTC)

    first = service.end_session(account_id="account-1", event=_event(EventKind.session_ended, end=end_time))
    second = service.end_session(
        account_id="account-1",
        event=_event(EventKind.session_ended, end=datetime(2026, 3, 2, 17, 0, tzinfo=UTC)),
    )

    assert first.outcome == "session_ended"
    assert first.session is not None
    assert first.session.end_time == end_time
    assert second.outcome == "session_already_ended"
    assert second.session is not None
    assert second.session.end_time == end_time


def test_end_without_session_is_a_no_op(service: SessionLifecycleService) -> None:
    result = service.end_session(account_id="account-1", event=_event(EventKind.session_ended))

    assert result.outcome == "session_not_found"
    assert result.session is None


def test_account_resolver_prefers_explicit_account(store: InMemoryAttendanceStore) -> None:
    store.add_integration(account_id="legacy-account", integration_type="zoom")
    resolver = AccountResolver(Settings(attendance_store="memory"), store)

    assert resolver.resolve(platform=LivePlatform.zoom, explicit_account_id=" account-1 ") == "account-1"
    assert resolver.resolve(platform=LivePlatform.zoom, explicit_account_id=None) == "legacy-account"


def test_account_resolver_uses_provider_integration_type(store: InMemoryAttendanceStore) -> None:
    store.add_integration(account_id="zoom-account", integration_type="zoom")
    store.add_integration(account_id="google-account", integration_type="google")
    store.add_integration(account_id="disconnected", integration_type="google", status="disconnected")
    resolver = AccountResolver(Settings(attendance_store="memory"), store)

    assert resolver.resolve(platform=LivePlatform.google_meet, explicit_account_id=None) == "google-account"


def test_account_resolver_rejects_ambiguous_or_missing_integration(store: InMemoryAttendanceStore) -> None:
    resolver = AccountResolver(Settings(attendance_store="memory"), store)

    with pytest.raises(HTTPException) as missing:
        resolver.resolve(platform=LivePlatform.zoom, explicit_account_id=None)

    store.add_integration(account_id="account-a", integration_type="zoom")
    store.add_integration(account_id="account-b", integration_type="zoom")
    with pytest.raises(HTTPException) as ambiguous:
        resolver.resolve(platform=LivePlatform.zoom, explicit_account_id="")

    assert missing.value.status_code == 400
    assert missing.value.detail == "Account not found"
    assert ambiguous.value.status_code == 400


def test_account_resolver_legacy_lookup_can_be_disabled(store: InMemoryAttendanceStore) -> None:
    store.add_integration(account_id="legacy-account", integration_type="zoom")
    resolver = AccountResolver(
        Settings(attendance_store="memory", legacy_integration_account_lookup_enabled=False),
        store,
    )

    with pytest.raises(HTTPException):
        resolver.resolve(platform=LivePlatform.zoom, explicit_account_id=None)
