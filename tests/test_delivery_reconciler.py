from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from app.core.config import Settings
from app.schemas.attendance import AttendanceRecord, LivePlatform, LiveSession
from app.services.attendance_store import InMemoryAttendanceStore
from app.services.delivery_reconciler import DeliveryReconciler

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=UTC)
ACCOUNT_ID = "account-1"


class _FlakyDeliveryStore(InMemoryAttendanceStore):
    def __init__(self, failing_event_ids: set[str]) -> None:
        super().__init__()
        self.failing_event_ids = failing_event_ids

    def upsert_delivery(self, **kwargs: Any) -> tuple[dict[str, Any], bool]:
        if kwargs["event_id"] in self.failing_event_ids:
            raise RuntimeError("write failed")
        return super().upsert_delivery(**kwargs)


@pytest.fixture
def store() -> InMemoryAttendanceStore:
    return InMemoryAttendanceStore()


def _session(platform: LivePlatform = LivePlatform.google_meet) -> LiveSession:
    return LiveSession(
        id="session-1",
        account_id=ACCOUNT_ID,
        platform=platform,
        external_meeting_id="conferenceRecords/abc",
        title="Mentoria ao vivo",
        start_time=NOW,
    )


def _attendance(client_id: str) -> AttendanceRecord:
    return AttendanceRecord(
        id="attendance-1",
        account_id=ACCOUNT_ID,
        live_session_id="session-1",
        client_id=client_id,
        join_time=NOW,
    )


def _reconciler(store: InMemoryAttendanceStore, now: datetime = NOW) -> DeliveryReconciler:
    return DeliveryReconciler(Settings(attendance_store="memory"), store, clock=lambda: now)


def test_matching_live_event_is_delivered_then_reconfirmed(store: InMemoryAttendanceStore) -> None:
    client = store.add_client(account_id=ACCOUNT_ID, full_name="Ana", product_ids=["P1"])
    event = store.add_scheduled_event(
        account_id=ACCOUNT_ID,
        scheduled_at=NOW + timedelta(hours=1),
        eligible_product_ids=["P1", "P2"],
    )

    first = _reconciler(store).reconcile(attendance=_attendance(client["_id"]), session=_session())
    second = _reconciler(store, NOW + timedelta(minutes=10)).reconcile(
        attendance=_attendance(client["_id"]),
        session=_session(),
    )

    deliveries = store.list_deliveries(client_id=client["_id"])
    assert first.created_count == 1
    assert first.status == "completed"
    assert second.created_count == 0
    assert second.updated_count == 1
    assert len(deliveries) == 1
    delivery = deliveries[0]
    assert delivery["event_id"] == event["_id"]
    assert delivery["status"] == "delivered"
    assert delivery["delivered_at"] == NOW + timedelta(minutes=10)
    assert delivery["delivery_method"] == "google_meet_auto"
    assert delivery["notes"] == "Attendance confirmed via Google Meet - Mentoria ao vivo"


def test_insert_note_references_platform_and_session_title(store: InMemoryAttendanceStore) -> None:
    client = store.add_client(account_id=ACCOUNT_ID, full_name="Ana", product_ids=["P1"])
    store.add_scheduled_event(account_id=ACCOUNT_ID, scheduled_at=NOW, eligible_product_ids=["P1"])

    _reconciler(store).reconcile(attendance=_attendance(client["_id"]), session=_session(LivePlatform.zoom))

    delivery = store.list_deliveries(client_id=client["_id"])[0]
    assert delivery["delivery_method"] == "zoom_auto"
    assert delivery["notes"] == "Automatic attendance via Zoom - Mentoria ao vivo"


def test_events_outside_window_are_not_delivered(store: InMemoryAttendanceStore) -> None:
    client = store.add_client(account_id=ACCOUNT_ID, full_name="Ana", product_ids=["P1"])
    store.add_scheduled_event(
        account_id=ACCOUNT_ID,
        scheduled_at=NOW + timedelta(hours=3),
        eligible_product_ids=["P1"],
    )
    store.add_scheduled_event(
        account_id=ACCOUNT_ID,
        scheduled_at=NOW - timedelta(hours=2, seconds=1),
        eligible_product_ids=["P1"],
    )

    result = _reconciler(store).reconcile(attendance=_attendance(client["_id"]), session=_session())

    assert result.matched_count == 0
    assert result.status == "no_matching_events"
    assert store.list_deliveries(client_id=client["_id"]) == []


def test_window_bounds_are_inclusive(store: InMemoryAttendanceStore) -> None:
    client = store.add_client(account_id=ACCOUNT_ID, full_name="Ana", product_ids=["P1"])
    store.add_scheduled_event(account_id=ACCOUNT_ID, scheduled_at=NOW + timedelta(hours=2), eligible_product_ids=["P1"])
    store.add_scheduled_event(account_id=ACCOUNT_ID, scheduled_at=NOW - timedelta(hours=2), eligible_product_ids=["P1"])

    result = _reconciler(store).reconcile(attendance=_attendance(client["_id"]), session=_session())

    assert result.created_count == 2


def test_only_live_events_for_client_products_and_account_match(store: InMemoryAttendanceStore) -> None:
    client = store.add_client(account_id=ACCOUNT_ID, full_name="Ana", product_ids=["P1"])
    store.add_scheduled_event(account_id=ACCOUNT_ID, scheduled_at=NOW, eligible_product_ids=["P2"])
    store.add_scheduled_event(
        account_id=ACCOUNT_ID,
        scheduled_at=NOW,
        eligible_product_ids=["P1"],
        event_type="recorded",
    )
    store.add_scheduled_event(account_id="account-2", scheduled_at=NOW, eligible_product_ids=["P1"])

    result = _reconciler(store).reconcile(attendance=_attendance(client["_id"]), session=_session())

    assert result.matched_count == 0


def test_client_without_products_is_skipped(store: InMemoryAttendanceStore) -> None:
    client = store.add_client(account_id=ACCOUNT_ID, full_name="Ana")
    store.add_scheduled_event(account_id=ACCOUNT_ID, scheduled_at=NOW, eligible_product_ids=["P1"])

    result = _reconciler(store).reconcile(attendance=_attendance(client["_id"]), session=_session())

    assert result.matched_count == 0
    assert store.list_deliveries(client_id=client["_id"]) == []


def test_failed_delivery_write_does_not_stop_other_events() -> None:
    store = _FlakyDeliveryStore(failing_event_ids=set())
    client = store.add_client(account_id=ACCOUNT_ID, full_name="Ana", product_ids=["P1"])
    failing = store.add_scheduled_event(
        account_id=ACCOUNT_ID,
        scheduled_at=NOW - timedelta(minutes=30),
        eligible_product_ids=["P1"],
    )
    healthy = store.add_scheduled_event(
        account_id=ACCOUNT_ID,
        scheduled_at=NOW + timedelta(minutes=30),
        eligible_product_ids=["P1"],
    )
    store.failing_event_ids.add(failing["_id"])

    result = _reconciler(store).reconcile(attendance=_attendance(client["_id"]), session=_session())

    assert result.matched_count == 2
    assert result.created_count == 1
    assert result.failed_event_ids == [failing["_id"]]
    assert result.status == "partial"
    assert [delivery["event_id"] for delivery in store.list_deliveries(client_id=client["_id"])] == [
        healthy["_id"],
    ]
