from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from app.core.config import Settings
from app.schemas.attendance import (
    PLATFORM_LABELS,
    AttendanceRecord,
    ClientIdentity,
    DeliveryRecord,
    DeliveryStatus,
    LiveSession,
    ScheduledEvent,
)
from app.services.attendance_store import AttendanceStore

LIVE_EVENT_TYPE = "live"

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    matched_count: int = 0
    created_count: int = 0
    updated_count: int = 0
    failed_event_ids: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        if not self.matched_count:
            return "no_matching_events"
        if self.failed_event_ids:
            return "partial" if len(self.failed_event_ids) < self.matched_count else "failed"
        return "completed"


class DeliveryReconciler:
    def __init__(
        self,
        settings: Settings,
        store: AttendanceStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self._clock = clock or (lambda: datetime.now(UTC))

    def reconcile(self, *, attendance: AttendanceRecord, session: LiveSession) -> ReconciliationResult:
        result = ReconciliationResult()
        client_record = self.store.get_client(attendance.client_id)
        if not client_record:
            logger.info("Reconciliation skipped; client not found client_id=%s", attendance.client_id)
            return result

        product_ids = ClientIdentity.model_validate(client_record).product_ids
        if not product_ids:
            logger.info("Reconciliation skipped; client has no products client_id=%s", attendance.client_id)
            return result

        now = self._clock()
        window = timedelta(hours=self.settings.reconciliation_window_hours)
        events = [
            ScheduledEvent.model_validate(record)
            for record in self.store.list_events_in_window(
                account_id=attendance.account_id,
                event_type=LIVE_EVENT_TYPE,
                window_start=now - window,
                window_end=now + window,
                product_ids=product_ids,
            )
        ]
        result.matched_count = len(events)

        platform_label = PLATFORM_LABELS[session.platform]
        for event in events:
            try:
                record, created = self.store.upsert_delivery(
                    account_id=attendance.account_id,
                    client_id=attendance.client_id,
                    event_id=event.id,
                    status=DeliveryStatus.delivered.value,
                    delivered_at=now,
                    delivery_method=f"{session.platform.value}_auto",
                    insert_notes=f"Automatic attendance via {platform_label} - {session.title}",
                    update_notes=f"Attendance confirmed via {platform_label} - {session.title}",
                )
            except Exception:
                logger.exception(
                    "Event delivery write failed client_id=%s event_id=%s",
                    attendance.client_id,
                    event.id,
                )
                result.failed_event_ids.append(event.id)
                continue

            delivery = DeliveryRecord.model_validate(record)
            if created:
                result.created_count += 1
            else:
                result.updated_count += 1
            logger.info(
                "Event delivery %s delivery_id=%s client_id=%s event_id=%s",
                "created" if created else "updated",
                delivery.id,
                attendance.client_id,
                event.id,
            )

        return result
