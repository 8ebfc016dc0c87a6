from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from fastapi import HTTPException, status

from app.core.config import Settings
from app.schemas.attendance import (
    EventKind,
    LivePlatform,
    NormalizedEvent,
    ZoomUrlValidationResponse,
)
from app.services.account_resolver import AccountResolver
from app.services.attendance_store import AttendanceStore, create_attendance_store
from app.services.attendance_tracker import AttendanceResult, AttendanceTracker
from app.services.delivery_reconciler import DeliveryReconciler, ReconciliationResult
from app.services.event_normalizer import (
    EventNormalizationError,
    EventNormalizer,
    decode_json_object,
)
from app.services.session_lifecycle_service import SessionLifecycleService
from app.services.webhook_security import (
    build_url_validation_response,
    shared_secret_matches,
    verify_zoom_signature,
)

logger = logging.getLogger(__name__)


@dataclass
class AttendanceWebhookResult:
    provider_event_type: str | None
    outcome: str
    account_id: str | None = None
    challenge: ZoomUrlValidationResponse | None = None
    reconciliation: ReconciliationResult | None = None


class AttendanceWebhookService:
    def __init__(
        self,
        settings: Settings,
        store: AttendanceStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.store = store or create_attendance_store(settings)
        self.normalizer = EventNormalizer(settings)
        self.accounts = AccountResolver(settings, self.store)
        self.sessions = SessionLifecycleService(self.store, clock=clock)
        self.tracker = AttendanceTracker(self.store, sessions=self.sessions, clock=clock)
        self.reconciler = DeliveryReconciler(settings, self.store, clock=clock)

    def process_zoom_webhook(
        self,
        *,
        raw_body: bytes,
        account_id: str | None,
        signature: str | None,
        timestamp: str | None,
    ) -> AttendanceWebhookResult:
        try:
            payload = decode_json_object(raw_body)
        except EventNormalizationError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

        event = self.normalizer.normalize_zoom(payload)
        explicit_account_id = (account_id or "").strip() or None
        signing_secret = self._resolve_zoom_signing_secret(explicit_account_id)

        if event.kind == EventKind.url_validation:
            self._require_signing_secret(signing_secret)
            logger.info("Responding to url validation challenge provider=zoom")
            return AttendanceWebhookResult(
                provider_event_type=event.provider_event_type,
                outcome="url_validated",
                account_id=explicit_account_id,
                challenge=build_url_validation_response(signing_secret, event.challenge_token),
            )

        if self.settings.zoom_signature_verification_enabled:
            self._require_signing_secret(signing_secret)
            if not verify_zoom_signature(
                raw_body=raw_body,
                signature=signature,
                timestamp=timestamp,
                secret=signing_secret,
                tolerance_seconds=self.settings.zoom_signature_tolerance_seconds,
            ):
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Unauthorized",
                )

        resolved_account_id = self.accounts.resolve(
            platform=LivePlatform.zoom,
            explicit_account_id=explicit_account_id,
        )
        return self._dispatch(account_id=resolved_account_id, event=event)

    def process_google_meet_webhook(
        self,
        *,
        raw_body: bytes,
        account_id: str | None,
        shared_secret: str | None,
    ) -> AttendanceWebhookResult:
        try:
            event = self.normalizer.normalize_google_meet(raw_body)
        except EventNormalizationError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

        resolved_account_id = self.accounts.resolve(
            platform=LivePlatform.google_meet,
            explicit_account_id=account_id,
        )
        integration_config = self.accounts.get_integration_config(
            platform=LivePlatform.google_meet,
            account_id=resolved_account_id,
        )
        expected_secret = (
            str(integration_config.get("webhook_secret") or "").strip()
            or self.settings.google_meet_webhook_secret.strip()
        )
        if expected_secret and not shared_secret_matches(shared_secret, expected_secret):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unauthorized",
            )

        return self._dispatch(account_id=resolved_account_id, event=event)

    def _dispatch(self, *, account_id: str, event: NormalizedEvent) -> AttendanceWebhookResult:
        result = AttendanceWebhookResult(
            provider_event_type=event.provider_event_type,
            outcome="ignored_event",
            account_id=account_id,
        )

        if event.kind == EventKind.session_started:
            result.outcome = self.sessions.start_session(account_id=account_id, event=event).outcome
        elif event.kind == EventKind.session_ended:
            result.outcome = self.sessions.end_session(account_id=account_id, event=event).outcome
        elif event.kind == EventKind.participant_joined:
            attendance_result = self.tracker.record_join(account_id=account_id, event=event)
            result.outcome = attendance_result.outcome
            if attendance_result.created and attendance_result.attendance and attendance_result.session:
                result.reconciliation = self._reconcile_deliveries(attendance_result)
        elif event.kind == EventKind.participant_left:
            result.outcome = self.tracker.record_leave(account_id=account_id, event=event).outcome
        else:
            logger.info(
                "Unhandled webhook event provider=%s event=%s",
                event.platform.value,
                event.provider_event_type,
            )

        return result

    def _reconcile_deliveries(self, attendance_result: AttendanceResult) -> ReconciliationResult | None:
        try:
            reconciliation = self.reconciler.reconcile(
                attendance=attendance_result.attendance,
                session=attendance_result.session,
            )
        except Exception:
            # Attendance is already committed; provider retries arrive as duplicate joins.
            logger.exception(
                "Delivery reconciliation failed attendance_id=%s",
                attendance_result.attendance.id,
            )
            return None

        logger.info(
            "Delivery reconciliation finished attendance_id=%s status=%s matched=%s created=%s updated=%s failed=%s",
            attendance_result.attendance.id,
            reconciliation.status,
            reconciliation.matched_count,
            reconciliation.created_count,
            reconciliation.updated_count,
            len(reconciliation.failed_event_ids),
        )
        return reconciliation

    def _resolve_zoom_signing_secret(self, account_id: str | None) -> str:
        integration_config = self.accounts.get_integration_config(
            platform=LivePlatform.zoom,
            account_id=account_id,
        )
        account_secret = str(integration_config.get("secret_token") or "").strip()
        return account_secret or self.settings.zoom_webhook_secret.strip()

    def _require_signing_secret(self, signing_secret: str) -> None:
        if not signing_secret:
            logger.error("Webhook signing secret is not configured provider=zoom")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Webhook signing secret is not configured.",
            )
