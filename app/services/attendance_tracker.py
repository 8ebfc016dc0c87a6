from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from app.schemas.attendance import AttendanceRecord, LiveSession, NormalizedEvent, OutboxTask
from app.services.attendance_store import AttendanceStore
from app.services.identity_resolver import IdentityMatch, IdentityResolver
from app.services.session_lifecycle_service import SessionLifecycleService

SCORE_RECOMPUTE_TASK_TYPE = "client_scores.recompute"

logger = logging.getLogger(__name__)


@dataclass
class AttendanceResult:
    outcome: str
    session: LiveSession | None = None
    attendance: AttendanceRecord | None = None
    identity: IdentityMatch | None = None
    created: bool = False


class AttendanceTracker:
    def __init__(
        self,
        store: AttendanceStore,
        sessions: SessionLifecycleService | None = None,
        identity_resolver: IdentityResolver | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self._clock = clock or (lambda: datetime.now(UTC))
        self.sessions = sessions or SessionLifecycleService(store, clock=self._clock)
        self.identity_resolver = identity_resolver or IdentityResolver(store)

    def record_join(self, *, account_id: str, event: NormalizedEvent) -> AttendanceResult:
        lookup = self._resolve_session_and_client(account_id=account_id, event=event, action="join")
        if isinstance(lookup, AttendanceResult):
            return lookup
        session, identity = lookup

        join_time = event.participant.earliest_join_time or self._clock()
        join_delay_sec = max(0, int((join_time - session.start_time).total_seconds()))
        record, created = self.store.open_attendance(
            account_id=session.account_id,
            live_session_id=session.id,
            client_id=identity.client_id,
            join_time=join_time,
            join_delay_sec=join_delay_sec,
        )
        attendance = AttendanceRecord.model_validate(record)
        if not created:
            logger.info(
                "Duplicate join ignored; attendance already open session_id=%s client_id=%s attendance_id=%s",
                session.id,
                identity.client_id,
                attendance.id,
            )
            return AttendanceResult(
                outcome="attendance_already_open",
                session=session,
                attendance=attendance,
                identity=identity,
            )

        logger.info(
            "Attendance recorded session_id=%s client_id=%s strategy=%s join_delay_sec=%s",
            session.id,
            identity.client_id,
            identity.strategy,
            join_delay_sec,
        )
        self._enqueue_score_recompute(attendance, transition="join")
        return AttendanceResult(
            outcome="attendance_recorded",
            session=session,
            attendance=attendance,
            identity=identity,
            created=True,
        )

    def record_leave(self, *, account_id: str, event: NormalizedEvent) -> AttendanceResult:
        lookup = self._resolve_session_and_client(account_id=account_id, event=event, action="leave")
        if isinstance(lookup, AttendanceResult):
            return lookup
        session, identity = lookup

        open_record = self.store.get_open_attendance(
            live_session_id=session.id,
            client_id=identity.client_id,
        )
        if not open_record:
            logger.info(
                "Leave ignored; no open attendance session_id=%s client_id=%s",
                session.id,
                identity.client_id,
            )
            return AttendanceResult(outcome="attendance_not_open", session=session, identity=identity)

        open_attendance = AttendanceRecord.model_validate(open_record)
        leave_time = event.participant.latest_leave_time or self._clock()
        duration_sec = int((leave_time - open_attendance.join_time).total_seconds())
        duration_clamped = duration_sec < 0
        if duration_clamped:
            logger.warning(
                "Leave precedes join; duration clamped attendance_id=%s raw_duration_sec=%s",
                open_attendance.id,
                duration_sec,
            )
            duration_sec = 0

        record = self.store.close_attendance(
            attendance_id=open_attendance.id,
            leave_time=leave_time,
            duration_sec=duration_sec,
            duration_clamped=duration_clamped,
        )
        if not record:
            logger.info("Leave ignored; attendance closed concurrently attendance_id=%s", open_attendance.id)
            return AttendanceResult(outcome="attendance_not_open", session=session, identity=identity)

        attendance = AttendanceRecord.model_validate(record)
        logger.info(
            "Attendance closed session_id=%s client_id=%s duration_sec=%s",
            session.id,
            identity.client_id,
            duration_sec,
        )
        self._enqueue_score_recompute(attendance, transition="leave")
        return AttendanceResult(
            outcome="attendance_closed",
            session=session,
            attendance=attendance,
            identity=identity,
        )

    def _resolve_session_and_client(
        self,
        *,
        account_id: str,
        event: NormalizedEvent,
        action: str,
    ) -> tuple[LiveSession, IdentityMatch] | AttendanceResult:
        if not event.participant:
            logger.info("Participant %s ignored; payload has no participant", action)
            return AttendanceResult(outcome="ignored_missing_participant")

        session = self.sessions.find_session(
            account_id=account_id,
            platform=event.platform,
            session_ref=event.session_ref,
        )
        if not session:
            logger.info(
                "Participant %s ignored; no live session account_id=%s platform=%s",
                action,
                account_id,
                event.platform.value,
            )
            return AttendanceResult(outcome="session_not_found")

        identity = self.identity_resolver.resolve(session.account_id, event.participant)
        if not identity:
            logger.info(
                "Participant %s ignored; no matching client session_id=%s has_email=%s has_name=%s",
                action,
                session.id,
                bool(event.participant.email),
                bool(event.participant.display_name),
            )
            return AttendanceResult(outcome="participant_unresolved", session=session)

        return session, identity

    def _enqueue_score_recompute(self, attendance: AttendanceRecord, *, transition: str) -> None:
        try:
            record, created = self.store.enqueue_task(
                account_id=attendance.account_id,
                task_type=SCORE_RECOMPUTE_TASK_TYPE,
                dedupe_key=f"{SCORE_RECOMPUTE_TASK_TYPE}:{attendance.id}:{transition}",
                payload={
                    "client_id": attendance.client_id,
                    "attendance_id": attendance.id,
                    "live_session_id": attendance.live_session_id,
                    "transition": transition,
                },
            )
        except Exception:
            logger.exception(
                "Score recompute enqueue failed attendance_id=%s transition=%s",
                attendance.id,
                transition,
            )
            return

        if created:
            task = OutboxTask.model_validate(record)
            logger.info(
                "Score recompute enqueued task_id=%s attendance_id=%s transition=%s",
                task.id,
                attendance.id,
                transition,
            )
