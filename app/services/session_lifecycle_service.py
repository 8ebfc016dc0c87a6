from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from app.schemas.attendance import LivePlatform, LiveSession, NormalizedEvent
from app.services.attendance_store import AttendanceStore

DEFAULT_SESSION_TITLES = {
    LivePlatform.zoom: "Untitled Meeting",
    LivePlatform.google_meet: "Google Meet Session",
}

logger = logging.getLogger(__name__)


@dataclass
class SessionLifecycleResult:
    outcome: str
    session: LiveSession | None = None


class SessionLifecycleService:
    def __init__(
        self,
        store: AttendanceStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self._clock = clock or (lambda: datetime.now(UTC))

    def start_session(self, *, account_id: str, event: NormalizedEvent) -> SessionLifecycleResult:
        if not event.session_ref:
            logger.warning(
                "Session start ignored without meeting id account_id=%s platform=%s",
                account_id,
                event.platform.value,
            )
            return SessionLifecycleResult(outcome="ignored_missing_session_ref")

        start_time = (event.session_window.start if event.session_window else None) or self._clock()
        record, created = self.store.create_session_if_absent(
            account_id=account_id,
            platform=event.platform.value,
            external_meeting_id=event.session_ref,
            title=event.title or DEFAULT_SESSION_TITLES[event.platform],
            start_time=start_time,
        )
        session = LiveSession.model_validate(record)
        if not created:
            logger.info(
                "Live session already started account_id=%s platform=%s session_id=%s",
                account_id,
                event.platform.value,
                session.id,
            )
            return SessionLifecycleResult(outcome="session_already_started", session=session)

        logger.info(
            "Live session created account_id=%s platform=%s session_id=%s",
            account_id,
            event.platform.value,
            session.id,
        )
        return SessionLifecycleResult(outcome="session_started", session=session)

    def end_session(self, *, account_id: str, event: NormalizedEvent) -> SessionLifecycleResult:
        session = self.find_session(
            account_id=account_id,
            platform=event.platform,
            session_ref=event.session_ref,
        )
        if not session:
            logger.info(
                "Session end ignored; no live session account_id=%s platform=%s",
                account_id,
                event.platform.value,
            )
            return SessionLifecycleResult(outcome="session_not_found")

        end_time = (event.session_window.end if event.session_window else None) or self._clock()
        record = self.store.close_session(session_id=session.id, end_time=end_time)
        if not record:
            logger.info(
                "Live session already ended account_id=%s session_id=%s",
                account_id,
                session.id,
            )
            return SessionLifecycleResult(outcome="session_already_ended", session=session)

        logger.info("Live session ended account_id=%s session_id=%s", account_id, session.id)
        return SessionLifecycleResult(outcome="session_ended", session=LiveSession.model_validate(record))

    def find_session(
        self,
        *,
        account_id: str,
        platform: LivePlatform,
        session_ref: str | None,
    ) -> LiveSession | None:
        if not session_ref:
            return None
        record = self.store.get_session(
            account_id=account_id,
            platform=platform.value,
            external_meeting_id=session_ref,
        )
        if not record:
            return None
        return LiveSession.model_validate(record)
