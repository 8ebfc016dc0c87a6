"""Best-effort mapping from a webhook participant to a known client.

Strategies run in order and the first one with any candidate wins. Inside a
strategy, ties are broken by the shortest full name (closest to the signal)
and then by client id, and the match is flagged as ambiguous so callers can
decide how much to trust it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from app.schemas.attendance import ClientIdentity, ParticipantSignal
from app.services.attendance_store import AttendanceStore

MIN_PARTIAL_NAME_LENGTH = 3

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityMatch:
    client_id: str
    strategy: str
    confidence: float
    candidate_count: int = 1

    @property
    def ambiguous(self) -> bool:
        return self.candidate_count > 1


@dataclass(frozen=True)
class MatchStrategy:
    name: str
    confidence: float
    matches: Callable[[ClientIdentity, ParticipantSignal], bool]


def _matches_email(client: ClientIdentity, participant: ParticipantSignal) -> bool:
    email = _normalize(participant.email)
    if not email:
        return False
    return email in {_normalize(known_email) for known_email in client.emails}


def _matches_full_name(client: ClientIdentity, participant: ParticipantSignal) -> bool:
    display_name = _normalize(participant.display_name)
    return bool(display_name) and _normalize(client.full_name) == display_name


def _full_name_contains(client: ClientIdentity, participant: ParticipantSignal) -> bool:
    display_name = _normalize(participant.display_name)
    if len(display_name) < MIN_PARTIAL_NAME_LENGTH:
        return False
    return display_name in _normalize(client.full_name)


def _full_name_starts_with_first_token(client: ClientIdentity, participant: ParticipantSignal) -> bool:
    tokens = _normalize(participant.display_name).split()
    if not tokens or len(tokens[0]) < MIN_PARTIAL_NAME_LENGTH:
        return False
    return _normalize(client.full_name).startswith(tokens[0])


MATCH_STRATEGIES: tuple[MatchStrategy, ...] = (
    MatchStrategy("email_exact", 1.0, _matches_email),
    MatchStrategy("full_name_exact", 0.9, _matches_full_name),
    MatchStrategy("full_name_contains", 0.7, _full_name_contains),
    MatchStrategy("first_token_prefix", 0.5, _full_name_starts_with_first_token),
)


def resolve_identity(
    candidates: Sequence[ClientIdentity],
    participant: ParticipantSignal,
    strategies: Sequence[MatchStrategy] = MATCH_STRATEGIES,
) -> IdentityMatch | None:
    for strategy in strategies:
        matched = [client for client in candidates if strategy.matches(client, participant)]
        if not matched:
            continue
        matched.sort(key=lambda client: (len(client.full_name), client.id))
        return IdentityMatch(
            client_id=matched[0].id,
            strategy=strategy.name,
            confidence=strategy.confidence,
            candidate_count=len(matched),
        )
    return None


class IdentityResolver:
    def __init__(self, store: AttendanceStore) -> None:
        self.store = store

    def resolve(self, account_id: str, participant: ParticipantSignal) -> IdentityMatch | None:
        if not participant.email and not participant.display_name:
            return None

        candidates = [
            ClientIdentity.model_validate(record)
            for record in self.store.list_clients(account_id)
        ]
        match = resolve_identity(candidates, participant)
        if match and match.ambiguous:
            logger.warning(
                "Ambiguous participant match account_id=%s strategy=%s candidate_count=%s client_id=%s",
                account_id,
                match.strategy,
                match.candidate_count,
                match.client_id,
            )
        return match


def _normalize(value: str | None) -> str:
    return " ".join((value or "").lower().split())
