from app.schemas.attendance import ClientIdentity, ParticipantSignal
from app.services.attendance_store import InMemoryAttendanceStore
from app.services.identity_resolver import IdentityResolver, resolve_identity


def _client(client_id: str, full_name: str, emails: list[str] | None = None) -> ClientIdentity:
    return ClientIdentity(id=client_id, account_id="account-1", full_name=full_name, emails=emails or [])


CANDIDATES = [
    _client("client-1", "Ana Paula Souza", ["ana@example.com"]),
    _client("client-2", "Bruno Lima", ["bruno@example.com", "b.lima@work.example"]),
    _client("client-3", "Carla Mendes"),
]


def test_email_match_wins_over_name() -> None:
    match = resolve_identity(
        CANDIDATES,
        ParticipantSignal(display_name="Carla Mendes", email="B.Lima@Work.Example"),
    )

    assert match is not None
    assert match.client_id == "client-2"
    assert match.strategy == "email_exact"
    assert match.confidence == 1.0
    assert not match.ambiguous


def test_email_miss_falls_back_to_display_name() -> None:
    match = resolve_identity(
        CANDIDATES,
        ParticipantSignal(display_name="carla mendes", email="unknown@example.com"),
    )

    assert match is not None
    assert match.client_id == "client-3"
    assert match.strategy == "full_name_exact"


def test_partial_display_name_matches_by_substring() -> None:
    match = resolve_identity(CANDIDATES, ParticipantSignal(display_name="Paula Souza"))

    assert match is not None
    assert match.client_id == "client-1"
    assert match.strategy == "full_name_contains"


def test_first_token_prefix_matches_when_rest_of_name_differs() -> None:
    match = resolve_identity(CANDIDATES, ParticipantSignal(display_name="Bruno (iPhone)"))

    assert match is not None
    assert match.client_id == "client-2"
    assert match.strategy == "first_token_prefix"
    assert match.confidence == 0.5


def test_short_first_token_does_not_match() -> None:
    match = resolve_identity(
        [_client("client-9", "Al Pacino")],
        ParticipantSignal(display_name="Al (guest)"),
    )

    assert match is None


def test_no_signal_or_no_candidate_returns_none() -> None:
    assert resolve_identity(CANDIDATES, ParticipantSignal()) is None
    assert resolve_identity(CANDIDATES, ParticipantSignal(display_name="Zeca Pagodinho")) is None
    assert resolve_identity([], ParticipantSignal(email="ana@example.com")) is None


def test_ambiguous_first_name_prefers_shortest_full_name_and_is_flagged() -> None:
    candidates = [
        _client("client-20", "Marina Costa Ribeiro"),
        _client("client-10", "Marina Alves"),
    ]

    match = resolve_identity(candidates, ParticipantSignal(display_name="Marina"))

    assert match is not None
    assert match.client_id == "client-10"
    assert match.strategy == "full_name_contains"
    assert match.candidate_count == 2
    assert match.ambiguous


def test_resolver_only_considers_clients_of_the_account() -> None:
    store = InMemoryAttendanceStore()
    store.add_client(account_id="account-other", full_name="Ana Paula Souza", emails=["ana@example.com"])
    own_client = store.add_client(account_id="account-1", full_name="Ana Souza")
    resolver = IdentityResolver(store)

    by_email = resolver.resolve("account-1", ParticipantSignal(email="ana@example.com"))
    by_name = resolver.resolve("account-1", ParticipantSignal(display_name="Ana Souza"))

    assert by_email is None
    assert by_name is not None
    assert by_name.client_id == own_client["_id"]


def test_short_display_name_does_not_match_by_substring() -> None:
    candidates = [_client("client-7", "Bruno Santana"), _client("client-8", "Jo")]

    assert resolve_identity(candidates, ParticipantSignal(display_name="a")) is None
    assert resolve_identity(candidates, ParticipantSignal(display_name="Br")) is None

    exact = resolve_identity(candidates, ParticipantSignal(display_name="jo"))
    assert exact is not None
    assert exact.client_id == "client-8"
    assert exact.strategy == "full_name_exact"
