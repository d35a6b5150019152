import pytest

from common.models import ShiftStatus
from common.supabase import StoreError
from routing.shifts import (
    ShiftCorrelator,
    ShiftMatch,
    extract_email_addresses,
    extract_sender_address,
    match_worker_by_name,
)


@pytest.fixture
def correlator(store):
    return ShiftCorrelator(store)


def test_extract_email_addresses_handles_display_names_and_lists():
    field = '"Jane Doe" <intake+proj1@example.com>, ops@example.com'

    assert extract_email_addresses(field) == ["intake+proj1@example.com", "ops@example.com"]


def test_extract_email_addresses_lowercases():
    assert extract_email_addresses("Intake <INTAKE@Example.com>") == ["intake@example.com"]
    assert extract_email_addresses("") == []
    assert extract_email_addresses(None) == []


@pytest.mark.parametrize(
    "identity, expected",
    [
        ('"Alice A" <ALICE@X.COM>', "alice@x.com"),
        ("  bob@x.com ", "bob@x.com"),
        ("", ""),
        (None, ""),
    ],
)
def test_extract_sender_address(identity, expected):
    assert extract_sender_address(identity) == expected


def test_email_match_marks_worker_submitted_exactly_once(store, correlator):
    store.add_shift("p1", "s1")
    store.add_worker("s1", "w-alice", "Alice Adams", email="alice@x.com")

    first = correlator.correlate("p1", '"Alice A" <ALICE@X.COM>', worker_name=None)

    assert first == ShiftMatch(shift_id="s1", worker_id="w-alice", tier="email")
    link = correlator.link_worker(first, "doc-1")
    assert link.linked is True
    assert store.workers["w-alice"]["form_submitted"] is True
    assert store.workers["w-alice"]["document_id"] == "doc-1"
    assert store.workers["w-alice"]["form_submitted_at"] is not None

    # The shift is still the only active one, so the second document is
    # linked to it without touching the submitted worker.
    second = correlator.correlate("p1", '"Alice A" <ALICE@X.COM>', worker_name=None)

    assert second.worker_id is None
    assert second.tier == "single_shift"
    assert correlator.link_worker(second, "doc-2") is None
    assert store.workers["w-alice"]["document_id"] == "doc-1"


def test_second_document_finds_no_worker_when_other_shifts_exist(store, correlator):
    store.add_shift("p1", "s1")
    store.add_shift("p1", "s2")
    store.add_worker("s1", "w-alice", "Alice Adams", email="alice@x.com")

    first = correlator.correlate("p1", "alice@x.com", worker_name=None)
    correlator.link_worker(first, "doc-1")

    assert correlator.correlate("p1", "alice@x.com", worker_name=None) is None


def test_email_tier_wins_over_name_tier(store, correlator):
    store.add_shift("p1", "s1")
    store.add_worker("s1", "w-bob", "Alice Adams", email="bob@x.com")
    store.add_worker("s1", "w-alice", "Someone Else", email="alice@x.com")

    match = correlator.correlate("p1", "alice@x.com", worker_name="Alice Adams")

    assert match.worker_id == "w-alice"
    assert match.tier == "email"


def test_name_tier_matches_partial_names(store, correlator):
    store.add_shift("p1", "s1")
    store.add_worker("s1", "w-1", "Robert Smith", email=None)

    match = correlator.correlate("p1", "foreman@site.com", worker_name="  robert smith jr ")

    assert match == ShiftMatch(shift_id="s1", worker_id="w-1", tier="name")


def test_match_worker_by_name_ignores_blank_names(store):
    store.add_shift("p1", "s1")
    store.add_worker("s1", "w-blank", "   ")
    store.add_worker("s1", "w-2", "Dana Lee")
    workers = store.list_open_shift_workers("p1")

    assert match_worker_by_name("Dana", workers).id == "w-2"
    assert match_worker_by_name("", workers) is None
    assert match_worker_by_name(None, workers) is None


def test_workers_of_inactive_shifts_are_not_candidates(store, correlator):
    store.add_shift("p1", "s-done", status=ShiftStatus.COMPLETED)
    store.add_worker("s-done", "w-1", "Alice Adams", email="alice@x.com")

    assert correlator.correlate("p1", "alice@x.com", worker_name="Alice Adams") is None


def test_single_active_shift_fallback_links_shift_only(store, correlator):
    store.add_shift("p1", "s1")
    store.add_shift("p1", "s-old", status=ShiftStatus.CANCELLED)
    store.add_worker("s1", "w-1", "Carol Chen", email="carol@x.com")

    match = correlator.correlate("p1", "stranger@x.com", worker_name="Nobody")

    assert match == ShiftMatch(shift_id="s1", worker_id=None, tier="single_shift")
    assert match.is_worker_match is False
    assert correlator.link_worker(match, "doc-1") is None
    assert store.workers["w-1"]["form_submitted"] is False


def test_no_match_with_several_active_shifts(store, correlator):
    store.add_shift("p1", "s1")
    store.add_shift("p1", "s2")

    assert correlator.correlate("p1", "stranger@x.com", worker_name=None) is None


def test_link_worker_lost_race_is_a_no_op(store, correlator):
    store.add_shift("p1", "s1")
    store.add_worker("s1", "w-1", "Alice Adams", email="alice@x.com")
    match = correlator.correlate("p1", "alice@x.com", worker_name=None)
    store.workers["w-1"]["form_submitted"] = True

    link = correlator.link_worker(match, "doc-2")

    assert link.linked is False
    assert store.workers["w-1"]["document_id"] is None


def test_link_worker_propagates_store_errors(store, correlator):
    store.fail_worker_update = True
    match = ShiftMatch(shift_id="s1", worker_id="w-1", tier="email")

    with pytest.raises(StoreError):
        correlator.link_worker(match, "doc-1")
