import pytest

from classifier.provider import ClassificationResult
from common.models import DocumentStatus, Folder
from common.supabase import StoreError
from routing.folders import FolderMatch
from routing.lifecycle import DocumentLifecycle, RoutingOutcome, decide_status
from routing.shifts import ShiftCorrelator, ShiftMatch

FOLDER = Folder(id="f1", name="FLRA Forms")


@pytest.fixture
def lifecycle(store, settings):
    return DocumentLifecycle(store, ShiftCorrelator(store), settings)


def _outcome(confidence=90, folder=True, shift_match=None):
    return RoutingOutcome(
        classification=ClassificationResult(
            classification="FLRA Forms",
            confidence=confidence,
            extracted_data={"workerName": "Alice"},
            summary="FLRA by Alice",
        ),
        folder_match=FolderMatch(folder=FOLDER, tier="exact") if folder else None,
        shift_match=shift_match,
    )


@pytest.mark.parametrize(
    "confidence, folder_id, expected",
    [
        (70, "f1", DocumentStatus.FILED),
        (100, "f1", DocumentStatus.FILED),
        (69, "f1", DocumentStatus.NEEDS_REVIEW),
        (0, "f1", DocumentStatus.NEEDS_REVIEW),
        (95, None, DocumentStatus.NEEDS_REVIEW),
        (0, None, DocumentStatus.NEEDS_REVIEW),
    ],
)
def test_decide_status(confidence, folder_id, expected):
    assert decide_status(confidence, folder_id, threshold=70) == expected


def test_decide_status_never_rejects():
    statuses = {
        decide_status(confidence, folder_id)
        for confidence in range(0, 101)
        for folder_id in ("f1", None)
    }

    assert statuses == {DocumentStatus.FILED, DocumentStatus.NEEDS_REVIEW}


def test_threshold_comes_from_settings(lifecycle, settings):
    settings.AUTO_FILE_CONFIDENCE = 95

    assert lifecycle.status_for(_outcome(confidence=90)) == DocumentStatus.NEEDS_REVIEW
    assert lifecycle.status_for(_outcome(confidence=95)) == DocumentStatus.FILED


def test_finalize_existing_writes_all_fields_in_one_update(store, lifecycle):
    store.add_document("p1", "d1")

    finalized = lifecycle.finalize_existing(
        "d1", _outcome(shift_match=ShiftMatch("s1", None, "single_shift"))
    )

    assert finalized.status == DocumentStatus.FILED
    assert len(store.updates) == 1
    document_id, fields = store.updates[0]
    assert document_id == "d1"
    assert fields["folder_id"] == "f1"
    assert fields["shift_id"] == "s1"
    assert fields["ai_classification"] == "FLRA Forms"
    assert fields["confidence_score"] == 90
    assert fields["ai_extracted_data"] == {"workerName": "Alice"}
    assert fields["ai_summary"] == "FLRA by Alice"
    assert fields["status"] == DocumentStatus.FILED
    assert fields["processed_at"]


def test_finalize_existing_without_folder_needs_review(store, lifecycle):
    store.add_document("p1", "d1")

    finalized = lifecycle.finalize_existing("d1", _outcome(folder=False))

    assert finalized.status == DocumentStatus.NEEDS_REVIEW
    assert store.documents["d1"]["folder_id"] is None
    assert store.documents["d1"]["shift_id"] is None


def test_finalize_new_inserts_intake_fields_and_links_worker(store, lifecycle):
    store.add_shift("p1", "s1")
    store.add_worker("s1", "w1", "Alice", email="alice@x.com")

    finalized = lifecycle.finalize_new(
        {"project_id": "p1", "storage_path": "p1/1-a.pdf", "source_email": "alice@x.com"},
        _outcome(shift_match=ShiftMatch("s1", "w1", "email")),
    )

    row = store.inserts[0]
    assert row["project_id"] == "p1"
    assert row["storage_path"] == "p1/1-a.pdf"
    assert row["status"] == DocumentStatus.FILED
    assert finalized.document_id == row["id"]
    assert finalized.worker_link.linked is True
    assert store.workers["w1"]["document_id"] == row["id"]


def test_worker_update_failure_does_not_undo_document_write(store, lifecycle):
    store.add_document("p1", "d1")
    store.fail_worker_update = True

    finalized = lifecycle.finalize_existing(
        "d1", _outcome(shift_match=ShiftMatch("s1", "w1", "email"))
    )

    assert finalized.status == DocumentStatus.FILED
    assert store.documents["d1"]["status"] == DocumentStatus.FILED
    assert "shift_workers" in finalized.worker_link_error
    assert finalized.worker_link is None


def test_document_write_failure_propagates(store, lifecycle):
    store.add_document("p1", "d1")
    store.fail_update_for.add("d1")

    with pytest.raises(StoreError):
        lifecycle.finalize_existing("d1", _outcome())
