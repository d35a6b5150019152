"""
Document Lifecycle
==================

Turns a classification, folder match and shift match into the document's
terminal status and persists it.

A document is ``filed`` only when the model's confidence reaches the
auto-file threshold AND a folder matched; every other outcome is
``needs_review``. ``rejected`` is a reviewer decision and is never assigned
here. Each document's fields are written in one store call; the shift worker
update that may follow is best-effort and never undoes the document write.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any

import structlog

from classifier.provider import ClassificationResult
from common.config import Settings
from common.models import DocumentStatus, ReceivedDocument
from common.supabase import IntakeStore, StoreError

from .folders import FolderMatch
from .shifts import ShiftCorrelator, ShiftMatch, WorkerLink

log = structlog.get_logger(__name__)


def decide_status(confidence: int, folder_id: str | None, threshold: int = 70) -> str:
    """Return ``filed`` iff confidence >= threshold and a folder matched."""
    if folder_id is not None and confidence >= threshold:
        return DocumentStatus.FILED
    return DocumentStatus.NEEDS_REVIEW


@dataclass(frozen=True)
class RoutingOutcome:
    """Everything the pipeline learned about one document."""

    classification: ClassificationResult
    folder_match: FolderMatch | None = None
    shift_match: ShiftMatch | None = None

    @property
    def folder_id(self) -> str | None:
        return self.folder_match.folder_id if self.folder_match else None

    @property
    def shift_id(self) -> str | None:
        return self.shift_match.shift_id if self.shift_match else None


@dataclass(frozen=True)
class FinalizedDocument:
    document_id: str
    status: str
    worker_link: WorkerLink | None = None
    worker_link_error: str | None = None


class DocumentLifecycle:
    """
    Computes and persists terminal document states.
    """

    def __init__(self, store: IntakeStore, correlator: ShiftCorrelator, settings: Settings):
        self.store = store
        self.correlator = correlator
        self.settings = settings

    def status_for(self, outcome: RoutingOutcome) -> str:
        return decide_status(
            outcome.classification.confidence,
            outcome.folder_id,
            self.settings.AUTO_FILE_CONFIDENCE,
        )

    def _classification_fields(self, outcome: RoutingOutcome, status: str) -> dict[str, Any]:
        result = outcome.classification
        return {
            "folder_id": outcome.folder_id,
            "shift_id": outcome.shift_id,
            "ai_classification": result.classification,
            "confidence_score": result.confidence,
            "ai_extracted_data": result.extracted_data,
            "ai_summary": result.summary,
            "status": status,
            "processed_at": dt.datetime.now(dt.timezone.utc).isoformat(),
        }

    def finalize_new(self, intake_fields: dict[str, Any], outcome: RoutingOutcome) -> FinalizedDocument:
        """
        Insert a new document row carrying intake metadata and the routing result.

        Store errors propagate: no row means nothing to report as processed.
        """
        status = self.status_for(outcome)
        fields = dict(intake_fields)
        fields.update(self._classification_fields(outcome, status))
        document: ReceivedDocument = self.store.insert_document(fields)
        self._log_status(document.id, outcome, status)
        return self._link_worker(document.id, status, outcome)

    def finalize_existing(self, document_id: str, outcome: RoutingOutcome) -> FinalizedDocument:
        """Update an existing document in place with the routing result."""
        status = self.status_for(outcome)
        self.store.update_document(document_id, self._classification_fields(outcome, status))
        self._log_status(document_id, outcome, status)
        return self._link_worker(document_id, status, outcome)

    def _log_status(self, document_id: str, outcome: RoutingOutcome, status: str) -> None:
        if status == DocumentStatus.NEEDS_REVIEW and outcome.folder_id is None:
            log.info(
                "No folder match; document needs review",
                doc_id=document_id,
                confidence=outcome.classification.confidence,
            )
        log.info(
            "Document status recorded",
            doc_id=document_id,
            classification=outcome.classification.classification,
            status=status,
        )

    def _link_worker(self, document_id: str, status: str, outcome: RoutingOutcome) -> FinalizedDocument:
        if outcome.shift_match is None or not outcome.shift_match.is_worker_match:
            return FinalizedDocument(document_id=document_id, status=status)
        try:
            link = self.correlator.link_worker(outcome.shift_match, document_id)
        except StoreError as e:
            log.exception(
                "Failed to update shift worker",
                doc_id=document_id,
                worker_id=outcome.shift_match.worker_id,
            )
            return FinalizedDocument(
                document_id=document_id,
                status=status,
                worker_link_error=str(e),
            )
        return FinalizedDocument(document_id=document_id, status=status, worker_link=link)
