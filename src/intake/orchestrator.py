"""
Intake Pipeline
===============

Drives documents through classification, folder matching, shift correlation
and the lifecycle controller.

Two modes share the per-document steps:

- webhook mode (`IntakePipeline.process_message`): one inbound message with
  N attachments. The project is resolved from the recipient addresses, each
  attachment is stored in the blob store and a new document row is inserted.
- batch mode (`IntakePipeline.reprocess`): one project and either explicit
  document ids or every document still pending or awaiting review. Each
  document is downloaded and updated in place.

Documents are processed one after another with a fixed delay between them.
A failure on one document is recorded in its `DocumentResult` and never
aborts the rest of the invocation; only validation failures (no project, no
folder taxonomy) fail the whole call.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Sequence

import structlog

from classifier.provider import ClassificationClient, ClassificationError, ClassificationResult
from common.config import Settings
from common.models import DocumentStatus, Folder, Project, ReceivedDocument
from common.supabase import BlobStore, BlobStoreError, IntakeStore, StoreError
from routing.folders import FolderMatcher
from routing.lifecycle import DocumentLifecycle, FinalizedDocument, RoutingOutcome
from routing.shifts import ShiftCorrelator, ShiftMatch

from .errors import EmptyFileError, IntakeValidationError, ProjectNotFoundError
from .webhook import Attachment, InboundMessage

log = structlog.get_logger(__name__)

INFRASTRUCTURE_ERRORS = (StoreError, BlobStoreError, EmptyFileError)


@dataclass
class DocumentResult:
    """Per-document outcome reported back to the caller."""

    filename: str | None = None
    document_id: str | None = None
    status: str | None = None
    classification: str | None = None
    confidence: int | None = None
    folder_id: str | None = None
    shift_id: str | None = None
    worker_id: str | None = None
    storage_path: str | None = None
    error: str | None = None
    worker_link_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class IntakeReport:
    project_id: str
    results: list[DocumentResult] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def filed(self) -> int:
        return sum(1 for result in self.results if result.status == DocumentStatus.FILED)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.ok)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "processed": self.processed,
            "filed": self.filed,
            "failed": self.failed,
            "results": [result.to_dict() for result in self.results],
        }


def storage_path_for(project_id: str, filename: str, now: Callable[[], float] = time.time) -> str:
    """Blob path for a newly received attachment."""
    return f"{project_id}/{int(now() * 1000)}-{filename}"


class IntakePipeline:
    """
    Sequential intake driver for webhook and batch invocations.

    Collaborators default to the standard implementations built from
    ``settings``; tests pass their own.
    """

    def __init__(
        self,
        settings: Settings,
        store: IntakeStore,
        blobs: BlobStore,
        classifier: ClassificationClient,
        matcher: FolderMatcher | None = None,
        correlator: ShiftCorrelator | None = None,
        lifecycle: DocumentLifecycle | None = None,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.store = store
        self.blobs = blobs
        self.classifier = classifier
        self.matcher = matcher or FolderMatcher(settings.WORD_OVERLAP_THRESHOLD)
        self.correlator = correlator or ShiftCorrelator(store)
        self.lifecycle = lifecycle or DocumentLifecycle(store, self.correlator, settings)
        self.sleep = sleep
        self.now = now

    # --- shared steps ---

    def resolve_project(self, addresses: Sequence[str]) -> Project:
        """Return the project registered for the first matching address."""
        for address in addresses:
            project = self.store.find_project_by_intake_address(address)
            if project is not None:
                log.info("Resolved project", project_id=project.id, address=address)
                return project
        raise ProjectNotFoundError(list(addresses))

    def load_folders(self, project_id: str) -> list[Folder]:
        folders = self.store.list_folders(project_id)
        if not folders:
            raise IntakeValidationError("No folders configured for this project")
        return folders

    def classify(
        self,
        content: bytes,
        mime_type: str | None,
        folders: Sequence[Folder],
        filename: str,
    ) -> ClassificationResult:
        """
        Classify one document. Classification failures become an Unknown
        result with the failure captured in the summary.
        """
        try:
            return self.classifier.classify(content, mime_type, folders, filename=filename)
        except ClassificationError as e:
            log.warning("AI classification failed", filename=filename, error=str(e))
            return ClassificationResult.fallback(f"AI error: {e}")

    def route(
        self,
        project_id: str,
        classification: ClassificationResult,
        folders: Sequence[Folder],
        source_identity: str | None,
        existing_shift_id: str | None = None,
    ) -> RoutingOutcome:
        folder_match = self.matcher.match(classification.classification, folders)
        if existing_shift_id:
            shift_match = ShiftMatch(shift_id=existing_shift_id, worker_id=None, tier="existing")
        else:
            try:
                shift_match = self.correlator.correlate(
                    project_id, source_identity, classification.worker_name
                )
            except StoreError:
                log.exception("Shift matching failed; continuing without shift link")
                shift_match = None
        return RoutingOutcome(
            classification=classification,
            folder_match=folder_match,
            shift_match=shift_match,
        )

    def _pace(self, index: int, total: int) -> None:
        delay = self.settings.INTER_DOCUMENT_DELAY_SECONDS
        if delay > 0 and index < total - 1:
            self.sleep(delay)

    @staticmethod
    def _fill_result(
        result: DocumentResult, outcome: RoutingOutcome, finalized: FinalizedDocument
    ) -> DocumentResult:
        result.document_id = finalized.document_id
        result.status = finalized.status
        result.classification = outcome.classification.classification
        result.confidence = outcome.classification.confidence
        result.folder_id = outcome.folder_id
        result.shift_id = outcome.shift_id
        if finalized.worker_link is not None and finalized.worker_link.linked:
            result.worker_id = finalized.worker_link.worker_id
        result.worker_link_error = finalized.worker_link_error
        return result

    # --- webhook mode ---

    def process_message(self, message: InboundMessage) -> IntakeReport:
        """
        Process every attachment of an inbound message.

        Raises:
            ProjectNotFoundError: no recipient address belongs to a project.
            IntakeValidationError: the project has no folders.
        """
        project = self.resolve_project(message.recipient_addresses)
        folders = self.load_folders(project.id)
        report = IntakeReport(project_id=project.id)

        log.info(
            "Processing inbound message",
            project_id=project.id,
            sender=message.sender,
            attachments=len(message.attachments),
        )
        total = len(message.attachments)
        for index, attachment in enumerate(message.attachments):
            result = DocumentResult(filename=attachment.filename)
            with structlog.contextvars.bound_contextvars(
                project_id=project.id, filename=attachment.filename
            ):
                try:
                    self._process_attachment(project, folders, message, attachment, result)
                except INFRASTRUCTURE_ERRORS as e:
                    log.error("Skipping attachment", error=str(e))
                    result.error = str(e)
            report.results.append(result)
            self._pace(index, total)

        log.info(
            "Inbound message processed",
            project_id=project.id,
            processed=report.processed,
            filed=report.filed,
            failed=report.failed,
        )
        return report

    def _process_attachment(
        self,
        project: Project,
        folders: Sequence[Folder],
        message: InboundMessage,
        attachment: Attachment,
        result: DocumentResult,
    ) -> None:
        if attachment.size == 0:
            raise EmptyFileError(f"Empty file: {attachment.filename}")

        path = storage_path_for(project.id, attachment.filename, self.now)
        self.blobs.upload(path, attachment.content, attachment.content_type)
        result.storage_path = path

        classification = self.classify(
            attachment.content, attachment.content_type, folders, attachment.filename
        )
        outcome = self.route(project.id, classification, folders, message.sender)
        try:
            finalized = self.lifecycle.finalize_new(
                {
                    "project_id": project.id,
                    "source_email": message.sender,
                    "email_subject": message.subject,
                    "original_filename": attachment.filename,
                    "file_size": attachment.size,
                    "storage_path": path,
                    "mime_type": attachment.content_type,
                },
                outcome,
            )
        except StoreError:
            log.error("Document row not written; stored file left without a row", storage_path=path)
            raise
        self._fill_result(result, outcome, finalized)

    # --- batch mode ---

    def reprocess(self, project_id: str | None, document_ids: list[str] | None = None) -> IntakeReport:
        """
        Re-run classification and routing for existing documents of a project.

        Raises:
            IntakeValidationError: missing project id or no folders.
        """
        if not project_id or not str(project_id).strip():
            raise IntakeValidationError("project_id is required")
        project_id = str(project_id).strip()

        folders = self.load_folders(project_id)
        documents = self.store.list_documents(project_id, document_ids or None)
        report = IntakeReport(project_id=project_id)
        if not documents:
            log.info("No documents to reprocess", project_id=project_id)
            return report

        log.info("Reprocessing documents", project_id=project_id, count=len(documents))
        total = len(documents)
        for index, document in enumerate(documents):
            result = DocumentResult(filename=document.original_filename, document_id=document.id)
            with structlog.contextvars.bound_contextvars(
                project_id=project_id, doc_id=document.id
            ):
                try:
                    self._reprocess_document(project_id, document, folders, result)
                except INFRASTRUCTURE_ERRORS as e:
                    log.error("Skipping document", error=str(e))
                    result.error = str(e)
            report.results.append(result)
            self._pace(index, total)

        log.info(
            "Reprocessing complete",
            project_id=project_id,
            processed=report.processed,
            filed=report.filed,
            failed=report.failed,
        )
        return report

    def _reprocess_document(
        self,
        project_id: str,
        document: ReceivedDocument,
        folders: Sequence[Folder],
        result: DocumentResult,
    ) -> None:
        content = self.blobs.download(document.storage_path)
        if not content:
            raise EmptyFileError(f"Empty file: {document.storage_path}")

        classification = self.classify(
            content,
            document.mime_type,
            folders,
            document.original_filename or "document",
        )
        outcome = self.route(
            project_id,
            classification,
            folders,
            document.source_identity,
            existing_shift_id=document.shift_id,
        )
        finalized = self.lifecycle.finalize_existing(document.id, outcome)
        self._fill_result(result, outcome, finalized)
