"""
Record types shared by the intake pipeline.

Rows come back from the transactional store as plain dicts keyed by the
store's column names; each record type knows how to build itself from one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class DocumentStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    FILED = "filed"
    NEEDS_REVIEW = "needs_review"
    REJECTED = "rejected"

    REPROCESSABLE = (NEEDS_REVIEW, PENDING)


class ShiftStatus:
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Project:
    id: str
    name: str

    @classmethod
    def from_row(cls, row: dict) -> Project:
        return cls(id=str(row["id"]), name=str(row.get("name") or ""))


@dataclass(frozen=True)
class Folder:
    id: str
    name: str
    classification_hint: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> Folder:
        hint = row.get("ai_classification_hint")
        return cls(
            id=str(row["id"]),
            name=str(row.get("folder_name") or ""),
            classification_hint=str(hint) if hint else None,
        )


@dataclass(frozen=True)
class Shift:
    id: str
    project_id: str
    status: str

    @classmethod
    def from_row(cls, row: dict) -> Shift:
        return cls(
            id=str(row["id"]),
            project_id=str(row.get("project_id") or ""),
            status=str(row.get("status") or ShiftStatus.DRAFT),
        )


@dataclass(frozen=True)
class ShiftWorker:
    id: str
    shift_id: str
    name: str
    email: str | None = None
    form_submitted: bool = False
    document_id: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> ShiftWorker:
        document_id = row.get("document_id")
        return cls(
            id=str(row["id"]),
            shift_id=str(row["shift_id"]),
            name=str(row.get("name") or ""),
            email=row.get("email") or None,
            form_submitted=bool(row.get("form_submitted", False)),
            document_id=str(document_id) if document_id else None,
        )


@dataclass(frozen=True)
class ReceivedDocument:
    id: str
    project_id: str
    storage_path: str
    status: str = DocumentStatus.PENDING
    folder_id: str | None = None
    shift_id: str | None = None
    mime_type: str | None = None
    source_identity: str | None = None
    original_filename: str | None = None
    file_size: int | None = None
    email_subject: str | None = None
    classification_label: str | None = None
    confidence_score: int | None = None
    extracted_data: dict[str, Any] = field(default_factory=dict)
    summary: str | None = None
    received_at: str | None = None
    processed_at: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> ReceivedDocument:
        def optional_str(key: str) -> str | None:
            value = row.get(key)
            return str(value) if value is not None else None

        extracted = row.get("ai_extracted_data")
        return cls(
            id=str(row["id"]),
            project_id=str(row.get("project_id") or ""),
            storage_path=str(row.get("storage_path") or ""),
            status=str(row.get("status") or DocumentStatus.PENDING),
            folder_id=optional_str("folder_id"),
            shift_id=optional_str("shift_id"),
            mime_type=optional_str("mime_type"),
            source_identity=optional_str("source_email"),
            original_filename=optional_str("original_filename"),
            file_size=row.get("file_size"),
            email_subject=optional_str("email_subject"),
            classification_label=optional_str("ai_classification"),
            confidence_score=row.get("confidence_score"),
            extracted_data=extracted if isinstance(extracted, dict) else {},
            summary=optional_str("ai_summary"),
            received_at=optional_str("received_at"),
            processed_at=optional_str("processed_at"),
        )
