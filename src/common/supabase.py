"""
Supabase API Clients
====================

This module provides the two storage collaborators of the intake pipeline:

- `IntakeStore` talks to the transactional store through its PostgREST
  interface (projects, folders, shifts, shift workers, received documents).
- `BlobStore` talks to the object storage API holding the document bytes.

Both wrap a ``requests.Session`` authenticated with the service credential.
Calls are never retried here: a failed read or write is reported to the
caller immediately as a `StoreError` / `BlobStoreError`.
"""

from __future__ import annotations

from typing import Any, Iterable
from urllib.parse import quote

import requests
import structlog

from .config import Settings
from .models import (
    DocumentStatus,
    Folder,
    Project,
    ReceivedDocument,
    Shift,
    ShiftStatus,
    ShiftWorker,
)

log = structlog.get_logger(__name__)


class StoreError(Exception):
    """A transactional store read or write failed."""


class BlobStoreError(Exception):
    """A blob store read or write failed."""


class BlobNotFoundError(BlobStoreError):
    """The requested blob does not exist."""


def _in_filter(values: Iterable[str]) -> str:
    """Build a PostgREST ``in.(...)`` filter value."""
    return "in.(" + ",".join(str(value) for value in values) + ")"


class _SupabaseSession:
    """Shared session handling for the REST and storage clients."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._session = requests.Session()
        self._session.headers.update(
            {
                "apikey": settings.SUPABASE_SERVICE_ROLE_KEY,
                "Authorization": f"Bearer {settings.SUPABASE_SERVICE_ROLE_KEY}",
            }
        )

    def close(self) -> None:
        self._session.close()


class IntakeStore(_SupabaseSession):
    """Client for the tables read and written by the intake pipeline."""

    def _url(self, table: str) -> str:
        return f"{self.settings.SUPABASE_URL}/rest/v1/{table}"

    def _request(self, method: str, table: str, **kwargs) -> Any:
        try:
            response = self._session.request(
                method,
                self._url(table),
                timeout=self.settings.REQUEST_TIMEOUT,
                **kwargs,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise StoreError(f"{method} {table} failed: {e}") from e
        if not response.content:
            return None
        return response.json()

    def _select(self, table: str, params: dict) -> list[dict]:
        rows = self._request("GET", table, params=params)
        return rows if isinstance(rows, list) else []

    def find_project_by_intake_address(self, address: str) -> Project | None:
        """Return the project whose processing email equals ``address``."""
        rows = self._select(
            "supervisor_projects",
            {"select": "id,name", "processing_email": f"eq.{address}", "limit": 1},
        )
        return Project.from_row(rows[0]) if rows else None

    def list_folders(self, project_id: str) -> list[Folder]:
        rows = self._select(
            "project_folders",
            {
                "select": "id,folder_name,ai_classification_hint",
                "project_id": f"eq.{project_id}",
                "order": "sort_order.asc,created_at.asc",
            },
        )
        return [Folder.from_row(row) for row in rows]

    def list_documents(
        self, project_id: str, document_ids: list[str] | None = None
    ) -> list[ReceivedDocument]:
        """
        Return documents to (re)process: the given ids, or every document of
        the project that is still pending or awaiting review.
        """
        params = {"select": "*", "project_id": f"eq.{project_id}", "order": "received_at.asc"}
        if document_ids:
            params["id"] = _in_filter(document_ids)
        else:
            params["status"] = _in_filter(DocumentStatus.REPROCESSABLE)
        return [ReceivedDocument.from_row(row) for row in self._select("received_documents", params)]

    def list_active_shifts(self, project_id: str) -> list[Shift]:
        rows = self._select(
            "project_shifts",
            {
                "select": "id,project_id,status",
                "project_id": f"eq.{project_id}",
                "status": f"eq.{ShiftStatus.ACTIVE}",
            },
        )
        return [Shift.from_row(row) for row in rows]

    def list_open_shift_workers(self, project_id: str) -> list[ShiftWorker]:
        """Return unsubmitted workers of the project's active shifts."""
        rows = self._select(
            "shift_workers",
            {
                "select": (
                    "id,shift_id,name,email,form_submitted,document_id,"
                    "project_shifts!inner(id,project_id,status)"
                ),
                "project_shifts.project_id": f"eq.{project_id}",
                "project_shifts.status": f"eq.{ShiftStatus.ACTIVE}",
                "form_submitted": "is.false",
                "order": "created_at.asc",
            },
        )
        return [ShiftWorker.from_row(row) for row in rows]

    def insert_document(self, fields: dict) -> ReceivedDocument:
        rows = self._request(
            "POST",
            "received_documents",
            json=fields,
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise StoreError("Insert into received_documents returned no row")
        return ReceivedDocument.from_row(rows[0])

    def update_document(self, document_id: str, fields: dict) -> None:
        """Apply ``fields`` to one document in a single write."""
        self._request(
            "PATCH",
            "received_documents",
            params={"id": f"eq.{document_id}"},
            json=fields,
            headers={"Prefer": "return=minimal"},
        )

    def mark_worker_submitted(
        self, worker_id: str, document_id: str, submitted_at: str
    ) -> bool:
        """
        Record a form submission for a worker, only if it is still unsubmitted.

        Returns False when no row changed, i.e. the worker was already
        submitted (possibly by a concurrent caller).
        """
        rows = self._request(
            "PATCH",
            "shift_workers",
            params={"id": f"eq.{worker_id}", "form_submitted": "is.false"},
            json={
                "form_submitted": True,
                "form_submitted_at": submitted_at,
                "document_id": document_id,
            },
            headers={"Prefer": "return=representation"},
        )
        return bool(rows)


class BlobStore(_SupabaseSession):
    """Client for the object storage bucket holding received files."""

    def _url(self, path: str) -> str:
        quoted = quote(path.lstrip("/"), safe="/")
        return (
            f"{self.settings.SUPABASE_URL}/storage/v1/object/"
            f"{self.settings.STORAGE_BUCKET}/{quoted}"
        )

    def download(self, path: str) -> bytes:
        """
        Download a blob's bytes. A zero-length result is returned as-is;
        deciding what an empty file means is the caller's business.
        """
        try:
            response = self._session.get(self._url(path), timeout=self.settings.REQUEST_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise BlobStoreError(f"Download of {path} failed: {e}") from e

        if response.status_code == 404 or (
            response.status_code == 400 and "not_found" in response.text.lower().replace(" ", "_")
        ):
            raise BlobNotFoundError(f"Blob not found: {path}")
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise BlobStoreError(f"Download of {path} failed: {e}") from e
        return response.content

    def upload(self, path: str, content: bytes, content_type: str) -> None:
        """Store a new blob; existing paths are never overwritten."""
        try:
            response = self._session.post(
                self._url(path),
                data=content,
                headers={"Content-Type": content_type, "x-upsert": "false"},
                timeout=self.settings.REQUEST_TIMEOUT,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise BlobStoreError(f"Upload of {path} failed: {e}") from e
        log.debug("Stored blob", path=path, size=len(content))
