"""
Pytest configuration.

The project uses a ``src/`` layout (package code lives in ``src/common``,
``src/classifier``, ``src/routing`` and ``src/intake``). Normally, tests run
after installing the package (e.g. ``pip install -e .``). When the editable
install's ``.pth`` file is skipped (hidden virtualenv folders on some
macOS/Python setups), ``src/`` is added to ``sys.path`` here instead.

The in-memory store below stands in for the transactional store in
correlation, lifecycle, orchestrator and HTTP tests.
"""

from __future__ import annotations

import os
import sys
import uuid
from pathlib import Path


def _ensure_src_on_path() -> None:
    try:
        import common  # noqa: F401
        return
    except ModuleNotFoundError:
        pass

    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    sys.path.insert(0, str(src_dir))


_ensure_src_on_path()

import pytest  # noqa: E402

from common.config import Settings  # noqa: E402
from common.models import (  # noqa: E402
    DocumentStatus,
    Folder,
    Project,
    ReceivedDocument,
    Shift,
    ShiftStatus,
    ShiftWorker,
)
from common.supabase import BlobNotFoundError, BlobStoreError, StoreError  # noqa: E402


class FakeStore:
    """In-memory `IntakeStore` with the same conditional worker update."""

    def __init__(self):
        self.projects: dict[str, Project] = {}
        self.intake_addresses: dict[str, str] = {}
        self.folders: dict[str, list[Folder]] = {}
        self.shifts: list[Shift] = []
        self.workers: dict[str, dict] = {}
        self.documents: dict[str, dict] = {}
        self.inserts: list[dict] = []
        self.updates: list[tuple[str, dict]] = []
        self.fail_insert = False
        self.fail_update_for: set[str] = set()
        self.fail_worker_update = False

    # --- seeding helpers ---

    def add_project(self, project_id: str, address: str, name: str = "Tower") -> Project:
        project = Project(id=project_id, name=name)
        self.projects[project_id] = project
        self.intake_addresses[address.lower()] = project_id
        return project

    def add_folder(self, project_id: str, folder_id: str, name: str, hint: str | None = None) -> Folder:
        folder = Folder(id=folder_id, name=name, classification_hint=hint)
        self.folders.setdefault(project_id, []).append(folder)
        return folder

    def add_shift(self, project_id: str, shift_id: str, status: str = ShiftStatus.ACTIVE) -> Shift:
        shift = Shift(id=shift_id, project_id=project_id, status=status)
        self.shifts.append(shift)
        return shift

    def add_worker(
        self,
        shift_id: str,
        worker_id: str,
        name: str,
        email: str | None = None,
        form_submitted: bool = False,
    ) -> None:
        self.workers[worker_id] = {
            "id": worker_id,
            "shift_id": shift_id,
            "name": name,
            "email": email,
            "form_submitted": form_submitted,
            "form_submitted_at": None,
            "document_id": None,
        }

    def add_document(self, project_id: str, document_id: str, **fields) -> dict:
        row = {
            "id": document_id,
            "project_id": project_id,
            "storage_path": f"{project_id}/{document_id}.pdf",
            "status": DocumentStatus.NEEDS_REVIEW,
            "mime_type": "application/pdf",
            "received_at": f"2026-01-01T00:00:{len(self.documents):02d}Z",
        }
        row.update(fields)
        self.documents[document_id] = row
        return row

    # --- IntakeStore interface ---

    def find_project_by_intake_address(self, address: str) -> Project | None:
        project_id = self.intake_addresses.get(address.lower())
        return self.projects.get(project_id) if project_id else None

    def list_folders(self, project_id: str) -> list[Folder]:
        return list(self.folders.get(project_id, []))

    def list_documents(self, project_id, document_ids=None) -> list[ReceivedDocument]:
        rows = [row for row in self.documents.values() if row["project_id"] == project_id]
        if document_ids:
            rows = [row for row in rows if row["id"] in document_ids]
        else:
            rows = [row for row in rows if row["status"] in DocumentStatus.REPROCESSABLE]
        return [ReceivedDocument.from_row(row) for row in rows]

    def list_active_shifts(self, project_id: str) -> list[Shift]:
        return [
            s for s in self.shifts if s.project_id == project_id and s.status == ShiftStatus.ACTIVE
        ]

    def list_open_shift_workers(self, project_id: str) -> list[ShiftWorker]:
        active = {s.id for s in self.list_active_shifts(project_id)}
        return [
            ShiftWorker.from_row(row)
            for row in self.workers.values()
            if row["shift_id"] in active and not row["form_submitted"]
        ]

    def insert_document(self, fields: dict) -> ReceivedDocument:
        if self.fail_insert:
            raise StoreError("POST received_documents failed: 503")
        row = dict(fields)
        row.setdefault("id", str(uuid.uuid4()))
        self.documents[row["id"]] = row
        self.inserts.append(row)
        return ReceivedDocument.from_row(row)

    def update_document(self, document_id: str, fields: dict) -> None:
        if document_id in self.fail_update_for:
            raise StoreError(f"PATCH received_documents failed for {document_id}")
        self.documents[document_id].update(fields)
        self.updates.append((document_id, dict(fields)))

    def mark_worker_submitted(self, worker_id: str, document_id: str, submitted_at: str) -> bool:
        if self.fail_worker_update:
            raise StoreError("PATCH shift_workers failed: 500")
        row = self.workers.get(worker_id)
        if row is None or row["form_submitted"]:
            return False
        row.update(form_submitted=True, form_submitted_at=submitted_at, document_id=document_id)
        return True

    def close(self) -> None:
        pass


class FakeBlobStore:
    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.uploads: list[tuple[str, bytes, str]] = []
        self.fail_upload = False

    def download(self, path: str) -> bytes:
        if path not in self.blobs:
            raise BlobNotFoundError(f"Blob not found: {path}")
        return self.blobs[path]

    def upload(self, path: str, content: bytes, content_type: str) -> None:
        if self.fail_upload:
            raise BlobStoreError(f"Upload of {path} failed: 500")
        self.blobs[path] = content
        self.uploads.append((path, content, content_type))

    def close(self) -> None:
        pass


BASE_ENV = {
    "SUPABASE_URL": "https://project.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "service-role-key",
    "MODEL_API_KEY": "test-model-key",
}


@pytest.fixture
def settings(mocker):
    """Settings with the required variables set and no retry backoff."""
    mocker.patch.dict(os.environ, BASE_ENV, clear=True)
    settings_obj = Settings()
    settings_obj.RETRY_BASE_DELAY_SECONDS = 0.0
    return settings_obj


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def blobs():
    return FakeBlobStore()
