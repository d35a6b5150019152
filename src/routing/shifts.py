"""
Shift Correlation
=================

Links a received document to the shift obligation it satisfies.

Candidates are the unsubmitted workers of the project's active shifts. The
tiers run in priority order:

1. email - the sender address equals the worker's email (case-insensitive)
2. name  - the model's extracted worker name equals, contains, or is contained
           in the worker's name (trimmed, case-insensitive)
3. single active shift - no worker matched but the project has exactly one
           active shift: the document is linked to that shift only, and no
           worker is marked as submitted

Recording a worker's submission is a conditional write that only succeeds
while the worker is still unsubmitted, so a worker is linked to at most one
document even when two requests race for it.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from email.utils import getaddresses
from typing import Sequence

import structlog

from common.models import ShiftWorker
from common.supabase import IntakeStore

log = structlog.get_logger(__name__)

_BRACKETED_ADDRESS_RE = re.compile(r"<([^>]+)>")


def extract_email_addresses(field: str | None) -> list[str]:
    """
    Split a recipient header into bare, lower-cased addresses.

    Handles comma-separated lists and ``"Display Name" <addr>`` wrappers.
    """
    if not field:
        return []
    addresses = []
    for _, address in getaddresses([field]):
        address = address.strip().lower()
        if address:
            addresses.append(address)
    return addresses


def extract_sender_address(identity: str | None) -> str:
    """Return the bracketed address when present, else the trimmed raw string."""
    if not identity:
        return ""
    match = _BRACKETED_ADDRESS_RE.search(identity)
    value = match.group(1) if match else identity
    return value.strip().lower()


def match_worker_by_email(
    sender: str, workers: Sequence[ShiftWorker]
) -> ShiftWorker | None:
    if not sender:
        return None
    return next(
        (w for w in workers if w.email and w.email.strip().lower() == sender),
        None,
    )


def match_worker_by_name(
    worker_name: str | None, workers: Sequence[ShiftWorker]
) -> ShiftWorker | None:
    wanted = (worker_name or "").strip().lower()
    if not wanted:
        return None
    for worker in workers:
        name = worker.name.strip().lower()
        if not name:
            continue
        if wanted == name or wanted in name or name in wanted:
            return worker
    return None


@dataclass(frozen=True)
class ShiftMatch:
    shift_id: str
    worker_id: str | None
    tier: str

    @property
    def is_worker_match(self) -> bool:
        return self.worker_id is not None


@dataclass(frozen=True)
class WorkerLink:
    worker_id: str
    linked: bool


class ShiftCorrelator:
    """Finds and records the shift obligation a received document satisfies."""

    def __init__(self, store: IntakeStore):
        self.store = store

    def correlate(
        self,
        project_id: str,
        source_identity: str | None,
        worker_name: str | None,
    ) -> ShiftMatch | None:
        sender = extract_sender_address(source_identity)
        workers = self.store.list_open_shift_workers(project_id)

        worker = match_worker_by_email(sender, workers)
        tier = "email"
        if worker is None:
            worker = match_worker_by_name(worker_name, workers)
            tier = "name"
        if worker is not None:
            log.info(
                "Shift worker match found",
                tier=tier,
                project_id=project_id,
                worker_id=worker.id,
                shift_id=worker.shift_id,
            )
            return ShiftMatch(shift_id=worker.shift_id, worker_id=worker.id, tier=tier)

        active_shifts = self.store.list_active_shifts(project_id)
        if len(active_shifts) == 1:
            log.info(
                "Single active shift; linking document to shift only",
                project_id=project_id,
                shift_id=active_shifts[0].id,
            )
            return ShiftMatch(shift_id=active_shifts[0].id, worker_id=None, tier="single_shift")

        log.info(
            "No shift match found",
            project_id=project_id,
            sender=sender,
            active_shifts=len(active_shifts),
        )
        return None

    def link_worker(self, match: ShiftMatch, document_id: str) -> WorkerLink | None:
        """
        Mark the matched worker's form as submitted by ``document_id``.

        Returns None for shift-only matches. A worker that is already
        submitted is left untouched and reported with ``linked=False``.
        """
        if not match.is_worker_match:
            return None
        submitted_at = dt.datetime.now(dt.timezone.utc).isoformat()
        linked = self.store.mark_worker_submitted(match.worker_id, document_id, submitted_at)
        if linked:
            log.info(
                "Updated shift worker form status",
                worker_id=match.worker_id,
                document_id=document_id,
            )
        else:
            log.info(
                "Shift worker already submitted; leaving as is",
                worker_id=match.worker_id,
                document_id=document_id,
            )
        return WorkerLink(worker_id=match.worker_id, linked=linked)
