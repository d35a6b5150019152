"""
Routing domain package.

This package decides where a classified document goes:

- folder matching (classification label -> project folder)
- shift correlation (sender / worker name -> shift worker obligation)
- the document lifecycle (match + confidence -> persisted status)
"""

from .folders import FolderMatch, FolderMatcher, word_overlap_score
from .lifecycle import DocumentLifecycle, FinalizedDocument, RoutingOutcome, decide_status
from .shifts import (
    ShiftCorrelator,
    ShiftMatch,
    WorkerLink,
    extract_email_addresses,
    extract_sender_address,
)

__all__ = [
    "DocumentLifecycle",
    "FinalizedDocument",
    "FolderMatch",
    "FolderMatcher",
    "RoutingOutcome",
    "ShiftCorrelator",
    "ShiftMatch",
    "WorkerLink",
    "decide_status",
    "extract_email_addresses",
    "extract_sender_address",
    "word_overlap_score",
]
