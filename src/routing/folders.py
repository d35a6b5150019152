"""
Folder Matching
===============

Maps a free-text classification label from the model onto one folder of a
project's taxonomy.

Matching runs an ordered cascade of tiers. Each tier is a pure function
``(label, folders) -> Folder | None``; the first tier returning a folder wins
and, within a tier, the first folder in taxonomy order wins:

1. exact      - case-insensitive, trimmed equality with the folder name
2. normalized - equality after lower-casing, stripping punctuation and
                collapsing whitespace
3. substring  - label contains the folder name or vice versa
4. hint       - folder hint contains the whole label, or any label word
                longer than 3 characters
5. overlap    - share of significant label words found in the folder's
                name + hint vocabulary; best score above the threshold

Blank labels and the "Unknown" sentinel never match.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional, Sequence

import structlog

from classifier.provider import is_unknown_label
from common.models import Folder

log = structlog.get_logger(__name__)

DEFAULT_OVERLAP_THRESHOLD = 0.5

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")

MatchTier = Callable[[str, Sequence[Folder]], Optional[Folder]]


@dataclass(frozen=True)
class FolderMatch:
    folder: Folder
    tier: str
    score: float = 1.0

    @property
    def folder_id(self) -> str:
        return self.folder.id


def normalize_label(value: str) -> str:
    """Lower-case, drop punctuation and collapse whitespace."""
    cleaned = _NON_ALNUM_RE.sub("", value.lower())
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def significant_words(value: str) -> list[str]:
    """Normalized words of 3+ characters."""
    return [word for word in normalize_label(value).split(" ") if len(word) > 2]


def match_exact(label: str, folders: Sequence[Folder]) -> Folder | None:
    wanted = label.strip().lower()
    return next((f for f in folders if f.name.strip().lower() == wanted), None)


def match_normalized(label: str, folders: Sequence[Folder]) -> Folder | None:
    wanted = normalize_label(label)
    if not wanted:
        return None
    return next((f for f in folders if normalize_label(f.name) == wanted), None)


def match_substring(label: str, folders: Sequence[Folder]) -> Folder | None:
    wanted = label.strip().lower()
    for folder in folders:
        name = folder.name.strip().lower()
        if not name:
            continue
        if name in wanted or wanted in name:
            return folder
    return None


def match_hint(label: str, folders: Sequence[Folder]) -> Folder | None:
    wanted = label.strip().lower()
    long_words = [word for word in wanted.split() if len(word) > 3]
    for folder in folders:
        if not folder.classification_hint:
            continue
        hint = folder.classification_hint.lower()
        if wanted in hint or any(word in hint for word in long_words):
            return folder
    return None


def folder_vocabulary(folder: Folder) -> list[str]:
    """Significant words of the folder name and hint, de-duplicated in order."""
    words = significant_words(folder.name)
    if folder.classification_hint:
        words += significant_words(folder.classification_hint)
    return list(dict.fromkeys(words))


def word_overlap_score(label: str, folder: Folder) -> float:
    """
    Fraction of the label's significant words found in the folder vocabulary.

    A label word counts as found when it contains, or is contained in, any
    vocabulary word.
    """
    label_words = significant_words(label)
    if not label_words:
        return 0.0
    vocabulary = folder_vocabulary(folder)
    found = [
        word
        for word in label_words
        if any(vocab in word or word in vocab for vocab in vocabulary)
    ]
    return len(found) / len(label_words)


def match_word_overlap(
    label: str,
    folders: Sequence[Folder],
    threshold: float = DEFAULT_OVERLAP_THRESHOLD,
) -> Folder | None:
    best: Folder | None = None
    best_score = 0.0
    for folder in folders:
        score = word_overlap_score(label, folder)
        if score > threshold and score > best_score:
            best, best_score = folder, score
    return best


class FolderMatcher:
    """
    Evaluates the match tiers in order and reports which tier matched.
    """

    def __init__(self, overlap_threshold: float = DEFAULT_OVERLAP_THRESHOLD):
        self.overlap_threshold = overlap_threshold
        self.tiers: tuple[tuple[str, MatchTier], ...] = (
            ("exact", match_exact),
            ("normalized", match_normalized),
            ("substring", match_substring),
            ("hint", match_hint),
            ("overlap", partial(match_word_overlap, threshold=overlap_threshold)),
        )

    def match(self, label: str | None, folders: Sequence[Folder]) -> FolderMatch | None:
        if is_unknown_label(label) or not folders:
            return None

        for tier_name, tier in self.tiers:
            folder = tier(label, folders)
            if folder is None:
                continue
            score = word_overlap_score(label, folder) if tier_name == "overlap" else 1.0
            log.info(
                "Folder match found",
                tier=tier_name,
                classification=label,
                folder=folder.name,
                score=round(score, 2),
            )
            return FolderMatch(folder=folder, tier=tier_name, score=score)

        log.warning("No folder match found", classification=label)
        return None
