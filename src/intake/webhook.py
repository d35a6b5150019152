"""
Inbound message parsing.

The mail provider (SendGrid Inbound Parse) posts each received message as a
multipart form: header fields ``from``, ``to``, ``subject``, ``text`` and the
files ``attachment1`` .. ``attachmentN``. This module turns such a form into
an `InboundMessage` the pipeline can process.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import structlog

from routing.shifts import extract_email_addresses

log = structlog.get_logger(__name__)

_ATTACHMENT_FIELD_RE = re.compile(r"^attachment(\d+)$")
_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._ -]+")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class InboundMessage:
    sender: str
    recipients: str
    subject: str = ""
    text: str = ""
    attachments: list[Attachment] = field(default_factory=list)

    @property
    def recipient_addresses(self) -> list[str]:
        return extract_email_addresses(self.recipients)


def safe_filename(filename: str | None, fallback: str = "attachment") -> str:
    """
    Strip directory parts and characters that do not belong in a storage key.
    """
    name = (filename or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    name = _UNSAFE_FILENAME_RE.sub("_", name).strip(" .")
    return name or fallback


def _attachment_fields(keys: Iterable[str]) -> list[str]:
    numbered = []
    for key in keys:
        match = _ATTACHMENT_FIELD_RE.match(key)
        if match:
            numbered.append((int(match.group(1)), key))
    return [key for _, key in sorted(numbered)]


def parse_inbound_form(
    fields: Mapping[str, Any], files: Mapping[str, tuple[str | None, bytes, str | None]]
) -> InboundMessage:
    """
    Build an `InboundMessage` from already-read form fields and files.

    ``files`` maps a form field name to ``(filename, content, content_type)``.
    Attachments keep their numeric order; fields other than ``attachmentN``
    are ignored.
    """
    attachments = []
    for key in _attachment_fields(files.keys()):
        filename, content, content_type = files[key]
        attachments.append(
            Attachment(
                filename=safe_filename(filename, fallback=key),
                content=content,
                content_type=content_type or DEFAULT_CONTENT_TYPE,
            )
        )

    message = InboundMessage(
        sender=str(fields.get("from") or ""),
        recipients=str(fields.get("to") or ""),
        subject=str(fields.get("subject") or ""),
        text=str(fields.get("text") or ""),
        attachments=attachments,
    )
    log.info(
        "Parsed inbound message",
        sender=message.sender,
        recipients=message.recipient_addresses,
        subject=message.subject,
        attachments=len(attachments),
    )
    return message
