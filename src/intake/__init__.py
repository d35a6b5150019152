"""
Intake domain package.

This package drives received documents through the pipeline:

- inbound message parsing (mail provider webhook form -> `InboundMessage`)
- the orchestrator (webhook mode and batch reprocessing)
- the HTTP application and process entry points
"""

from .errors import EmptyFileError, IntakeError, IntakeValidationError, ProjectNotFoundError
from .orchestrator import DocumentResult, IntakePipeline, IntakeReport
from .webhook import Attachment, InboundMessage, parse_inbound_form

__all__ = [
    "Attachment",
    "DocumentResult",
    "EmptyFileError",
    "InboundMessage",
    "IntakeError",
    "IntakePipeline",
    "IntakeReport",
    "IntakeValidationError",
    "ProjectNotFoundError",
    "parse_inbound_form",
]
