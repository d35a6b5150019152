"""
One-shot batch reprocessing from the command line.

Runs batch mode once for a project and prints the per-document report as
JSON. Exits with status 2 when the invocation itself is invalid (bad
configuration, missing project, no folders).
"""

from __future__ import annotations

import argparse
import json
import sys

import structlog

from common.config import Settings
from common.logging_config import configure_logging

from .errors import IntakeValidationError
from .main import build_pipeline, close_pipeline

EXIT_INVALID = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reclassify and re-route a project's received documents"
    )
    parser.add_argument("--project-id", required=True, help="Project to reprocess")
    parser.add_argument(
        "--document-id",
        dest="document_ids",
        action="append",
        default=None,
        help="Only reprocess this document (repeatable). Default: all pending / needs_review",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    log = structlog.get_logger(__name__)

    try:
        settings = Settings()
        configure_logging(settings)
    except ValueError as e:
        log.error("Configuration error", error=e)
        return EXIT_INVALID

    pipeline = build_pipeline(settings)
    try:
        report = pipeline.reprocess(args.project_id, args.document_ids)
    except IntakeValidationError as e:
        log.error("Invalid reprocess request", project_id=args.project_id, error=str(e))
        return EXIT_INVALID
    finally:
        close_pipeline(pipeline)

    print(json.dumps(report.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
