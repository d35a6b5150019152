"""
Document Intake Service
=======================

Entry point for the HTTP intake service. It loads settings from the
environment, configures logging, builds the store, blob and classification
clients, and serves the webhook and batch endpoints with uvicorn.
"""

from __future__ import annotations

import structlog
import uvicorn

from classifier.provider import ClassificationClient
from common.config import Settings
from common.logging_config import configure_logging
from common.supabase import BlobStore, IntakeStore

from .api import create_app
from .orchestrator import IntakePipeline


def build_pipeline(settings: Settings) -> IntakePipeline:
    """Build an `IntakePipeline` with the production collaborators."""
    store = IntakeStore(settings)
    return IntakePipeline(
        settings,
        store=store,
        blobs=BlobStore(settings),
        classifier=ClassificationClient(settings),
    )


def close_pipeline(pipeline: IntakePipeline) -> None:
    pipeline.store.close()
    pipeline.blobs.close()


def main() -> None:
    """Run the intake HTTP service."""
    log = structlog.get_logger(__name__)

    try:
        settings = Settings()
        configure_logging(settings)
    except ValueError as e:
        log.error("Configuration error", error=e)
        return

    log.info(
        "Starting intake service",
        host=settings.HTTP_HOST,
        port=settings.HTTP_PORT,
        model=settings.CLASSIFY_MODEL,
        classification_enabled=settings.classification_enabled,
        auto_file_confidence=settings.AUTO_FILE_CONFIDENCE,
        word_overlap_threshold=settings.WORD_OVERLAP_THRESHOLD,
    )

    pipeline = build_pipeline(settings)
    try:
        uvicorn.run(
            create_app(pipeline),
            host=settings.HTTP_HOST,
            port=settings.HTTP_PORT,
            log_config=None,
        )
    finally:
        close_pipeline(pipeline)


if __name__ == "__main__":
    main()
