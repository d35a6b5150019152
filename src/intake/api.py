"""
HTTP surface of the intake service.

`create_app` wires an `IntakePipeline` into a FastAPI application exposing
the webhook and batch entry points. The pipeline itself is blocking, so each
request hands it to the worker thread pool; documents inside one request are
still processed sequentially.
"""

from __future__ import annotations

from typing import List, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.datastructures import UploadFile

from .errors import IntakeValidationError, ProjectNotFoundError
from .orchestrator import IntakePipeline
from .webhook import parse_inbound_form

log = structlog.get_logger(__name__)


class ReprocessRequest(BaseModel):
    """Request body for the batch entry point."""

    project_id: Optional[str] = None
    document_ids: Optional[List[str]] = None


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _internal_error(e: Exception) -> JSONResponse:
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        details=str(e),
    )


def create_app(pipeline: IntakePipeline) -> FastAPI:
    """Build the FastAPI application around ``pipeline``."""
    app = FastAPI(title="Document Intake")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/process-incoming-email")
    async def process_incoming_email(request: Request):
        try:
            form = await request.form()
            fields = {}
            files = {}
            for key, value in form.multi_items():
                if isinstance(value, UploadFile):
                    files[key] = (value.filename, await value.read(), value.content_type)
                else:
                    fields[key] = value
            message = parse_inbound_form(fields, files)
            report = await run_in_threadpool(pipeline.process_message, message)
        except ProjectNotFoundError as e:
            log.warning("No project found for recipients", emails=e.addresses)
            return _error(status.HTTP_404_NOT_FOUND, "Project not found", emails=e.addresses)
        except IntakeValidationError as e:
            return _error(status.HTTP_400_BAD_REQUEST, str(e))
        except Exception as e:
            log.exception("Error processing inbound message")
            return _internal_error(e)

        return {
            "success": True,
            "message": f"Processed {report.processed} documents",
            "documents": [result.to_dict() for result in report.results],
        }

    @app.post("/reprocess-documents")
    async def reprocess_documents(body: ReprocessRequest):
        try:
            report = await run_in_threadpool(
                pipeline.reprocess, body.project_id, body.document_ids
            )
        except IntakeValidationError as e:
            return _error(status.HTTP_400_BAD_REQUEST, str(e))
        except Exception as e:
            log.exception("Error reprocessing documents", project_id=body.project_id)
            return _internal_error(e)

        if not report.results:
            return {"success": True, "message": "No documents to reprocess", "processed": 0}
        return {
            "success": True,
            "message": f"Processed {report.processed} documents, {report.filed} auto-filed",
            "processed": report.processed,
            "filed": report.filed,
            "results": [result.to_dict() for result in report.results],
        }

    return app
