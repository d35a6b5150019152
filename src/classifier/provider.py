"""
Document Classification Module
==============================

This module sends a received document (PDF or image) to an OpenAI-compatible
multimodal model together with the project's folder taxonomy, and turns the
model's JSON answer into a `ClassificationResult`.

The model is asked to pick one of the project's folder names verbatim, or the
"Unknown" sentinel when nothing fits. Answers that are not a JSON object are
rejected with `ClassificationParseError`; the caller decides what a failed
classification means for the document.
"""

from __future__ import annotations

import base64
import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

import openai
import structlog

from common.config import Settings
from common.llm import OpenAIChatMixin
from common.models import Folder

log = structlog.get_logger(__name__)

UNKNOWN_LABEL = "Unknown"

SUPPORTED_MIME_TYPES = (
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/webp",
)

MIME_ALIASES = {"image/jpg": "image/jpeg"}

CLASSIFICATION_PROMPT = """
You are a construction safety document classifier for a site supervisor system.

TASK: Analyze this document and classify it into one of the available folder categories.

AVAILABLE FOLDERS (you MUST use one of these exact names):
{folder_names}

FOLDER HINTS:
{folder_hints}

INSTRUCTIONS:
1. Identify what type of safety form/document this is.
2. Choose the most appropriate folder from the list above.
3. Extract key information: worker name (person who filled out or signed the form),
   company/subcontractor name (letterhead, logo, signature block or "Company:" field),
   document date (the date on the form, NOT today's date), project or site name,
   and the hazards identified.
4. Provide a brief summary.

IMPORTANT:
- The "classification" field MUST be one of the exact folder names listed above.
  If unsure, use "Unknown".
- Use ISO 8601 date format (YYYY-MM-DD) for all dates.
- If a field cannot be determined, use null instead of guessing.
- Confidence is an integer from 0 to 100 reflecting how certain you are about the classification.

Respond ONLY with valid JSON in this exact format:
{{
  "classification": "EXACT_FOLDER_NAME_FROM_LIST_ABOVE",
  "confidence": 85,
  "extractedData": {{
    "workerName": "John Smith",
    "companyName": "ABC Contractors Inc.",
    "documentDate": "2026-01-13",
    "projectName": "Downtown Tower Project",
    "hazards": ["Working at height", "Hot work nearby"]
  }},
  "summary": "FLRA form completed by John Smith from ABC Contractors for roofing work, identifying 3 hazards with controls in place."
}}
""".strip()


class ClassificationError(Exception):
    """Classification could not produce a result for the document."""


class UnsupportedMimeTypeError(ClassificationError):
    """The document's mime type cannot be sent to the model."""


class ClassificationParseError(ClassificationError):
    """The model answered with something other than the expected JSON object."""


class ModelCallError(ClassificationError):
    """The model API call failed permanently or ran out of retries."""


@dataclass(frozen=True)
class ClassificationResult:
    classification: str
    confidence: int
    extracted_data: dict[str, Any] = field(default_factory=dict)
    summary: str = ""

    @property
    def is_unknown(self) -> bool:
        return is_unknown_label(self.classification)

    @property
    def worker_name(self) -> str | None:
        value = self.extracted_data.get("workerName")
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @classmethod
    def fallback(cls, summary: str) -> ClassificationResult:
        """A no-match result carrying an explanation in the summary."""
        return cls(UNKNOWN_LABEL, 0, {}, summary)


def is_unknown_label(label: str | None) -> bool:
    """Return True for a blank label or the "Unknown" sentinel."""
    if not label or not label.strip():
        return True
    return label.strip().lower() == UNKNOWN_LABEL.lower()


def normalize_mime_type(mime_type: str | None) -> str:
    """
    Return the canonical allow-listed mime type, or raise UnsupportedMimeTypeError.
    """
    value = (mime_type or "").split(";", 1)[0].strip().lower()
    value = MIME_ALIASES.get(value, value)
    if value not in SUPPORTED_MIME_TYPES:
        raise UnsupportedMimeTypeError(f"Unsupported file type: {mime_type or '<none>'}")
    return value


def build_prompt(folders: Sequence[Folder]) -> str:
    """Render the classification prompt for a project's folder taxonomy."""
    folder_names = "\n".join(f'• "{folder.name}"' for folder in folders)
    folder_hints = "\n".join(
        f"- {folder.name}: {folder.classification_hint}"
        if folder.classification_hint
        else f"- {folder.name}"
        for folder in folders
    )
    return CLASSIFICATION_PROMPT.format(
        folder_names=folder_names or "(none)",
        folder_hints=folder_hints or "(none)",
    )


def _extract_json(text: str) -> Any:
    """Parse JSON from raw model output, trimming surrounding text if needed."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end <= start:
            raise
        return json.loads(text[start : end + 1])


def _coerce_confidence(value: Any) -> int:
    """Coerce a model-reported confidence into an integer in 0..100."""
    if isinstance(value, bool):
        return 0
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, number))


def parse_classification_response(text: str) -> ClassificationResult:
    """
    Parse and sanitize the classification response.
    """
    raw = (text or "").strip()
    if not raw:
        raise ClassificationParseError("Classification response is empty.")

    try:
        data = _extract_json(raw)
    except json.JSONDecodeError as e:
        raise ClassificationParseError(
            f"Failed to parse AI classification response: {e}"
        ) from e
    if not isinstance(data, dict):
        raise ClassificationParseError("Classification response is not a JSON object.")

    label = data.get("classification")
    label = str(label).strip() if label is not None else ""

    extracted = data.get("extractedData")
    summary = data.get("summary")
    summary = str(summary).strip() if summary is not None else ""

    return ClassificationResult(
        classification=label or UNKNOWN_LABEL,
        confidence=_coerce_confidence(data.get("confidence")),
        extracted_data=extracted if isinstance(extracted, dict) else {},
        summary=summary or "No summary provided",
    )


def _document_part(content: bytes, mime_type: str, filename: str) -> dict:
    """Build the chat message part carrying the document inline."""
    encoded = base64.b64encode(content).decode("ascii")
    data_url = f"data:{mime_type};base64,{encoded}"
    if mime_type == "application/pdf":
        return {"type": "file", "file": {"filename": filename, "file_data": data_url}}
    return {"type": "image_url", "image_url": {"url": data_url}}


class ClassificationClient(OpenAIChatMixin):
    """
    Classification client that uses OpenAI-compatible chat completions.
    """

    def __init__(
        self,
        settings: Settings,
        client: openai.OpenAI | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.sleep = sleep
        if client is None and settings.classification_enabled:
            client = openai.OpenAI(
                api_key=settings.MODEL_API_KEY,
                base_url=settings.MODEL_BASE_URL,
                timeout=settings.REQUEST_TIMEOUT,
                max_retries=0,
            )
        self.client = client

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def classify(
        self,
        content: bytes,
        mime_type: str | None,
        folders: Sequence[Folder],
        filename: str = "document",
    ) -> ClassificationResult:
        """
        Classify a document against the folder taxonomy.

        Raises:
            UnsupportedMimeTypeError: before any network call, for types outside the allow-list.
            ModelCallError: when the model call fails permanently or retries run out.
            ClassificationParseError: when the answer is not the expected JSON object.
        """
        if not self.enabled:
            log.warning("Model credential not configured; skipping AI classification")
            return ClassificationResult.fallback("AI classification not configured")

        mime = normalize_mime_type(mime_type)

        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": build_prompt(folders)},
                    _document_part(content, mime, filename),
                ],
            }
        ]

        log.info(
            "Calling classification model",
            model=self.settings.CLASSIFY_MODEL,
            mime_type=mime,
            size=len(content),
        )
        try:
            response = self._create_completion(
                model=self.settings.CLASSIFY_MODEL,
                messages=messages,
                temperature=self.settings.CLASSIFY_TEMPERATURE,
                max_tokens=self.settings.CLASSIFY_MAX_TOKENS,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            raise ModelCallError(f"Model API error: {e}") from e

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        result = parse_classification_response(text)
        log.info(
            "AI classification result",
            classification=result.classification,
            confidence=result.confidence,
        )
        return result
