"""
Classification domain package.

This package contains the classification client: prompt construction from a
project's folder taxonomy, the multimodal model call, and response parsing.
"""

from .provider import (
    SUPPORTED_MIME_TYPES,
    UNKNOWN_LABEL,
    ClassificationClient,
    ClassificationError,
    ClassificationParseError,
    ClassificationResult,
    ModelCallError,
    UnsupportedMimeTypeError,
    build_prompt,
    is_unknown_label,
    normalize_mime_type,
    parse_classification_response,
)

__all__ = [
    "ClassificationClient",
    "ClassificationError",
    "ClassificationParseError",
    "ClassificationResult",
    "ModelCallError",
    "SUPPORTED_MIME_TYPES",
    "UNKNOWN_LABEL",
    "UnsupportedMimeTypeError",
    "build_prompt",
    "is_unknown_label",
    "normalize_mime_type",
    "parse_classification_response",
]
