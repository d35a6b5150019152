"""
Shared LLM helpers.

This module centralizes the OpenAI-compatible chat completion call and the
decision of which model failures are transient. The retry loop itself lives
in `common.utils`; the heuristic for "retry or give up" lives only here.
"""

import openai

from .utils import retry

TRANSIENT_STATUS_CODES = {429, 500, 503}

TRANSIENT_MARKERS = (
    "429",
    "500",
    "503",
    "overloaded",
    "rate limit",
    "quota",
)

RETRYABLE_OPENAI_EXCEPTIONS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def is_retryable_model_error(exc: Exception) -> bool:
    """
    Return True if a model call failure is transient and worth retrying.
    """
    if isinstance(exc, RETRYABLE_OPENAI_EXCEPTIONS):
        return True
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code in TRANSIENT_STATUS_CODES:
            return True
    message = str(exc).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


class OpenAIChatMixin:
    """
    Mixin providing a retried OpenAI-compatible chat completion call.

    The mixin expects ``self.settings`` to expose ``MAX_RETRIES`` and
    ``RETRY_BASE_DELAY_SECONDS`` for the retry decorator, and ``self.client``
    to be an ``openai.OpenAI`` instance.
    """

    @retry(is_retryable=is_retryable_model_error)
    def _create_completion(self, **kwargs):
        """Call the OpenAI-compatible chat completion API with retries."""
        return self.client.chat.completions.create(**kwargs)
