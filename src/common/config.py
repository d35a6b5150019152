"""
Configuration module for the document intake service.

This module centralizes the loading and validation of all configuration
parameters from environment variables. It provides a single `Settings`
class that acts as a container for all configurable values. A `Settings`
instance is built once at start-up and handed to every component, so
nothing else in the service reads the environment directly.
"""

import os
from typing import Literal

DEFAULT_MODEL_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


class Settings:
    """
    A container for all configuration settings, loaded from environment variables.

    This class centralizes configuration, providing default values for optional
    settings and raising errors for missing required settings.
    """

    # --- Transactional store / blob store ---
    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: str
    STORAGE_BUCKET: str

    # --- Classification model ---
    MODEL_API_KEY: str | None
    MODEL_BASE_URL: str
    CLASSIFY_MODEL: str
    CLASSIFY_TEMPERATURE: float
    CLASSIFY_MAX_TOKENS: int
    REQUEST_TIMEOUT: int

    # --- Retry / pacing ---
    MAX_RETRIES: int
    RETRY_BASE_DELAY_SECONDS: float
    INTER_DOCUMENT_DELAY_SECONDS: float

    # --- Routing thresholds ---
    AUTO_FILE_CONFIDENCE: int
    WORD_OVERLAP_THRESHOLD: float

    # --- Logging ---
    LOG_LEVEL: str
    LOG_FORMAT: Literal["console", "json"]

    # --- HTTP service ---
    HTTP_HOST: str
    HTTP_PORT: int

    def __init__(self):
        """
        Loads settings from environment variables and performs validation.
        """
        self.SUPABASE_URL = self._get_required_env("SUPABASE_URL").rstrip("/")
        self.SUPABASE_SERVICE_ROLE_KEY = self._get_required_env(
            "SUPABASE_SERVICE_ROLE_KEY"
        )
        self.STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "document-intake")

        # An unset key disables classification instead of failing start-up.
        self.MODEL_API_KEY = (
            os.getenv("MODEL_API_KEY") or os.getenv("GEMINI_API_KEY") or None
        )
        self.MODEL_BASE_URL = os.getenv("MODEL_BASE_URL", DEFAULT_MODEL_BASE_URL)
        self.CLASSIFY_MODEL = os.getenv("CLASSIFY_MODEL", "gemini-2.5-flash")
        self.CLASSIFY_TEMPERATURE = float(os.getenv("CLASSIFY_TEMPERATURE", 0.1))
        self.CLASSIFY_MAX_TOKENS = int(os.getenv("CLASSIFY_MAX_TOKENS", 2048))
        self.REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", 120))

        self.MAX_RETRIES = int(os.getenv("MAX_RETRIES", 3))
        if self.MAX_RETRIES < 0:
            raise ValueError("MAX_RETRIES must be >= 0")
        self.RETRY_BASE_DELAY_SECONDS = float(
            os.getenv("RETRY_BASE_DELAY_SECONDS", 1.0)
        )
        self.INTER_DOCUMENT_DELAY_SECONDS = max(
            0.0, float(os.getenv("INTER_DOCUMENT_DELAY_SECONDS", 0.5))
        )

        self.AUTO_FILE_CONFIDENCE = int(os.getenv("AUTO_FILE_CONFIDENCE", 70))
        if not 0 <= self.AUTO_FILE_CONFIDENCE <= 100:
            raise ValueError("AUTO_FILE_CONFIDENCE must be between 0 and 100")
        self.WORD_OVERLAP_THRESHOLD = float(os.getenv("WORD_OVERLAP_THRESHOLD", 0.5))
        if not 0.0 <= self.WORD_OVERLAP_THRESHOLD <= 1.0:
            raise ValueError("WORD_OVERLAP_THRESHOLD must be between 0 and 1")

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FORMAT = os.getenv("LOG_FORMAT", "console").lower()
        if self.LOG_FORMAT not in ("console", "json"):
            raise ValueError("LOG_FORMAT must be 'console' or 'json'")

        self.HTTP_HOST = os.getenv("HTTP_HOST", "0.0.0.0")
        self.HTTP_PORT = int(os.getenv("HTTP_PORT", 8080))

    @property
    def classification_enabled(self) -> bool:
        return bool(self.MODEL_API_KEY)

    def _get_required_env(self, var_name: str) -> str:
        """
        Gets a required environment variable, raising an error if it's not set.
        """
        value = os.getenv(var_name)
        if value is None:
            raise ValueError(f"Required environment variable '{var_name}' is not set.")
        return value
