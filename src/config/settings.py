# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for service endpoints, upload limits, pacing,
export and logging settings. Every field can be set through the
environment with the ``MEDIAQUOTE_`` prefix.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MEDIAQUOTE_",
        extra="ignore",
    )

    # === Media service ===
    service_base_url: str = "http://localhost:3000"
    upload_path: str = "/api/process-media"
    chat_path: str = "/api/process-media?action=chat"
    cleanup_path: str = "/api/process-media?action=cleanup"
    questions_path: str = "/api/openai-questions"
    format_path: str = "/api/openai-format"
    request_timeout_s: float = 120.0
    upload_field_name: str = "mediaFiles"

    # === Upload gate ===
    max_upload_size_mb: int = 100
    allowed_mime_types: str = (
        "video/mp4,video/avi,video/mov,video/wmv,"
        "image/jpeg,image/jpg,image/png,image/gif"
    )

    # === Request pacing ===
    qa_delay_ms: int = 500
    max_retries: int = 0
    retry_base_delay_s: float = 1.0

    # === History ===
    history_path: Path = Path("~/.mediaquote/analyses.json")

    # === Export ===
    export_dir: Path = Path("./exports")
    export_primary_format: Literal["docx", "text"] = "docx"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("qa_delay_ms", "max_retries")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("service_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:  # noqa: N805
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.max_upload_size_mb <= 0:
            errors.append("MAX_UPLOAD_SIZE_MB must be > 0")

        if not self.allowed_mime_types_list:
            errors.append("ALLOWED_MIME_TYPES must list at least one type")

        unknown = [
            m for m in self.allowed_mime_types_list
            if not m.startswith(("video/", "image/"))
        ]
        if unknown:
            errors.append(
                f"ALLOWED_MIME_TYPES accepts video/* and image/* only: {', '.join(unknown)}"
            )

        if self.request_timeout_s <= 0:
            errors.append("REQUEST_TIMEOUT_S must be > 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def allowed_mime_types_list(self) -> list[str]:
        """Parse comma-separated MIME allow-list."""
        return [m.strip() for m in self.allowed_mime_types.split(",") if m.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def qa_delay_s(self) -> float:
        return self.qa_delay_ms / 1000.0

    def endpoint(self, path: str) -> str:
        """Join a configured endpoint path onto the service base URL."""
        return f"{self.service_base_url}/{path.lstrip('/')}"


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or embedding).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
