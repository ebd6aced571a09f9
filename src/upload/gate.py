# src/upload/gate.py — v1
"""Upload gate: validate a candidate media file before any state changes.

Rejection raises ValidationError and leaves pipeline state untouched;
acceptance hands a MediaAsset to the orchestrator, which resets the run.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from mediaquote.config.settings import Settings
from mediaquote.core.errors import ValidationError
from mediaquote.core.models import MediaAsset, MimeCategory

if TYPE_CHECKING:
    from mediaquote.pipeline.orchestrator import AnalysisOrchestrator

logger = logging.getLogger(__name__)

# Browser-style MIME names, matching what the allow-list expects.
EXTENSION_MIME_TYPES: dict[str, str] = {
    ".mp4": "video/mp4",
    ".avi": "video/avi",
    ".mov": "video/mov",
    ".wmv": "video/wmv",
    ".jpeg": "image/jpeg",
    ".jpg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
}


class MediaCandidate(BaseModel):
    """A file the user picked, not yet accepted."""

    payload: bytes = Field(repr=False)
    mime_type: str
    size_bytes: int
    display_name: str

    @classmethod
    def from_path(cls, path: Path, mime_type: str | None = None) -> MediaCandidate:
        """Read a local file; the MIME type is derived from its extension."""
        path = Path(path)
        payload = path.read_bytes()
        resolved = mime_type or EXTENSION_MIME_TYPES.get(
            path.suffix.lower(), "application/octet-stream"
        )
        return cls(
            payload=payload,
            mime_type=resolved,
            size_bytes=len(payload),
            display_name=path.name,
        )


class UploadGate:
    """Type/size gate in front of the pipeline."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or Settings()
        self._allowed = set(settings.allowed_mime_types_list)
        self._max_bytes = settings.max_upload_size_bytes
        self._max_mb = settings.max_upload_size_mb

    def accept(self, candidate: MediaCandidate) -> MediaAsset:
        """Validate a candidate and build the immutable MediaAsset.

        Raises:
            ValidationError: If the type is not allowed or the file is too large.
        """
        mime_type = candidate.mime_type.lower()
        if mime_type not in self._allowed:
            logger.info("Rejected %s: type %s", candidate.display_name, candidate.mime_type)
            raise ValidationError(
                "Please select a valid video or image file", field="mime_type",
            )

        if candidate.size_bytes > self._max_bytes:
            logger.info(
                "Rejected %s: %d bytes exceeds %d",
                candidate.display_name, candidate.size_bytes, self._max_bytes,
            )
            raise ValidationError(
                f"File size must be less than {self._max_mb}MB", field="size_bytes",
            )

        category = MimeCategory.VIDEO if mime_type.startswith("video") else MimeCategory.IMAGE
        return MediaAsset(
            payload=candidate.payload,
            mime_type=mime_type,
            mime_category=category,
            size_bytes=candidate.size_bytes,
            display_name=candidate.display_name,
        )

    def admit(
        self, candidate: MediaCandidate, orchestrator: AnalysisOrchestrator
    ) -> MediaAsset:
        """Validate, then reset the orchestrator around the new asset."""
        asset = self.accept(candidate)
        orchestrator.load_asset(asset)
        return asset
