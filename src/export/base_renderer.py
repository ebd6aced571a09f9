# src/export/base_renderer.py — v1
"""Abstract quotation renderer.

Primary and fallback renderers share this contract so the exporter can
swap one for the other behind a single try/recover boundary.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from mediaquote.core.models import QuotationResult

FILENAME_STEM = "construction-quotation"


class BaseReportRenderer(ABC):
    """Unified interface for quotation document formats."""

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Format identifier (e.g., 'docx', 'text')."""

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Output file extension including the dot (e.g., '.docx')."""

    @property
    @abstractmethod
    def content_type(self) -> str:
        """MIME type of the produced bytes."""

    @abstractmethod
    def filename(self, now: datetime) -> str:
        """Deterministic output filename for a render started at ``now``."""

    @abstractmethod
    def render(self, result: QuotationResult) -> bytes:
        """Render the quotation to bytes."""
