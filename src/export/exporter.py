# src/export/exporter.py — v1
"""Two-tier quotation export: primary renderer, plain-text fallback.

Each tier renders and delivers in one step. Any failure in the primary
tier (rendering or delivery) falls through to the fallback tier; a
fallback failure is raised as ExportError and never swallowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from mediaquote.core.errors import ExportError
from mediaquote.core.models import ExportArtifact, QuotationResult
from mediaquote.export.base_renderer import BaseReportRenderer
from mediaquote.storage.base_output_writer import BaseOutputWriter

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportExporter:
    """Render a QuotationResult and hand the file to an output writer.

    Args:
        primary: Preferred renderer (document format).
        fallback: Renderer used when the primary tier fails.
        writer: Delivery target. None keeps artifacts in memory only.
        clock: Time source for filenames (injectable for tests).
    """

    def __init__(
        self,
        primary: BaseReportRenderer,
        fallback: BaseReportRenderer,
        writer: BaseOutputWriter | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._primary = primary
        self._fallback = fallback
        self._writer = writer
        self._clock = clock

    @property
    def renderers(self) -> tuple[BaseReportRenderer, BaseReportRenderer]:
        return self._primary, self._fallback

    async def export(self, result: QuotationResult) -> ExportArtifact:
        """Export the quotation, degrading to the fallback format on failure.

        Raises:
            ExportError: If the fallback tier fails as well.
        """
        try:
            return await self._export_with(self._primary, result, degraded=False)
        except Exception as primary_exc:  # any primary failure degrades
            logger.error(
                "Export failed in %s renderer, falling back to %s: %s",
                self._primary.format_name, self._fallback.format_name, primary_exc,
                exc_info=True,
            )

        try:
            return await self._export_with(self._fallback, result, degraded=True)
        except Exception as fallback_exc:
            raise ExportError(
                f"Fallback export failed: {fallback_exc}",
                format_name=self._fallback.format_name,
            ) from fallback_exc

    async def _export_with(
        self,
        renderer: BaseReportRenderer,
        result: QuotationResult,
        degraded: bool,
    ) -> ExportArtifact:
        content = renderer.render(result)
        artifact = ExportArtifact(
            filename=renderer.filename(self._clock()),
            content_type=renderer.content_type,
            content=content,
            format_name=renderer.format_name,
            degraded=degraded,
        )
        if self._writer is not None:
            artifact.path = await self._writer.write(artifact.filename, content)
        logger.info(
            "Exported quotation as %s (%d bytes%s)",
            artifact.filename, len(content), ", degraded" if degraded else "",
        )
        return artifact
