# src/export/exporter_factory.py — v1
"""Factory for quotation renderers and the two-tier exporter.

The plain-text renderer is always the fallback tier.
"""

from __future__ import annotations

import importlib

from mediaquote.config.settings import Settings
from mediaquote.export.base_renderer import BaseReportRenderer
from mediaquote.export.exporter import ReportExporter
from mediaquote.storage.base_output_writer import BaseOutputWriter
from mediaquote.storage.local_writer import LocalWriter

_RENDERERS: dict[str, str] = {
    "docx": "mediaquote.export.renderers.docx_renderer.DocxReportRenderer",
    "text": "mediaquote.export.renderers.text_renderer.TextReportRenderer",
}


def create_renderer(format_name: str) -> BaseReportRenderer:
    """Instantiate a renderer by format name.

    Raises:
        ValueError: If the format is not registered.
    """
    fqcn = _RENDERERS.get(format_name)
    if fqcn is None:
        raise ValueError(
            f"Unsupported export format: {format_name!r}. "
            f"Available: {', '.join(sorted(_RENDERERS))}"
        )
    module_path, class_name = fqcn.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)()


def create_exporter(
    settings: Settings | None = None,
    writer: BaseOutputWriter | None = None,
) -> ReportExporter:
    """Build the exporter: configured primary format + text fallback."""
    settings = settings or Settings()
    if writer is None:
        writer = LocalWriter(settings.export_dir)
    return ReportExporter(
        primary=create_renderer(settings.export_primary_format),
        fallback=create_renderer("text"),
        writer=writer,
    )
