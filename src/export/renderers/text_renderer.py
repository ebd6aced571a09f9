# src/export/renderers/text_renderer.py — v1
"""Plain-text quotation renderer, used as the fallback format.

Carries the same fields as the document renderer, without table layout.
"""

from __future__ import annotations

from datetime import datetime

from mediaquote.core.models import Material, QuotationResult
from mediaquote.export import formatting as fmt
from mediaquote.export.base_renderer import FILENAME_STEM, BaseReportRenderer


class TextReportRenderer(BaseReportRenderer):
    """Render a quotation as UTF-8 plain text."""

    @property
    def format_name(self) -> str:
        return "text"

    @property
    def file_extension(self) -> str:
        return ".txt"

    @property
    def content_type(self) -> str:
        return "text/plain"

    def filename(self, now: datetime) -> str:
        return f"{FILENAME_STEM}-{int(now.timestamp() * 1000)}{self.file_extension}"

    def render(self, result: QuotationResult) -> bytes:
        return self.render_text(result).encode("utf-8")

    def render_text(self, result: QuotationResult) -> str:
        lines: list[str] = [
            fmt.TITLE,
            f"Generated: {fmt.timestamp(result.timestamp)}",
            "",
            f"{fmt.SUMMARY_HEADING.upper()}:",
            result.video_summary,
            "",
            f"{fmt.MATERIALS_HEADING.upper()}:",
        ]
        for index, material in enumerate(result.materials, start=1):
            lines.extend(_material_block(index, material))

        lines.append("")
        lines.append(fmt.total_banner(result.total_cost))

        if result.clarification_queries:
            lines.append("")
            lines.append("CLARIFICATION QUERIES PERFORMED:")
            lines.extend(
                f"{i}. {query}"
                for i, query in enumerate(result.clarification_queries, start=1)
            )

        return "\n".join(lines) + "\n"


def _material_block(index: int, material: Material) -> list[str]:
    return [
        "",
        f"{index}. {material.name}",
        f"  Quantity: {fmt.quantity(material.quantity, material.unit)}",
        f"  Unit Price: ${fmt.money(material.unit_price)}",
        f"  Total: ${fmt.money(material.total_price)}",
        f"  Source: {material.price_source or 'n/a'}",
        f"  Updated: {fmt.date(material.last_updated)}",
        f"  Confidence: {fmt.number(material.confidence)}%",
        f"  Description: {material.description}",
    ]
