# src/export/formatting.py — v1
"""Value formatting shared by every quotation renderer."""

from __future__ import annotations

from datetime import datetime

TITLE = "CONSTRUCTION MATERIAL QUOTATION"
SUMMARY_HEADING = "Video Analysis Summary"
MATERIALS_HEADING = "Material Breakdown"
TABLE_HEADERS = ("Item", "Description", "Quantity", "Unit Price", "Total")


def money(value: float) -> str:
    """Currency amount with exactly two decimals."""
    return f"{value:.2f}"


def number(value: float) -> str:
    """Plain number; integral floats lose their trailing '.0'."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def quantity(value: float, unit: str) -> str:
    return f"{number(value)} {unit}".strip()


def timestamp(value: datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def date(value: datetime | None) -> str:
    if value is None:
        return "n/a"
    return value.astimezone().strftime("%Y-%m-%d")


def total_banner(total_cost: float) -> str:
    return f"TOTAL MATERIAL COST: ${money(total_cost)}"
