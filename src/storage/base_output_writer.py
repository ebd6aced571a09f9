# src/storage/base_output_writer.py — v3
"""Abstract destination for exported artifacts (the "download" target)."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseOutputWriter(ABC):
    """Unified interface for artifact storage backends."""

    @abstractmethod
    async def write(self, name: str, content: bytes | str) -> str:
        """Store content under ``name`` and return where it landed."""
