# src/pipeline/cancellation.py — v1
"""Cooperative cancellation token checked at stage and Q&A boundaries."""

from __future__ import annotations

import asyncio

from mediaquote.core.errors import PipelineCancelled


class CancellationToken:
    """Set once by the caller; polled by the orchestrator between steps."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = "Cancelled"

    def cancel(self, reason: str = "Cancelled by user") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancelled(self, stage_index: int | None = None, stage_id: str | None = None) -> None:
        if self._event.is_set():
            raise PipelineCancelled(self._reason, stage_index=stage_index, stage_id=stage_id)
