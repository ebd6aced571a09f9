# src/service/base_service.py — v1
"""Abstract media-analysis service interface.

Mirrors the remote endpoints: ingestion, conversational query, question
generation, result formatting and session cleanup. Implementations return
the decoded JSON body and raise TransportError on any non-2xx answer,
network fault or undecodable body.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from mediaquote.core.models import MediaAsset


class BaseMediaService(ABC):
    """Unified interface for the remote media-analysis backend."""

    @abstractmethod
    async def upload_media(self, asset: MediaAsset) -> dict[str, Any]:
        """Upload one media file. Expected body: {"sessionId": str}."""

    @abstractmethod
    async def chat(self, session_id: str, query: str, stream: bool = False) -> dict[str, Any]:
        """Ask the session a question. Expected body: {"choices": [...]}."""

    @abstractmethod
    async def generate_questions(self, summary: str, media_type: str) -> dict[str, Any]:
        """Derive clarification questions. Expected body: {"questions": [...]}."""

    @abstractmethod
    async def format_results(self, qa_data: list[dict[str, str]]) -> dict[str, Any]:
        """Synthesize the final report. Expected body: {"result": str}."""

    @abstractmethod
    async def cleanup(self, session_id: str) -> None:
        """Release the remote session. Body is ignored."""

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Backend identifier used in logs."""
