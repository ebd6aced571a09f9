# tests/conftest.py — v2
"""Shared test fixtures for all unit tests.

Provides a scriptable fake media service, sample assets and quotations.
No external dependencies: all I/O is in memory or under tmp_path.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from mediaquote.config.settings import Settings
from mediaquote.core.errors import TransportError
from mediaquote.core.models import Material, MediaAsset, MimeCategory, QuotationResult
from mediaquote.service.base_service import BaseMediaService
from mediaquote.service.policy import NO_DELAY
from mediaquote.session.manager import SessionManager
from mediaquote.upload.gate import MediaCandidate


class FakeMediaService(BaseMediaService):
    """In-memory backend with per-endpoint failure injection.

    ``answers`` maps a question to its answer; unknown questions get
    ``"answer: <question>"``. ``failing_questions`` raise TransportError.
    """

    def __init__(
        self,
        session_id: str | None = "sess_001",
        summary: str = "A living room with two windows and a door.",
        questions: list[str] | None = None,
        report: str | None = "Wall: 4.2m x 2.7m",
    ) -> None:
        self.session_id = session_id
        self.summary = summary
        self.questions = ["How wide is the wall?", "How tall is the door?"] if questions is None else questions
        self.report = report
        self.answers: dict[str, str] = {}
        self.failing_questions: set[str] = set()
        self.fail_upload = False
        self.fail_summary = False
        self.fail_questions = False
        self.fail_format = False
        self.fail_cleanup = False
        self.calls: list[tuple[str, Any]] = []

    async def upload_media(self, asset: MediaAsset) -> dict[str, Any]:
        self.calls.append(("upload", asset.display_name))
        if self.fail_upload:
            raise TransportError("API request failed: 500", endpoint="upload", status_code=500)
        return {"sessionId": self.session_id} if self.session_id else {}

    async def chat(self, session_id: str, query: str, stream: bool = False) -> dict[str, Any]:
        self.calls.append(("chat", query))
        if query in self.failing_questions:
            raise TransportError("API request failed: 502", endpoint="chat", status_code=502)
        if query not in self.questions and query not in self.answers:
            if self.fail_summary:
                raise TransportError("API request failed: 503", endpoint="chat", status_code=503)
            return {"choices": [{"message": {"content": self.summary}}]}
        answer = self.answers.get(query, f"answer: {query}")
        return {"choices": [{"message": {"content": answer}}]}

    async def generate_questions(self, summary: str, media_type: str) -> dict[str, Any]:
        self.calls.append(("questions", media_type))
        if self.fail_questions:
            raise TransportError("Failed to generate questions", endpoint="questions", status_code=500)
        return {"questions": list(self.questions)}

    async def format_results(self, qa_data: list[dict[str, str]]) -> dict[str, Any]:
        self.calls.append(("format", qa_data))
        if self.fail_format:
            raise TransportError("Failed to format results", endpoint="format", status_code=500)
        return {"result": self.report} if self.report is not None else {}

    async def cleanup(self, session_id: str) -> None:
        self.calls.append(("cleanup", session_id))
        if self.fail_cleanup:
            raise TransportError("cleanup unreachable", endpoint="cleanup")

    @property
    def service_name(self) -> str:
        return "fake"

    def calls_to(self, name: str) -> list[Any]:
        return [arg for call, arg in self.calls if call == name]


# === FIXTURES: Settings / service ===


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        history_path=tmp_path / "history.json",
        export_dir=tmp_path / "exports",
        qa_delay_ms=0,
    )


@pytest.fixture
def fake_service() -> FakeMediaService:
    return FakeMediaService()


@pytest.fixture
def session_manager(fake_service: FakeMediaService) -> SessionManager:
    return SessionManager(fake_service, NO_DELAY)


# === FIXTURES: Sample data ===


@pytest.fixture
def video_candidate() -> MediaCandidate:
    payload = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64
    return MediaCandidate(
        payload=payload,
        mime_type="video/mp4",
        size_bytes=len(payload),
        display_name="site_walkthrough.mp4",
    )


@pytest.fixture
def image_asset() -> MediaAsset:
    return MediaAsset(
        payload=b"\x89PNG\r\n\x1a\n",
        mime_type="image/png",
        mime_category=MimeCategory.IMAGE,
        size_bytes=8,
        display_name="kitchen.png",
    )


@pytest.fixture
def video_asset() -> MediaAsset:
    return MediaAsset(
        payload=b"\x00\x00\x00\x18ftypmp42",
        mime_type="video/mp4",
        mime_category=MimeCategory.VIDEO,
        size_bytes=12,
        display_name="site_walkthrough.mp4",
    )


@pytest.fixture
def cement_quotation() -> QuotationResult:
    return QuotationResult(
        timestamp=datetime(2026, 3, 14, 9, 30, 0, tzinfo=timezone.utc),
        video_summary="Unfinished basement, concrete floor, two small windows.",
        materials=[
            Material(
                name="Cement",
                description="Portland cement, 50kg",
                quantity=10,
                unit="bags",
                unit_price=8.50,
                total_price=85.00,
                price_source="Local supplier",
                last_updated=datetime(2026, 3, 1, tzinfo=timezone.utc),
                confidence=90,
            ),
        ],
        total_cost=85.00,
        clarification_queries=["What is the floor area?"],
    )
