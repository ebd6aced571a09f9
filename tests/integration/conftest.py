# tests/integration/conftest.py — v8
"""Shared fixtures for integration tests.

Runs the real HttpMediaService against an in-process scripted backend
that stands in for requests.Session, so the full wire format (URLs,
multipart field, JSON bodies, status handling) is exercised without a
server.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

import pytest

from mediaquote.config.settings import Settings
from mediaquote.service.http_service import HttpMediaService

logger = logging.getLogger(__name__)


class ScriptedResponse:
    def __init__(self, status_code: int, payload: Any = None) -> None:
        self.status_code = status_code
        self.ok = status_code < 400
        self._payload = payload

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("empty body")
        return self._payload


class ScriptedBackend:
    """Minimal analysis backend speaking the process-media protocol."""

    def __init__(self) -> None:
        self.sessions: dict[str, bytes] = {}
        self.released: list[str] = []
        self.requests: list[tuple[str, Any]] = []
        self.fail_queries: set[str] = set()
        self.questions = [
            "What is the width of the main wall in meters?",
            "What is the height of the door in meters?",
            "How many windows are visible?",
        ]
        self._counter = 0

    def post(self, url: str, json: Any = None, files: Any = None, timeout: float | None = None):
        parts = urlsplit(url)
        route = parts.path + (f"?{parts.query}" if parts.query else "")
        self.requests.append((route, json if files is None else sorted(files)))
        logger.debug("scripted POST %s", route)

        if route == "/api/process-media":
            self._counter += 1
            session_id = f"sess_{self._counter:03d}"
            _, payload, _ = files["mediaFiles"]
            self.sessions[session_id] = payload
            return ScriptedResponse(200, {"sessionId": session_id})

        if route == "/api/process-media?action=chat":
            if json["sessionId"] not in self.sessions:
                return ScriptedResponse(404, {"error": "unknown session"})
            if json["query"] in self.fail_queries:
                return ScriptedResponse(500, {"error": "model error"})
            return ScriptedResponse(200, {
                "choices": [{"message": {"content": f"reply to: {json['query'][:40]}"}}],
            })

        if route == "/api/process-media?action=cleanup":
            self.released.append(json["sessionId"])
            self.sessions.pop(json["sessionId"], None)
            return ScriptedResponse(200)

        if route == "/api/openai-questions":
            return ScriptedResponse(200, {"questions": list(self.questions)})

        if route == "/api/openai-format":
            lines = [f"- {qa['question']} {qa['answer']}" for qa in json["qaData"]]
            return ScriptedResponse(200, {"result": "\n".join(lines)})

        return ScriptedResponse(404, {"error": "not found"})

    def close(self) -> None:
        pass

    def routes(self) -> list[str]:
        return [route for route, _ in self.requests]


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def int_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        service_base_url="http://analysis.local",
        history_path=tmp_path / "history.json",
        export_dir=tmp_path / "exports",
        qa_delay_ms=0,
    )


@pytest.fixture
def http_service(int_settings, backend) -> HttpMediaService:
    return HttpMediaService(int_settings, session=backend)
