# src/service/http_service.py — v2
"""HTTP adapter for the media-analysis backend, built on requests.

Blocking requests calls are dispatched with asyncio.to_thread so the
pipeline's only suspension points stay the network calls themselves.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import requests

from mediaquote.config.settings import Settings
from mediaquote.core.errors import TransportError
from mediaquote.core.models import MediaAsset
from mediaquote.service.base_service import BaseMediaService

logger = logging.getLogger(__name__)


class HttpMediaService(BaseMediaService):
    """requests-based client for the process-media / openai-* endpoints."""

    def __init__(
        self,
        settings: Settings,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._http = session or requests.Session()
        self._timeout = settings.request_timeout_s

    async def upload_media(self, asset: MediaAsset) -> dict[str, Any]:
        files = {
            self._settings.upload_field_name: (
                asset.display_name,
                asset.payload,
                asset.mime_type,
            ),
        }
        return await self._post(self._settings.upload_path, files=files)

    async def chat(self, session_id: str, query: str, stream: bool = False) -> dict[str, Any]:
        payload = {"sessionId": session_id, "query": query, "stream": stream}
        return await self._post(self._settings.chat_path, json=payload)

    async def generate_questions(self, summary: str, media_type: str) -> dict[str, Any]:
        payload = {"summary": summary, "mediaType": media_type}
        return await self._post(self._settings.questions_path, json=payload)

    async def format_results(self, qa_data: list[dict[str, str]]) -> dict[str, Any]:
        return await self._post(self._settings.format_path, json={"qaData": qa_data})

    async def cleanup(self, session_id: str) -> None:
        await self._post(
            self._settings.cleanup_path, json={"sessionId": session_id}, expect_json=False,
        )

    @property
    def service_name(self) -> str:
        return "http"

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _post(
        self,
        path: str,
        json: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
        expect_json: bool = True,
    ) -> dict[str, Any]:
        return await asyncio.to_thread(self._post_sync, path, json, files, expect_json)

    def _post_sync(
        self,
        path: str,
        json: dict[str, Any] | None,
        files: dict[str, Any] | None,
        expect_json: bool,
    ) -> dict[str, Any]:
        url = self._settings.endpoint(path)
        t0 = time.monotonic()
        try:
            resp = self._http.post(url, json=json, files=files, timeout=self._timeout)
        except requests.Timeout as e:
            raise TransportError(f"Request to {path} timed out", endpoint=path) from e
        except requests.RequestException as e:
            raise TransportError(f"Request to {path} failed: {e}", endpoint=path) from e

        latency = int((time.monotonic() - t0) * 1000)
        logger.debug(
            "POST %s -> %d (%dms)", path, resp.status_code, latency,
            extra={"endpoint": path, "status_code": resp.status_code, "latency_ms": latency},
        )

        if not resp.ok:
            raise TransportError(
                f"API request failed: {resp.status_code}",
                endpoint=path,
                status_code=resp.status_code,
            )

        if not expect_json:
            return {}

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(
                f"Invalid JSON from {path}", endpoint=path, status_code=resp.status_code,
            ) from e

        if not isinstance(data, dict):
            raise TransportError(
                f"Unexpected response shape from {path}",
                endpoint=path,
                status_code=resp.status_code,
            )
        return data
