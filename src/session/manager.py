# src/session/manager.py — v1
"""Remote analysis session lifecycle: create, ask, release.

One asset maps to one session; sessions are never reused across assets.
``release`` is best-effort and reports failures through CleanupResult
instead of raising, so cleanup can never block a following upload.
"""

from __future__ import annotations

import logging
from typing import Any

from mediaquote.core.errors import SessionError, TransportError, UploadError
from mediaquote.core.models import AnalysisSession, CleanupResult, MediaAsset
from mediaquote.service.base_service import BaseMediaService
from mediaquote.service.policy import RequestPolicy, with_retry

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns remote session creation and release.

    Args:
        service: Media-analysis backend.
        policy: Retry/pacing policy applied to every call.
    """

    def __init__(
        self,
        service: BaseMediaService,
        policy: RequestPolicy | None = None,
    ) -> None:
        self._service = service
        self._policy = policy or RequestPolicy()

    @property
    def policy(self) -> RequestPolicy:
        return self._policy

    async def create(self, asset: MediaAsset) -> AnalysisSession:
        """Upload the asset and open a session for it.

        Raises:
            UploadError: On transport failure or when no session id comes back.
        """
        logger.info(
            "Uploading %s (%s, %d bytes)",
            asset.display_name, asset.mime_type, asset.size_bytes,
        )
        try:
            data = await with_retry(
                self._service.upload_media, asset,
                policy=self._policy, operation="upload",
            )
        except UploadError:
            raise
        except TransportError as e:
            raise UploadError(
                "Upload failed", endpoint=e.endpoint, status_code=e.status_code,
            ) from e

        session_id = data.get("sessionId")
        if not session_id or not isinstance(session_id, str):
            raise UploadError("No session ID received from API")

        logger.info("Session created: %s", session_id)
        return AnalysisSession(session_id=session_id)

    async def ask(self, session_id: str, query: str) -> str:
        """Send one query to the session and return the answer text.

        A response without choices yields an empty string.

        Raises:
            SessionError: If session_id is empty.
            TransportError: On endpoint failure.
        """
        if not session_id:
            raise SessionError("No active session")
        data = await with_retry(
            self._service.chat, session_id, query, stream=False,
            policy=self._policy, operation="chat",
        )
        return extract_answer(data)

    async def release(self, session_id: str) -> CleanupResult:
        """Release the remote session. Never raises."""
        if not session_id:
            return CleanupResult(session_id="", ok=True)
        try:
            await self._service.cleanup(session_id)
        except Exception as e:  # cleanup must never propagate
            logger.warning("Session cleanup failed for %s: %s", session_id, e)
            return CleanupResult(session_id=session_id, ok=False, error=str(e))
        logger.info("Session released: %s", session_id)
        return CleanupResult(session_id=session_id, ok=True)


def extract_answer(data: dict[str, Any]) -> str:
    """Pull ``choices[0].message.content`` out of a chat response."""
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else ""
