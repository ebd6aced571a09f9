# src/api/facade.py — v3
"""Public API facade: one analysis workspace per front end.

Usage:
    from mediaquote.api.facade import MediaAnalysisWorkspace
    workspace = MediaAnalysisWorkspace.from_settings(load_settings())
    workspace.upload(MediaCandidate.from_path(path))
    state = await workspace.start_analysis()

Wires the upload gate, session manager, orchestrator, chat driver,
exporter and history store together and owns session hand-over between
uploads.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mediaquote.chat.driver import ChatDriver
from mediaquote.config.settings import Settings
from mediaquote.core.errors import SessionError
from mediaquote.core.models import (
    ChatEntry,
    CleanupResult,
    ExportArtifact,
    HistoryEntry,
    MediaAsset,
    QuotationResult,
)
from mediaquote.export.exporter_factory import create_exporter
from mediaquote.history.store import HistoryStore
from mediaquote.pipeline.orchestrator import AnalysisOrchestrator, StateObserver
from mediaquote.service.policy import RequestPolicy
from mediaquote.session.manager import SessionManager
from mediaquote.upload.gate import MediaCandidate, UploadGate

if TYPE_CHECKING:
    from mediaquote.export.exporter import ReportExporter
    from mediaquote.pipeline.cancellation import CancellationToken
    from mediaquote.pipeline.state import PipelineState
    from mediaquote.service.base_service import BaseMediaService

logger = logging.getLogger(__name__)


class MediaAnalysisWorkspace:
    """Everything a single upload-and-analyze screen needs.

    Args:
        settings: Application settings.
        service: Media-analysis backend.
        exporter: Quotation exporter (built from settings when None).
        history_store: History store (built from settings when None).
        policy: Pacing/retry policy (built from settings when None).
        observer: Optional pipeline state observer.
    """

    def __init__(
        self,
        settings: Settings,
        service: BaseMediaService,
        exporter: ReportExporter | None = None,
        history_store: HistoryStore | None = None,
        policy: RequestPolicy | None = None,
        observer: StateObserver | None = None,
    ) -> None:
        self._settings = settings
        self._policy = policy or RequestPolicy.from_settings(settings)
        self._gate = UploadGate(settings)
        self._sessions = SessionManager(service, self._policy)
        self._history = history_store or HistoryStore(settings.history_path)
        self._orchestrator = AnalysisOrchestrator(
            session_manager=self._sessions,
            service=service,
            history_store=self._history,
            policy=self._policy,
            observer=observer,
        )
        self._chat = ChatDriver(self._sessions)
        self._exporter = exporter or create_exporter(settings)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> MediaAnalysisWorkspace:
        """Build a workspace talking HTTP to the configured service."""
        from mediaquote.service.http_service import HttpMediaService

        settings = settings or Settings()
        return cls(settings=settings, service=HttpMediaService(settings))

    @property
    def state(self) -> PipelineState:
        return self._orchestrator.state

    @property
    def chat(self) -> ChatDriver:
        return self._chat

    # ------------------------------------------------------------------
    # Upload + analysis
    # ------------------------------------------------------------------

    async def upload(self, candidate: MediaCandidate) -> MediaAsset:
        """Accept a new file, superseding the previous asset and session.

        Validation happens first; a rejected file changes nothing.
        """
        previous = self._orchestrator.state.session
        asset = self._gate.admit(candidate, self._orchestrator)
        chat_session = self._chat.session
        await self._chat.clear()
        if previous is not None and (
            chat_session is None or chat_session.session_id != previous.session_id
        ):
            await self._sessions.release(previous.session_id)
        return asset

    async def start_analysis(
        self, cancel_token: CancellationToken | None = None
    ) -> PipelineState:
        """Run the four-stage pipeline; the chat driver follows the new session.

        The orchestrator releases the previous session itself, so the chat
        driver lets go of it before the run and, whatever the outcome, is
        rebound to the session the run left behind (if any).
        """
        if not self._orchestrator.state.is_running:
            self._chat.detach()
        try:
            return await self._orchestrator.run(cancel_token)
        finally:
            self._follow_session()

    def _follow_session(self) -> None:
        state = self._orchestrator.state
        current = self._chat.session
        if state.session is None or self._chat.busy:
            return
        if current is None or current.session_id != state.session.session_id:
            self._chat.attach(state.session, state.asset)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def send_chat(self, text: str) -> ChatEntry | None:
        if self._chat.session is None:
            session = self._orchestrator.state.session
            if session is None:
                raise SessionError("No active session; run an analysis first")
            self._chat.attach(session, self._orchestrator.state.asset)
        return await self._chat.send(text)

    async def clear(self) -> CleanupResult | None:
        """Release the session and discard asset, transcript and progress."""
        session = self._orchestrator.detach_session()
        chat_session = self._chat.session
        self._orchestrator.clear()
        result = await self._chat.clear()
        if session is not None and (
            chat_session is None or chat_session.session_id != session.session_id
        ):
            result = await self._sessions.release(session.session_id)
        return result

    # ------------------------------------------------------------------
    # Export + history
    # ------------------------------------------------------------------

    async def export_quotation(self, result: QuotationResult) -> ExportArtifact:
        return await self._exporter.export(result)

    def history(self) -> list[HistoryEntry]:
        return self._history.read()
