# src/chat/driver.py — v2
"""Interactive chat against an existing analysis session.

Independent of the orchestrator: it shares only the read-only session id.
Turns are serialized; a turn sent while another is outstanding is rejected.
"""

from __future__ import annotations

import asyncio
import logging

from mediaquote.core.errors import SessionError, TransportError, TurnInProgressError
from mediaquote.core.models import AnalysisSession, ChatEntry, CleanupResult, MediaAsset
from mediaquote.session.manager import SessionManager

logger = logging.getLogger(__name__)

APOLOGY = "Sorry, I encountered an error processing your request."


class ChatDriver:
    """Free-form, one-turn-at-a-time dialogue with a session."""

    def __init__(self, session_manager: SessionManager) -> None:
        self._sessions = session_manager
        self._session: AnalysisSession | None = None
        self._asset: MediaAsset | None = None
        self._transcript: list[ChatEntry] = []
        self._turn_lock = asyncio.Lock()
        self.pending_input: str = ""

    @property
    def session(self) -> AnalysisSession | None:
        return self._session

    @property
    def asset(self) -> MediaAsset | None:
        return self._asset

    @property
    def transcript(self) -> list[ChatEntry]:
        return list(self._transcript)

    @property
    def busy(self) -> bool:
        return self._turn_lock.locked()

    def attach(self, session: AnalysisSession, asset: MediaAsset | None = None) -> None:
        """Bind the driver to a session; the transcript starts empty."""
        if self.busy:
            raise TurnInProgressError("Cannot switch session during a turn")
        self._session = session
        self._asset = asset
        self._transcript = []
        self.pending_input = ""

    def detach(self) -> AnalysisSession | None:
        """Forget the session without releasing it; the transcript is dropped."""
        if self.busy:
            raise TurnInProgressError("Cannot switch session during a turn")
        session = self._session
        self._session = None
        self._asset = None
        self._transcript = []
        self.pending_input = ""
        return session

    async def send(self, text: str | None = None) -> ChatEntry | None:
        """Run one turn and return the assistant entry.

        ``text`` defaults to ``pending_input``. Blank input is ignored and
        returns None.

        Raises:
            SessionError: If no session is attached.
            TurnInProgressError: If a previous turn is still outstanding.
        """
        message = (self.pending_input if text is None else text).strip()
        if not message:
            return None
        if self._session is None:
            raise SessionError("No active session; upload media first")
        if self._turn_lock.locked():
            raise TurnInProgressError("Wait for the current reply before sending")

        async with self._turn_lock:
            session_id = self._session.session_id
            self.pending_input = ""
            self._transcript.append(ChatEntry(role="user", content=message))

            try:
                reply = await self._sessions.ask(session_id, message)
            except (TransportError, SessionError) as e:
                logger.warning("Chat turn failed on %s: %s", session_id, e)
                reply = APOLOGY

            entry = ChatEntry(role="assistant", content=reply)
            # clear() may have run while the request was in flight.
            if self._session is not None and self._session.session_id == session_id:
                self._transcript.append(entry)
            return entry

    async def clear(self) -> CleanupResult | None:
        """Release the session (best-effort) and discard all chat state."""
        session = self._session
        self._session = None
        self._asset = None
        self._transcript = []
        self.pending_input = ""
        if session is None:
            return None
        return await self._sessions.release(session.session_id)
