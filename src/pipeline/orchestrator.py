# src/pipeline/orchestrator.py — v3
"""Stage pipeline orchestrator: the four-stage analysis state machine.

Drives, strictly in order:
  Stage 0: Summarize       (upload media, open session, describe content)
  Stage 1: Questions       (derive clarification questions from the summary)
  Stage 2: Q&A loop        (answer each question sequentially on the session)
  Stage 3: Formatting      (synthesize the final report from all Q&A pairs)

Failure policy:
  - Stages 0, 1 and 3 are hard prerequisites; any failure marks the active
    stage error(0%), fails the run and halts. Completed stages keep their
    status.
  - Inside stage 2 each question fails on its own: the answer is replaced by
    a placeholder and the loop carries on.

The session id returned by stage 0 is threaded into stage 2 explicitly.
Stage records, run state and the progress log are mutated here only.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import TYPE_CHECKING, Callable

from mediaquote.core.errors import (
    PartialAnswerError,
    PipelineCancelled,
    PipelineError,
    RunInProgressError,
    TransportError,
)
from mediaquote.core.models import (
    AnalysisSession,
    HistoryEntry,
    LogEntry,
    MediaAsset,
    QAPair,
    RunState,
    StageStatus,
)
from mediaquote.logging.context import (
    clear_context,
    set_run_context,
    set_session_context,
    set_stage_context,
)
from mediaquote.pipeline.cancellation import CancellationToken
from mediaquote.pipeline.state import (
    STAGE_FORMAT,
    STAGE_QA,
    STAGE_QUESTIONS,
    STAGE_SUMMARIZE,
    PipelineState,
    initial_stages,
    new_preview_handle,
)
from mediaquote.service.policy import RequestPolicy, with_retry

if TYPE_CHECKING:
    from mediaquote.history.store import HistoryStore
    from mediaquote.service.base_service import BaseMediaService
    from mediaquote.session.manager import SessionManager

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """You are an expert visual analyst. Your task is to deeply observe and meticulously summarize the content of the provided video or image. Your summary must include:

A comprehensive list of all objects, people, and key elements visible (e.g., doors, windows, walls, furniture, decorations, colors, textures, lighting).

Detailed descriptions of actions, movements, and interactions between objects or people, if present.

Descriptions of the setting, environment, and atmosphere (e.g., indoor/outdoor, weather, time of day, mood).

Any text, symbols, logos, or signage visible and their possible significance.

Inferred context, purpose, or meaning based on visual clues (e.g., is it a home, office, store, event?).

Emotional tone if detectable from expressions, actions, or atmosphere.

Format the summary into approximately 50 concise but detailed lines, covering every noticeable detail without missing any significant element."""

PLACEHOLDER_ANSWER = "Error processing this question"
EMPTY_ANSWER = "No answer available"
EMPTY_REPORT = "No measurements could be determined"

# Legal stage transitions; anything else is a bug in this module.
_TRANSITIONS: dict[StageStatus, set[StageStatus]] = {
    StageStatus.PENDING: {StageStatus.PROCESSING, StageStatus.ERROR},
    StageStatus.PROCESSING: {StageStatus.PROCESSING, StageStatus.COMPLETED, StageStatus.ERROR},
    StageStatus.COMPLETED: set(),
    StageStatus.ERROR: set(),
}

StateObserver = Callable[[PipelineState], None]


class AnalysisOrchestrator:
    """Owns the pipeline state and runs the four stages against one asset.

    Args:
        session_manager: Creates and queries the remote session.
        service: Backend used for question generation and formatting.
        history_store: Optional store receiving one entry per successful run.
        policy: Pacing/retry policy (defaults to the session manager's).
        observer: Optional callback receiving a state snapshot after every
            stage or log mutation. Must not mutate the snapshot.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        service: BaseMediaService,
        history_store: HistoryStore | None = None,
        policy: RequestPolicy | None = None,
        observer: StateObserver | None = None,
    ) -> None:
        self._sessions = session_manager
        self._service = service
        self._history = history_store
        self._policy = policy or session_manager.policy
        self._observer = observer
        self._state = PipelineState()

    @property
    def state(self) -> PipelineState:
        """Live state. Treat as read-only; use snapshot() to keep a copy."""
        return self._state

    def snapshot(self) -> PipelineState:
        return self._state.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Asset lifecycle
    # ------------------------------------------------------------------

    def load_asset(self, asset: MediaAsset) -> None:
        """Replace the asset and reset every stage, log and artifact.

        The previous session reference is dropped; releasing it is the
        caller's job (see ``detach_session``).

        Raises:
            RunInProgressError: If a run is in flight.
        """
        if self._state.is_running:
            raise RunInProgressError("Cannot replace media while analysis is running")
        self._state = PipelineState(asset=asset, preview_handle=new_preview_handle())
        logger.info("Loaded %s (%s)", asset.display_name, asset.mime_category.value)
        self._notify()

    def detach_session(self) -> AnalysisSession | None:
        """Forget the current session and return it so it can be released."""
        if self._state.is_running:
            raise RunInProgressError("Cannot detach session while analysis is running")
        session = self._state.session
        self._state.session = None
        return session

    def clear(self) -> None:
        """Drop asset, session reference and all progress."""
        if self._state.is_running:
            raise RunInProgressError("Cannot clear while analysis is running")
        self._state = PipelineState()
        self._notify()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, cancel_token: CancellationToken | None = None) -> PipelineState:
        """Execute stages 0 to 3 on the loaded asset.

        Returns:
            The final state (run_state DONE).

        Raises:
            RunInProgressError: If another run is in flight (not queued).
            PipelineError: If no asset is loaded, or a stage failed fatally.
            PipelineCancelled: If the token was cancelled at a boundary.
        """
        # Check-and-set happens before the first await, so starts are atomic.
        if self._state.is_running:
            raise RunInProgressError("Analysis already in progress")
        asset = self._state.asset
        if asset is None:
            raise PipelineError("No file uploaded")

        token = cancel_token or CancellationToken()
        self._begin_run()
        set_run_context(self._state.run_id)
        start = time.monotonic()

        try:
            token.raise_if_cancelled(STAGE_SUMMARIZE)
            summary, session = await self._summarize(asset)

            token.raise_if_cancelled(STAGE_QUESTIONS)
            questions = await self._generate_questions(summary, asset)

            token.raise_if_cancelled(STAGE_QA)
            qa_pairs = await self._answer_questions(questions, session.session_id, token)

            token.raise_if_cancelled(STAGE_FORMAT)
            report = await self._format_results(qa_pairs)
        except PipelineCancelled as e:
            self._abort(RunState.CANCELLED, f"Cancelled: {e}")
            raise
        except asyncio.CancelledError:
            self._abort(RunState.CANCELLED, "Cancelled: task cancelled")
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            stage_index = self._state.current_stage
            self._abort(RunState.FAILED, f"Error: {message}")
            logger.error(
                "Run %s failed at stage %d: %s",
                self._state.run_id, stage_index, message,
                exc_info=not isinstance(e, (TransportError, PipelineError)),
            )
            if isinstance(e, PipelineError):
                raise
            raise PipelineError(
                message,
                stage_index=stage_index,
                stage_id=self._state.stages[stage_index].id,
            ) from e
        finally:
            clear_context()

        self._state.final_report = report
        self._state.run_state = RunState.DONE
        self._log("Analysis completed successfully!")
        self._record_history(asset, report, session.session_id)

        logger.info(
            "Run %s done: %d questions in %.1fs",
            self._state.run_id, len(qa_pairs), time.monotonic() - start,
        )
        return self._state

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _summarize(self, asset: MediaAsset) -> tuple[str, AnalysisSession]:
        self._update_stage(STAGE_SUMMARIZE, StageStatus.PROCESSING, 25)
        self._log("Uploading media to analysis service...")

        previous = self._state.session
        if previous is not None:
            self._state.session = None
            await self._sessions.release(previous.session_id)

        session = await self._sessions.create(asset)
        self._state.session = session
        set_session_context(session.session_id)

        self._update_stage(STAGE_SUMMARIZE, StageStatus.PROCESSING, 50)
        self._log("File uploaded successfully, generating summary...")

        summary = await self._sessions.ask(session.session_id, SUMMARY_PROMPT)
        self._state.summary = summary

        self._update_stage(STAGE_SUMMARIZE, StageStatus.COMPLETED, 100)
        self._log("Summary generated successfully")
        return summary, session

    async def _generate_questions(self, summary: str, asset: MediaAsset) -> list[str]:
        self._update_stage(STAGE_QUESTIONS, StageStatus.PROCESSING, 50)
        self._log("Generating detailed analysis questions...")

        data = await with_retry(
            self._service.generate_questions, summary, asset.media_type,
            policy=self._policy, operation="generate_questions",
        )
        raw = data.get("questions")
        if not isinstance(raw, list):
            if raw is not None:
                logger.warning("Ignoring non-list questions payload: %r", type(raw).__name__)
            raw = []
        questions = [q for q in raw if isinstance(q, str) and q.strip()]
        self._state.questions = questions

        self._update_stage(STAGE_QUESTIONS, StageStatus.COMPLETED, 100)
        self._log(f"Generated {len(questions)} analysis questions")
        return questions

    async def _answer_questions(
        self,
        questions: list[str],
        session_id: str,
        token: CancellationToken,
    ) -> list[QAPair]:
        self._update_stage(STAGE_QA, StageStatus.PROCESSING, 0)
        self._log("Starting detailed measurement analysis...")

        total = len(questions)
        pairs: list[QAPair] = []
        failures = 0

        for i, question in enumerate(questions):
            token.raise_if_cancelled(STAGE_QA)
            if i > 0:
                await self._policy.pause()

            self._update_stage(STAGE_QA, StageStatus.PROCESSING, (i + 1) / total * 100)
            self._log(f"Analyzing question {i + 1}/{total}: {question[:50]}...")

            try:
                answer = await self._sessions.ask(session_id, question) or EMPTY_ANSWER
            except TransportError as e:
                partial = PartialAnswerError(i, question, e)
                logger.warning("%s", partial, extra={"question_index": i, "question_total": total})
                self._log(str(partial))
                answer = PLACEHOLDER_ANSWER
                failures += 1

            pairs.append(QAPair(question=question, answer=answer))
            self._state.qa_pairs = list(pairs)

        self._update_stage(STAGE_QA, StageStatus.COMPLETED, 100)
        if failures:
            self._log(f"Detailed analysis completed ({failures}/{total} questions failed)")
        else:
            self._log("Detailed analysis completed")
        return pairs

    async def _format_results(self, qa_pairs: list[QAPair]) -> str:
        self._update_stage(STAGE_FORMAT, StageStatus.PROCESSING, 50)
        self._log("Formatting final measurements...")

        qa_data = [pair.model_dump() for pair in qa_pairs]
        data = await with_retry(
            self._service.format_results, qa_data,
            policy=self._policy, operation="format_results",
        )
        result = data.get("result")
        report = result if isinstance(result, str) and result else EMPTY_REPORT

        self._update_stage(STAGE_FORMAT, StageStatus.COMPLETED, 100)
        self._log("Final formatting completed")
        return report

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _begin_run(self) -> None:
        state = self._state
        state.run_id = uuid.uuid4().hex[:12]
        state.run_state = RunState.RUNNING
        state.stages = initial_stages()
        state.current_stage = STAGE_SUMMARIZE
        state.logs = []
        state.summary = ""
        state.questions = []
        state.qa_pairs = []
        state.final_report = ""
        state.error = None
        self._notify()

    def _update_stage(self, index: int, status: StageStatus, progress: float) -> None:
        record = self._state.stages[index]
        if status not in _TRANSITIONS[record.status]:
            raise PipelineError(
                f"Illegal transition for stage '{record.id}': "
                f"{record.status.value} -> {status.value}",
                stage_index=index,
                stage_id=record.id,
            )
        record.status = status
        record.progress = float(progress)
        self._state.current_stage = index
        set_stage_context(record.id)
        logger.debug(
            "Stage %s -> %s", record.id, status.value,
            extra={"stage_index": index, "stage_status": status.value, "progress": record.progress},
        )
        self._notify()

    def _abort(self, run_state: RunState, message: str) -> None:
        """Mark the active stage error(0%); completed stages are left alone.

        A cancellation only marks a stage that had started processing.
        """
        index = self._state.current_stage
        record = self._state.stages[index]
        interrupted = record.status is StageStatus.PROCESSING or (
            run_state is RunState.FAILED and record.status is StageStatus.PENDING
        )
        if interrupted:
            record.status = StageStatus.ERROR
            record.progress = 0.0
        self._state.run_state = run_state
        self._state.error = message
        self._log(message)

    def _log(self, message: str) -> None:
        self._state.logs.append(LogEntry(message=message))
        logger.info("%s", message)
        self._notify()

    def _record_history(self, asset: MediaAsset, report: str, session_id: str) -> None:
        if self._history is None:
            return
        entry = HistoryEntry(
            display_name=asset.display_name, result=report, session_id=session_id,
        )
        try:
            self._history.append(entry)
        except (OSError, ValueError) as e:
            logger.warning("Could not save analysis history: %s", e)
            self._log(f"Warning: history not saved ({e})")

    def _notify(self) -> None:
        if self._observer is not None:
            self._observer(self.snapshot())
