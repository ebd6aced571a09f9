# tests/unit/pipeline/test_unit_orchestrator.py — v3
"""Tests for pipeline/orchestrator.py — stage sequencing and failure policy."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mediaquote.core.errors import PipelineCancelled, PipelineError, RunInProgressError
from mediaquote.core.models import HistoryEntry, RunState, StageStatus
from mediaquote.history.store import HistoryStore
from mediaquote.pipeline.cancellation import CancellationToken
from mediaquote.pipeline.orchestrator import (
    EMPTY_ANSWER,
    EMPTY_REPORT,
    PLACEHOLDER_ANSWER,
    SUMMARY_PROMPT,
    AnalysisOrchestrator,
)
from mediaquote.service.policy import NO_DELAY, RequestPolicy

PENDING = StageStatus.PENDING
COMPLETED = StageStatus.COMPLETED
ERROR = StageStatus.ERROR


def _statuses(state) -> list[StageStatus]:
    return [s.status for s in state.stages]


@pytest.fixture
def snapshots() -> list:
    return []


@pytest.fixture
def orchestrator(session_manager, fake_service, snapshots, video_asset):
    orch = AnalysisOrchestrator(
        session_manager=session_manager,
        service=fake_service,
        policy=NO_DELAY,
        observer=snapshots.append,
    )
    orch.load_asset(video_asset)
    return orch


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_all_stages_complete(self, orchestrator):
        state = await orchestrator.run()
        assert state.run_state is RunState.DONE
        assert _statuses(state) == [COMPLETED] * 4
        assert all(s.progress == 100 for s in state.stages)
        assert state.final_report == "Wall: 4.2m x 2.7m"
        assert state.session_id == "sess_001"

    @pytest.mark.asyncio
    async def test_one_pair_per_question_in_order(self, orchestrator, fake_service):
        fake_service.questions = ["Q1?", "Q2?", "Q3?"]
        state = await orchestrator.run()
        assert [p.question for p in state.qa_pairs] == ["Q1?", "Q2?", "Q3?"]
        assert [p.answer for p in state.qa_pairs] == ["answer: Q1?", "answer: Q2?", "answer: Q3?"]

    @pytest.mark.asyncio
    async def test_call_order(self, orchestrator, fake_service):
        await orchestrator.run()
        names = [name for name, _ in fake_service.calls]
        assert names == ["upload", "chat", "questions", "chat", "chat", "format"]
        assert fake_service.calls[1] == ("chat", SUMMARY_PROMPT)
        assert fake_service.calls_to("questions") == ["video"]

    @pytest.mark.asyncio
    async def test_format_receives_all_pairs(self, orchestrator, fake_service):
        await orchestrator.run()
        (qa_data,) = fake_service.calls_to("format")
        assert qa_data == [
            {"question": "How wide is the wall?", "answer": "answer: How wide is the wall?"},
            {"question": "How tall is the door?", "answer": "answer: How tall is the door?"},
        ]

    @pytest.mark.asyncio
    async def test_logs(self, orchestrator):
        state = await orchestrator.run()
        messages = [entry.message for entry in state.logs]
        assert "Summary generated successfully" in messages
        assert "Generated 2 analysis questions" in messages
        assert "Analyzing question 1/2: How wide is the wall?..." in messages
        assert messages[-1] == "Analysis completed successfully!"

    @pytest.mark.asyncio
    async def test_empty_answer_and_report_defaults(self, orchestrator, fake_service):
        fake_service.answers["How wide is the wall?"] = ""
        fake_service.report = None
        state = await orchestrator.run()
        assert state.qa_pairs[0].answer == EMPTY_ANSWER
        assert state.final_report == EMPTY_REPORT

    @pytest.mark.asyncio
    async def test_zero_questions(self, orchestrator, fake_service):
        fake_service.questions = []
        state = await orchestrator.run()
        assert state.run_state is RunState.DONE
        assert state.qa_pairs == []
        assert state.stage(2).status is COMPLETED
        assert fake_service.calls_to("format") == [[]]


class TestProgress:
    @pytest.mark.asyncio
    async def test_qa_progress_monotonic(self, orchestrator, fake_service, snapshots):
        fake_service.questions = ["a?", "b?", "c?", "d?"]
        await orchestrator.run()
        values = [
            s.stages[2].progress for s in snapshots
            if s.stages[2].status is StageStatus.PROCESSING
        ]
        assert values == sorted(values)
        assert {25.0, 50.0, 75.0, 100.0} <= set(values)

    @pytest.mark.asyncio
    async def test_observer_gets_copies(self, orchestrator, snapshots):
        await orchestrator.run()
        first_running = next(s for s in snapshots if s.run_state is RunState.RUNNING)
        assert first_running.stages[0].status is PENDING
        assert first_running is not orchestrator.state


class TestPartialFailure:
    @pytest.mark.asyncio
    async def test_single_question_failure(self, orchestrator, fake_service):
        fake_service.questions = ["Q1?", "Q2?", "Q3?"]
        fake_service.failing_questions.add("Q2?")
        state = await orchestrator.run()
        assert state.run_state is RunState.DONE
        assert [p.answer for p in state.qa_pairs] == [
            "answer: Q1?", PLACEHOLDER_ANSWER, "answer: Q3?",
        ]
        assert state.stage(3).status is COMPLETED
        assert any("Question 2 failed" in e.message for e in state.logs)

    @pytest.mark.asyncio
    async def test_all_questions_fail_still_formats(self, orchestrator, fake_service):
        fake_service.failing_questions.update(fake_service.questions)
        state = await orchestrator.run()
        assert all(p.answer == PLACEHOLDER_ANSWER for p in state.qa_pairs)
        assert len(fake_service.calls_to("format")) == 1


class TestFatalFailure:
    @pytest.mark.asyncio
    async def test_upload_failure(self, orchestrator, fake_service):
        fake_service.fail_upload = True
        with pytest.raises(PipelineError) as exc:
            await orchestrator.run()
        assert exc.value.stage_index == 0
        state = orchestrator.state
        assert state.run_state is RunState.FAILED
        assert _statuses(state) == [ERROR, PENDING, PENDING, PENDING]
        assert state.stage(0).progress == 0
        assert fake_service.calls_to("questions") == []

    @pytest.mark.asyncio
    async def test_missing_session_id(self, orchestrator, fake_service):
        fake_service.session_id = None
        with pytest.raises(PipelineError, match="No session ID"):
            await orchestrator.run()
        assert orchestrator.state.error == "Error: No session ID received from API"

    @pytest.mark.asyncio
    async def test_summary_failure(self, orchestrator, fake_service):
        fake_service.fail_summary = True
        with pytest.raises(PipelineError):
            await orchestrator.run()
        assert _statuses(orchestrator.state) == [ERROR, PENDING, PENDING, PENDING]

    @pytest.mark.asyncio
    async def test_questions_failure(self, orchestrator, fake_service):
        fake_service.fail_questions = True
        with pytest.raises(PipelineError) as exc:
            await orchestrator.run()
        assert exc.value.stage_id == "questions"
        state = orchestrator.state
        assert _statuses(state) == [COMPLETED, ERROR, PENDING, PENDING]
        assert state.stage(0).progress == 100
        assert state.stage(1).progress == 0
        assert fake_service.calls_to("format") == []

    @pytest.mark.asyncio
    async def test_format_failure(self, orchestrator, fake_service):
        fake_service.fail_format = True
        with pytest.raises(PipelineError):
            await orchestrator.run()
        state = orchestrator.state
        assert _statuses(state) == [COMPLETED, COMPLETED, COMPLETED, ERROR]
        assert state.final_report == ""
        assert state.logs[-1].message == "Error: Failed to format results"

    @pytest.mark.asyncio
    async def test_no_asset(self, session_manager, fake_service):
        orch = AnalysisOrchestrator(session_manager, fake_service, policy=NO_DELAY)
        with pytest.raises(PipelineError, match="No file uploaded"):
            await orch.run()
        assert fake_service.calls == []

    @pytest.mark.asyncio
    async def test_rerun_after_failure(self, orchestrator, fake_service):
        fake_service.fail_format = True
        with pytest.raises(PipelineError):
            await orchestrator.run()
        fake_service.fail_format = False
        state = await orchestrator.run()
        assert state.run_state is RunState.DONE
        assert fake_service.calls_to("cleanup") == ["sess_001"]


class _GatedService:
    """Wrap a fake service so upload blocks until released."""

    def __init__(self, inner):
        self._inner = inner
        self.gate = asyncio.Event()

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def upload_media(self, asset):
        await self.gate.wait()
        return await self._inner.upload_media(asset)


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_second_start_refused(self, fake_service, video_asset):
        from mediaquote.session.manager import SessionManager

        gated = _GatedService(fake_service)
        orch = AnalysisOrchestrator(SessionManager(gated, NO_DELAY), gated, policy=NO_DELAY)
        orch.load_asset(video_asset)

        first = asyncio.create_task(orch.run())
        await asyncio.sleep(0)
        assert orch.state.is_running
        with pytest.raises(RunInProgressError):
            await orch.run()
        with pytest.raises(RunInProgressError):
            orch.load_asset(video_asset)

        gated.gate.set()
        state = await first
        assert state.run_state is RunState.DONE
        assert len(fake_service.calls_to("upload")) == 1


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_before_start(self, orchestrator, fake_service):
        token = CancellationToken()
        token.cancel("stop")
        with pytest.raises(PipelineCancelled):
            await orchestrator.run(token)
        assert orchestrator.state.run_state is RunState.CANCELLED
        assert orchestrator.state.all_pending()
        assert fake_service.calls == []

    @pytest.mark.asyncio
    async def test_cancel_during_qa(self, orchestrator, fake_service):
        token = CancellationToken()
        fake_service.questions = ["Q1?", "Q2?", "Q3?"]
        original_chat = fake_service.chat

        async def chat_then_cancel(session_id, query, stream=False):
            result = await original_chat(session_id, query, stream)
            if query == "Q1?":
                token.cancel("user stopped")
            return result

        fake_service.chat = chat_then_cancel
        with pytest.raises(PipelineCancelled, match="user stopped"):
            await orchestrator.run(token)

        state = orchestrator.state
        assert state.run_state is RunState.CANCELLED
        assert _statuses(state) == [COMPLETED, COMPLETED, ERROR, PENDING]
        assert len(state.qa_pairs) == 1
        assert fake_service.calls_to("format") == []


class TestAssetLifecycle:
    @pytest.mark.asyncio
    async def test_load_asset_resets(self, orchestrator, image_asset):
        await orchestrator.run()
        previous_handle = orchestrator.state.preview_handle
        orchestrator.load_asset(image_asset)
        state = orchestrator.state
        assert state.all_pending()
        assert state.logs == [] and state.qa_pairs == [] and state.final_report == ""
        assert state.session is None
        assert state.preview_handle != previous_handle
        assert state.preview_handle.startswith("preview://")

    @pytest.mark.asyncio
    async def test_detach_session(self, orchestrator):
        await orchestrator.run()
        session = orchestrator.detach_session()
        assert session.session_id == "sess_001"
        assert orchestrator.state.session is None

    def test_clear(self, orchestrator):
        orchestrator.clear()
        assert orchestrator.state.asset is None


class TestHistory:
    @pytest.mark.asyncio
    async def test_success_appends_entry(self, session_manager, fake_service, video_asset, tmp_path):
        store = HistoryStore(tmp_path / "history.json")
        orch = AnalysisOrchestrator(session_manager, fake_service, history_store=store, policy=NO_DELAY)
        orch.load_asset(video_asset)
        await orch.run()
        (entry,) = store.read()
        assert isinstance(entry, HistoryEntry)
        assert entry.display_name == "site_walkthrough.mp4"
        assert entry.result == "Wall: 4.2m x 2.7m"
        assert entry.session_id == "sess_001"

    @pytest.mark.asyncio
    async def test_failure_appends_nothing(self, session_manager, fake_service, video_asset, tmp_path):
        store = HistoryStore(tmp_path / "history.json")
        fake_service.fail_format = True
        orch = AnalysisOrchestrator(session_manager, fake_service, history_store=store, policy=NO_DELAY)
        orch.load_asset(video_asset)
        with pytest.raises(PipelineError):
            await orch.run()
        assert store.read() == []

    @pytest.mark.asyncio
    async def test_history_write_error_not_fatal(self, session_manager, fake_service, video_asset, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        store = HistoryStore(blocker / "history.json")
        orch = AnalysisOrchestrator(session_manager, fake_service, history_store=store, policy=NO_DELAY)
        orch.load_asset(video_asset)
        state = await orch.run()
        assert state.run_state is RunState.DONE
        assert "history not saved" in state.logs[-1].message


class TestQuestionPacing:
    def _orchestrator(self, session_manager, fake_service, video_asset):
        orch = AnalysisOrchestrator(
            session_manager, fake_service, policy=RequestPolicy(qa_delay_s=0.5),
        )
        orch.load_asset(video_asset)
        return orch

    @pytest.mark.asyncio
    async def test_pause_between_consecutive_questions(self, session_manager, fake_service, video_asset):
        fake_service.questions = ["Q1?", "Q2?", "Q3?"]
        pause = AsyncMock(side_effect=lambda: fake_service.calls.append(("pause", None)))
        orch = self._orchestrator(session_manager, fake_service, video_asset)
        with patch.object(RequestPolicy, "pause", pause):
            await orch.run()
        assert pause.await_count == 2
        names = [name for name, _ in fake_service.calls]
        assert names[3:] == ["chat", "pause", "chat", "pause", "chat", "format"]

    @pytest.mark.asyncio
    async def test_pause_after_failed_question(self, session_manager, fake_service, video_asset):
        fake_service.questions = ["Q1?", "Q2?", "Q3?"]
        fake_service.failing_questions.add("Q1?")
        pause = AsyncMock()
        orch = self._orchestrator(session_manager, fake_service, video_asset)
        with patch.object(RequestPolicy, "pause", pause):
            await orch.run()
        assert pause.await_count == 2

    @pytest.mark.asyncio
    async def test_single_question_no_pause(self, session_manager, fake_service, video_asset):
        fake_service.questions = ["Q1?"]
        pause = AsyncMock()
        orch = self._orchestrator(session_manager, fake_service, video_asset)
        with patch.object(RequestPolicy, "pause", pause):
            await orch.run()
        assert pause.await_count == 0


class TestQuestionsPayload:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", ["abc", {"q": "x"}, None, 3])
    async def test_non_list_yields_no_questions(self, orchestrator, fake_service, payload):
        fake_service.generate_questions = AsyncMock(return_value={"questions": payload})
        state = await orchestrator.run()
        assert state.run_state is RunState.DONE
        assert state.questions == []
        assert state.qa_pairs == []

    @pytest.mark.asyncio
    async def test_blank_and_non_string_items_dropped(self, orchestrator, fake_service):
        fake_service.generate_questions = AsyncMock(
            return_value={"questions": ["Q1?", "", "  ", 7, None, "Q2?"]}
        )
        state = await orchestrator.run()
        assert state.questions == ["Q1?", "Q2?"]


class TestRerunSessionHandling:
    @pytest.mark.asyncio
    async def test_failed_rerun_drops_released_session(self, orchestrator, fake_service):
        await orchestrator.run()
        fake_service.fail_upload = True
        with pytest.raises(PipelineError):
            await orchestrator.run()
        assert fake_service.calls_to("cleanup") == ["sess_001"]
        assert orchestrator.state.session is None


class TestHistoryErrors:
    @pytest.mark.asyncio
    async def test_decode_error_from_store_not_fatal(self, session_manager, fake_service, video_asset):
        store = MagicMock()
        store.append.side_effect = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
        orch = AnalysisOrchestrator(session_manager, fake_service, history_store=store, policy=NO_DELAY)
        orch.load_asset(video_asset)
        state = await orch.run()
        assert state.run_state is RunState.DONE
        assert state.final_report == "Wall: 4.2m x 2.7m"
        assert "history not saved" in state.logs[-1].message

    @pytest.mark.asyncio
    async def test_undecodable_history_file(self, session_manager, fake_service, video_asset, tmp_path):
        path = tmp_path / "history.json"
        path.write_bytes(b"\xff\xfe[garbage")
        store = HistoryStore(path)
        orch = AnalysisOrchestrator(session_manager, fake_service, history_store=store, policy=NO_DELAY)
        orch.load_asset(video_asset)
        state = await orch.run()
        assert state.run_state is RunState.DONE
        assert [e.display_name for e in store.read()] == ["site_walkthrough.mp4"]
        assert len(list(tmp_path.glob("history.json.corrupt-*"))) == 1
