# src/pipeline/state.py — v2
"""Observable state of one analysis workspace.

Holds the accepted asset, the remote session, the four stage records, the
progress log and the artifacts produced by each stage. Only the
orchestrator mutates it; everything else reads snapshots.
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from mediaquote.core.models import (
    AnalysisSession,
    LogEntry,
    MediaAsset,
    QAPair,
    RunState,
    StageRecord,
    StageStatus,
)

# (id, display name) in execution order.
STAGE_DEFINITIONS: tuple[tuple[str, str], ...] = (
    ("upload", "Media Upload & Summary"),
    ("questions", "Generating Analysis Questions"),
    ("analysis", "Detailed Measurement Analysis"),
    ("formatting", "Formatting Final Results"),
)

STAGE_SUMMARIZE = 0
STAGE_QUESTIONS = 1
STAGE_QA = 2
STAGE_FORMAT = 3


def initial_stages() -> list[StageRecord]:
    """Fresh pending stage records, recreated for every run."""
    return [StageRecord(id=sid, name=name) for sid, name in STAGE_DEFINITIONS]


def new_preview_handle() -> str:
    return f"preview://{uuid.uuid4().hex}"


class PipelineState(BaseModel):
    """Everything the front end observes about the current asset and run."""

    # === IDENTITY ===
    run_id: str = ""
    preview_handle: str = ""

    # === INPUT ===
    asset: MediaAsset | None = None
    session: AnalysisSession | None = None

    # === PROGRESS ===
    run_state: RunState = RunState.IDLE
    stages: list[StageRecord] = Field(default_factory=initial_stages)
    current_stage: int = 0
    logs: list[LogEntry] = Field(default_factory=list)

    # === ARTIFACTS ===
    summary: str = ""
    questions: list[str] = Field(default_factory=list)
    qa_pairs: list[QAPair] = Field(default_factory=list)
    final_report: str = ""
    error: str | None = None

    @property
    def is_running(self) -> bool:
        return self.run_state is RunState.RUNNING

    @property
    def session_id(self) -> str | None:
        return self.session.session_id if self.session else None

    def stage(self, index_or_id: int | str) -> StageRecord:
        """Look up a stage by position or id."""
        if isinstance(index_or_id, int):
            return self.stages[index_or_id]
        for record in self.stages:
            if record.id == index_or_id:
                return record
        raise KeyError(index_or_id)

    def status_summary(self) -> dict[str, str]:
        """Map stage id to status value, for logs and debugging."""
        return {s.id: s.status.value for s in self.stages}

    def rendered_logs(self) -> list[str]:
        return [entry.render() for entry in self.logs]

    def all_pending(self) -> bool:
        return all(
            s.status is StageStatus.PENDING and s.progress == 0.0 for s in self.stages
        )
