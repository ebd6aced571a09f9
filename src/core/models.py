# src/core/models.py — v2
"""Core domain models: media, sessions, stages, logs, Q&A, history, quotations."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _now() -> datetime:
    return datetime.now(timezone.utc)


# === MEDIA ===


class MimeCategory(str, Enum):
    VIDEO = "video"
    IMAGE = "image"


class MediaAsset(BaseModel):
    """Accepted media file. Replaced wholesale by the next upload."""

    model_config = ConfigDict(frozen=True)

    payload: bytes = Field(repr=False)
    mime_type: str
    mime_category: MimeCategory
    size_bytes: int
    display_name: str

    @property
    def media_type(self) -> str:
        """Value sent to the question-generation endpoint ("video" or "image")."""
        return self.mime_category.value


class AnalysisSession(BaseModel):
    """Remote analysis session bound to one uploaded asset."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    created_at: datetime = Field(default_factory=_now)


class CleanupResult(BaseModel):
    """Outcome of a best-effort session release. Never raised, only reported."""

    session_id: str
    ok: bool
    error: str | None = None


# === PIPELINE ===


class StageStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StageRecord(BaseModel):
    """Status of one of the four pipeline stages."""

    id: str
    name: str
    status: StageStatus = StageStatus.PENDING
    progress: float = Field(default=0.0, ge=0.0, le=100.0)


class LogEntry(BaseModel):
    """User-facing progress log line."""

    timestamp: datetime = Field(default_factory=_now)
    message: str

    def render(self) -> str:
        return f"{self.timestamp.astimezone().strftime('%H:%M:%S')}: {self.message}"


class QAPair(BaseModel):
    question: str
    answer: str


class HistoryEntry(BaseModel):
    """One successful run as stored in the analysis history."""

    display_name: str
    result: str
    timestamp: datetime = Field(default_factory=_now)
    session_id: str


# === CHAT ===


class ChatEntry(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=_now)


# === QUOTATION ===


class Material(BaseModel):
    """One priced line of a quotation. Accepts camelCase keys too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    description: str = ""
    quantity: float
    unit: str
    unit_price: float
    total_price: float
    price_source: str = ""
    last_updated: datetime | None = None
    confidence: float = 0.0


class QuotationResult(BaseModel):
    """Structured quotation produced upstream of the exporter.

    ``total_cost`` is expected to equal the sum of ``materials[].total_price``;
    the exporter renders it as given.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    timestamp: datetime = Field(default_factory=_now)
    video_summary: str = ""
    materials: list[Material] = Field(default_factory=list)
    total_cost: float = 0.0
    clarification_queries: list[str] = Field(default_factory=list)


class ExportArtifact(BaseModel):
    """A rendered quotation ready to be handed to the user."""

    filename: str
    content_type: str
    content: bytes = Field(repr=False)
    format_name: str
    degraded: bool = False
    path: str | None = None
