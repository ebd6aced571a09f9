# src/core/errors.py — v1
"""Error taxonomy shared by the gate, session layer, pipeline and exporter.

Propagation rules:
  - ValidationError is raised before any state is touched.
  - TransportError inside stages 0, 1 and 3 is promoted to PipelineError.
  - TransportError inside one Q&A iteration is downgraded to
    PartialAnswerError and recorded, never raised to the caller.
  - ExportError is only raised when the fallback renderer fails too.
"""

from __future__ import annotations


class MediaQuoteError(Exception):
    """Base class for all mediaquote errors."""


class ValidationError(MediaQuoteError):
    """Candidate media rejected (bad type or size). Message is user-facing."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class TransportError(MediaQuoteError):
    """An endpoint answered non-2xx, returned an unreadable body, or was unreachable."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Rate limits, server errors and network faults are worth retrying."""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class UploadError(TransportError):
    """Media ingestion failed or did not return a session id."""


class SessionError(MediaQuoteError):
    """Missing or invalid session id."""


class PartialAnswerError(MediaQuoteError):
    """A single Q&A turn failed; recovered locally with a placeholder."""

    def __init__(self, index: int, question: str, cause: Exception) -> None:
        self.index = index
        self.question = question
        self.cause = cause
        super().__init__(f"Question {index + 1} failed: {cause}")


class PipelineError(MediaQuoteError):
    """Fatal stage-level failure; the run is halted."""

    def __init__(
        self,
        message: str,
        stage_index: int | None = None,
        stage_id: str | None = None,
    ) -> None:
        self.stage_index = stage_index
        self.stage_id = stage_id
        super().__init__(message)


class RunInProgressError(PipelineError):
    """A run was requested while another is still in flight."""


class PipelineCancelled(PipelineError):
    """The run was cancelled at a stage or Q&A boundary."""


class TurnInProgressError(MediaQuoteError):
    """A chat turn was sent while the previous one is outstanding."""


class ExportError(MediaQuoteError):
    """Document rendering failed."""

    def __init__(self, message: str, format_name: str | None = None) -> None:
        self.format_name = format_name
        super().__init__(message)
