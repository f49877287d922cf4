"""Error taxonomy for the caption pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class CaptionPipelineError(Exception):
    """Base error for the caption pipeline."""


class ConfigurationError(CaptionPipelineError):
    """Raised when configuration values are unusable."""


class NotFoundError(CaptionPipelineError, FileNotFoundError):
    """Raised when an input file or video does not exist."""


class ExternalToolError(CaptionPipelineError):
    """Raised when an external executable is missing or exits non-zero."""

    def __init__(self, tool: str, message: str, hint: Optional[str] = None):
        self.tool = tool
        self.hint = hint
        text = message
        if hint:
            text = f"{message}\n   {hint}"
        super().__init__(text)


class ServiceError(CaptionPipelineError):
    """Raised when the remote transcription service fails."""

    def __init__(self, status: Optional[int], message: str):
        self.status = status
        self.message = message
        prefix = f"HTTP {status}: " if status is not None else ""
        super().__init__(f"{prefix}{message}")


class EmptyTranscriptionError(CaptionPipelineError):
    """Raised when a transcription produced no usable cues."""


class CueParseError(CaptionPipelineError, ValueError):
    """Raised when a WebVTT document is malformed or truncated."""


@dataclass(frozen=True)
class DataIntegrityWarning:
    """Registry/filesystem mismatch surfaced by the reconciler. Never raised."""

    category: str
    subject: str
    message: str

    def __str__(self) -> str:
        return f"[{self.category}] {self.subject}: {self.message}"
