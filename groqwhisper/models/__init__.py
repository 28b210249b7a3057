"""Data models for groq-whisper."""

from .audio import AudioFrame, AudioStats, LoudnessSample, MicrophoneInfo
from .events import SessionEvent
from .session import (
    CaptureResult,
    CaptureSession,
    FailureReason,
    SilenceState,
    TerminationReason,
)
from .transcription import TranscriptionResult

__all__ = [
    "AudioFrame",
    "AudioStats",
    "LoudnessSample",
    "MicrophoneInfo",
    "SessionEvent",
    "CaptureResult",
    "CaptureSession",
    "FailureReason",
    "SilenceState",
    "TerminationReason",
    "TranscriptionResult",
]
