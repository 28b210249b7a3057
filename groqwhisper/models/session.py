"""Session-related data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .audio import BYTES_PER_SECOND, SAMPLE_RATE, SAMPLE_WIDTH, CHANNELS
from ..errors import (
    CaptureError,
    EmptyRecording,
    RecordingCancelled,
    SourceRuntimeError,
    SourceStartFailure,
)


class TerminationReason(Enum):
    """Why a recording stopped."""
    SILENCE_DETECTED = "silence_detected"
    MAX_DURATION_REACHED = "max_duration_reached"
    CANCELLED = "cancelled"
    SOURCE_ERROR = "source_error"


class FailureReason(Enum):
    """Why a recording cannot be handed to transcription."""
    EMPTY_RECORDING = "empty_recording"
    SOURCE_START_FAILURE = "source_start_failure"
    SOURCE_RUNTIME_ERROR = "source_runtime_error"
    CANCELLED = "cancelled"


@dataclass
class SilenceState:
    """Running silence bookkeeping for one recording.

    ``threshold`` is a fraction of full-scale amplitude. A frame at or above
    it counts as speech, so a lower threshold is more sensitive.
    """
    threshold: float
    required_silence_duration: float
    accumulated_silence_duration: float = 0.0
    has_detected_speech: bool = False


class CaptureSession:
    """One recording attempt.

    Only the RecordingController mutates a session; everybody else gets the
    read-only properties.
    """

    def __init__(self, max_duration: float, silence_state: SilenceState,
                 sample_rate: int = SAMPLE_RATE):
        self._started_at = datetime.now()
        self._max_duration = max_duration
        self._silence_state = silence_state
        self._sample_rate = sample_rate
        self._sink = bytearray()
        self._frames_captured = 0
        self._frames_received = 0
        self._received_samples = 0
        self._termination_reason: Optional[TerminationReason] = None
        self._finished_at: Optional[datetime] = None

    @property
    def started_at(self) -> datetime:
        return self._started_at

    @property
    def finished_at(self) -> Optional[datetime]:
        return self._finished_at

    @property
    def max_duration(self) -> float:
        return self._max_duration

    @property
    def silence_state(self) -> SilenceState:
        return self._silence_state

    @property
    def termination_reason(self) -> Optional[TerminationReason]:
        return self._termination_reason

    @property
    def frames_captured(self) -> int:
        """Frames written to the output sink."""
        return self._frames_captured

    @property
    def frames_received(self) -> int:
        """Frames read from the source, including trimmed ones."""
        return self._frames_received

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def received_duration(self) -> float:
        """Seconds of audio read from the source so far."""
        return self._received_samples / self._sample_rate

    @property
    def captured_duration(self) -> float:
        """Seconds of audio held in the output sink."""
        return len(self._sink) / (self._sample_rate * CHANNELS * SAMPLE_WIDTH)

    @property
    def audio(self) -> bytes:
        return bytes(self._sink)

    @property
    def is_finalized(self) -> bool:
        return self._termination_reason is not None

    # Controller-side mutators

    def _receive_frame(self, data: bytes) -> None:
        self._frames_received += 1
        self._received_samples += len(data) // (CHANNELS * SAMPLE_WIDTH)

    def _append_frame(self, data: bytes) -> None:
        self._sink.extend(data)
        self._frames_captured += 1

    def _discard_audio(self) -> None:
        self._sink.clear()

    def _finalize(self, reason: TerminationReason) -> None:
        if self._termination_reason is None:
            self._termination_reason = reason
            self._finished_at = datetime.now()


@dataclass
class CaptureResult:
    """Outcome of ``RecordingController.record``.

    A result with ``failure is None`` is a usable recording; anything else is
    a failed capture that must not be sent for transcription.
    """
    audio: bytes
    termination_reason: Optional[TerminationReason]
    failure: Optional[FailureReason] = None
    error: Optional[Exception] = None
    session: Optional[CaptureSession] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def duration_seconds(self) -> float:
        if self.session is None:
            return len(self.audio) / BYTES_PER_SECOND
        return len(self.audio) / (self.session.sample_rate * CHANNELS * SAMPLE_WIDTH)

    def raise_for_failure(self) -> None:
        """Raise the typed exception matching ``failure``, if any."""
        if self.failure is None:
            return
        if isinstance(self.error, CaptureError):
            raise self.error
        if self.failure is FailureReason.EMPTY_RECORDING:
            raise EmptyRecording(
                "Audio recording is empty. Try: --list-mics to check available devices"
            )
        if self.failure is FailureReason.SOURCE_START_FAILURE:
            raise SourceStartFailure(f"Failed to start audio source: {self.error}") from self.error
        if self.failure is FailureReason.SOURCE_RUNTIME_ERROR:
            raise SourceRuntimeError(
                f"Audio source stopped unexpectedly: {self.error}", partial_audio=self.audio
            ) from self.error
        raise RecordingCancelled("Recording cancelled")
