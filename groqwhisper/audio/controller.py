"""Silence-gated recording controller."""

import queue
import logging
import threading
import time
import uuid
from enum import Enum
from typing import Callable, Optional, Tuple

from .sampler import AmplitudeSampler
from .silence import SilenceDecision, SilenceDetector
from .source import AudioSource
from ..errors import SourceRuntimeError, SourceStartFailure
from ..models.audio import SAMPLE_WIDTH, pcm_duration
from ..models.events import SessionEvent
from ..models.session import (
    CaptureResult,
    CaptureSession,
    FailureReason,
    TerminationReason,
)

logger = logging.getLogger(__name__)

# Upper bound on how long the pump blocks before re-checking cancellation
MAX_POLL_INTERVAL = 0.1


class RecorderState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RECORDING = "recording"
    STOPPING_SILENCE = "stopping_silence"
    STOPPING_TIMEOUT = "stopping_timeout"
    STOPPING_CANCELLED = "stopping_cancelled"
    STOPPING_ERROR = "stopping_error"
    FINALIZED = "finalized"


_STOPPING_STATES = {
    TerminationReason.SILENCE_DETECTED: RecorderState.STOPPING_SILENCE,
    TerminationReason.MAX_DURATION_REACHED: RecorderState.STOPPING_TIMEOUT,
    TerminationReason.CANCELLED: RecorderState.STOPPING_CANCELLED,
    TerminationReason.SOURCE_ERROR: RecorderState.STOPPING_ERROR,
}


class CancellationToken:
    """Thread-safe, idempotent cancellation flag for one recording."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


class _StartFailed(Exception):
    """Internal: the source never became ready."""

    def __init__(self, error: SourceStartFailure):
        super().__init__(str(error))
        self.error = error


class RecordingController:
    """Drives one audio source until silence, timeout, cancellation or failure.

    Frames are pumped through an AmplitudeSampler into a SilenceDetector in
    arrival order. A recording ends when:

    * the detector reports enough silence after speech (SILENCE_DETECTED),
    * ``max_duration`` seconds of audio have been read, or the wall-clock
      timer started with the source fires (MAX_DURATION_REACHED),
    * the cancellation token is set (CANCELLED),
    * the source dies (SOURCE_ERROR).

    When one frame satisfies both the silence and the duration condition,
    silence wins because it is evaluated first. The source is stopped on
    every exit path, including exceptions raised out of ``record``.
    """

    def __init__(
        self,
        source: AudioSource,
        max_duration: float,
        silence_threshold: float,
        silence_duration: float,
        sampler: Optional[AmplitudeSampler] = None,
        callback: Optional[Callable[[SessionEvent], None]] = None,
        startup_timeout: float = 5.0,
        stop_grace: float = 2.0,
        trim_leading_silence: bool = False,
        keep_partial_on_cancel: bool = True,
    ):
        """Initialize recording controller.

        Args:
            source: Audio source to drive; not shared with any other consumer
            max_duration: Hard ceiling on recording length in seconds
            silence_threshold: Speech threshold as a fraction of full scale
            silence_duration: Seconds of silence after speech that end the recording
            sampler: Loudness metric, RMS by default
            callback: Receives "started" once the source is producing frames
                and "stopped" after the source has been released
            startup_timeout: Seconds to wait for the source's first frame
            stop_grace: Seconds the source gets to stop before it is forced
            trim_leading_silence: Drop frames that precede the first speech
            keep_partial_on_cancel: Return the audio captured before a
                cancellation instead of discarding it
        """
        if max_duration <= 0:
            raise ValueError(f"Max duration must be positive, got {max_duration}")
        # Validates threshold and duration up front
        SilenceDetector(silence_threshold, silence_duration)

        self.source = source
        self.max_duration = max_duration
        self.silence_threshold = silence_threshold
        self.silence_duration = silence_duration
        self.sampler = sampler or AmplitudeSampler()
        self.callback = callback
        self.startup_timeout = startup_timeout
        self.stop_grace = stop_grace
        self.trim_leading_silence = trim_leading_silence
        self.keep_partial_on_cancel = keep_partial_on_cancel

        self._sample_bytes = source.channels * SAMPLE_WIDTH

        self.state = RecorderState.IDLE
        self._lock = threading.Lock()

    def record(self, cancel_token: Optional[CancellationToken] = None) -> CaptureResult:
        """Record until a stop condition and return the captured audio."""
        with self._lock:
            if self.state not in (RecorderState.IDLE, RecorderState.FINALIZED):
                raise RuntimeError(f"Recording already in progress ({self.state.value})")
            self.state = RecorderState.STARTING

        token = cancel_token or CancellationToken()
        detector = SilenceDetector(self.silence_threshold, self.silence_duration)
        session = CaptureSession(self.max_duration, detector.state,
                                 sample_rate=self.source.sample_rate)
        session_id = uuid.uuid4().hex[:8]

        logger.info(f"Recording for up to {self.max_duration}s "
                    f"(stops on {self.silence_duration}s silence)...")

        try:
            ready, frames = self.source.start()
        except SourceStartFailure as e:
            logger.error(f"Audio source failed to start: {e}")
            return self._finish(session, session_id, TerminationReason.SOURCE_ERROR,
                                start_error=e)
        except BaseException:
            self.state = RecorderState.FINALIZED
            raise

        deadline = threading.Event()
        timer = threading.Timer(self.max_duration, deadline.set)
        timer.daemon = True
        timer.start()

        reason: Optional[TerminationReason] = None
        error: Optional[BaseException] = None
        start_error: Optional[SourceStartFailure] = None
        try:
            reason = self._await_readiness(ready, token, deadline)
            if reason is None:
                self.state = RecorderState.RECORDING
                self._emit(session_id, "started", started_at=session.started_at.isoformat())
                reason, error = self._pump(session, detector, frames, token, deadline)
            self.state = _STOPPING_STATES[reason]
        except _StartFailed as e:
            reason = TerminationReason.SOURCE_ERROR
            start_error = e.error
            self.state = RecorderState.STOPPING_ERROR
        finally:
            timer.cancel()
            self.source.stop(timeout=self.stop_grace)
            if reason is None:
                # Exception escaping record(); the source is released regardless
                self.state = RecorderState.FINALIZED

        return self._finish(session, session_id, reason, error=error, start_error=start_error)

    def _await_readiness(self, ready: threading.Event, token: CancellationToken,
                         deadline: threading.Event) -> Optional[TerminationReason]:
        """Block until the source produced its first frame.

        Returns None once ready, or the termination reason that ended the
        wait first.
        """
        poll_interval = min(self.source.frame_duration, MAX_POLL_INTERVAL)
        give_up_at = time.monotonic() + self.startup_timeout

        while not ready.wait(poll_interval):
            if token.is_cancelled:
                return TerminationReason.CANCELLED
            if deadline.is_set():
                return TerminationReason.MAX_DURATION_REACHED
            if not self.source.is_alive() and not ready.is_set():
                cause = self.source.error
                message = f"Audio source exited before producing audio: {cause or 'no frames'}"
                raise _StartFailed(SourceStartFailure(message))
            if time.monotonic() >= give_up_at:
                raise _StartFailed(SourceStartFailure(
                    f"Audio source did not become ready within {self.startup_timeout}s"))
        return None

    def _pump(self, session: CaptureSession, detector: SilenceDetector,
              frames: "queue.Queue", token: CancellationToken,
              deadline: threading.Event) -> Tuple[TerminationReason, Optional[BaseException]]:
        poll_interval = min(self.source.frame_duration, MAX_POLL_INTERVAL)

        while True:
            if token.is_cancelled:
                return TerminationReason.CANCELLED, None
            if deadline.is_set():
                return TerminationReason.MAX_DURATION_REACHED, None

            try:
                frame = frames.get(timeout=poll_interval)
            except queue.Empty:
                continue

            if frame is None:
                error = self.source.error or SourceRuntimeError("Audio source ended unexpectedly")
                return TerminationReason.SOURCE_ERROR, error

            if len(frame.data) % self._sample_bytes:
                return TerminationReason.SOURCE_ERROR, SourceRuntimeError(
                    f"Audio source produced a frame of {len(frame.data)} bytes, "
                    f"not a whole number of {self._sample_bytes}-byte samples")

            session._receive_frame(frame.data)
            sample = self.sampler.sample(frame.data, frame.timestamp)
            decision = detector.observe(sample, pcm_duration(len(frame.data), self.source.sample_rate))

            if detector.has_detected_speech or not self.trim_leading_silence:
                session._append_frame(frame.data)

            if decision is SilenceDecision.STOP_SILENCE:
                return TerminationReason.SILENCE_DETECTED, None
            if session.received_duration >= self.max_duration:
                return TerminationReason.MAX_DURATION_REACHED, None

    def _finish(self, session: CaptureSession, session_id: str, reason: TerminationReason,
                error: Optional[BaseException] = None,
                start_error: Optional[SourceStartFailure] = None) -> CaptureResult:
        session._finalize(reason)
        failure: Optional[FailureReason] = None
        result_error: Optional[Exception] = None

        if start_error is not None:
            failure = FailureReason.SOURCE_START_FAILURE
            result_error = start_error
            session._discard_audio()
        elif reason is TerminationReason.SOURCE_ERROR:
            failure = FailureReason.SOURCE_RUNTIME_ERROR
            result_error = SourceRuntimeError(
                f"Audio source stopped unexpectedly: {error}", partial_audio=session.audio)
            result_error.__cause__ = error
            logger.error(f"Recording aborted after {session.captured_duration:.1f}s: {error}")
        elif reason is TerminationReason.CANCELLED and not self.keep_partial_on_cancel:
            failure = FailureReason.CANCELLED
            session._discard_audio()
            logger.info("Recording cancelled, partial audio discarded")
        elif not session.audio:
            failure = FailureReason.EMPTY_RECORDING
            logger.warning(f"Recording ended ({reason.value}) without any audio")
        else:
            logger.info(f"Recording stopped ({reason.value}): "
                        f"{session.captured_duration:.1f}s captured, "
                        f"{session.frames_captured} frames")

        self.state = RecorderState.FINALIZED
        self._emit(session_id, "stopped",
                   termination_reason=reason.value,
                   failure=failure.value if failure else None,
                   duration_seconds=session.captured_duration,
                   frames=session.frames_captured)

        return CaptureResult(
            audio=session.audio,
            termination_reason=reason,
            failure=failure,
            error=result_error,
            session=session,
        )

    def _emit(self, session_id: str, event_type: str, **metadata) -> None:
        if self.callback is None:
            return
        self.callback(SessionEvent(
            event_id=f"{session_id}_{event_type}",
            event_type=event_type,
            metadata=metadata,
        ))
