"""Silence detection for automatic recording stop."""

import logging
from enum import Enum

from ..models.audio import LoudnessSample
from ..models.session import SilenceState

logger = logging.getLogger(__name__)

# Tolerance for comparing summed frame durations against the required silence
_EPSILON = 1e-9


class SilenceDecision(Enum):
    CONTINUE = "continue"
    STOP_SILENCE = "stop_silence"


class SilenceDetector:
    """Decides when a recording has gone quiet for long enough to stop.

    A frame whose loudness is at or above ``threshold`` counts as speech.
    The threshold is a fraction of full scale, so LOWER values are MORE
    sensitive: quieter sounds register as speech and keep the recording
    going. Silence only stops a recording once speech has been heard at
    least once; a stream that never reaches the threshold runs until the
    hard duration ceiling.
    """

    def __init__(self, threshold: float, required_silence_duration: float):
        """Initialize detector.

        Args:
            threshold: Speech threshold as a fraction of full scale (0, 1]
            required_silence_duration: Seconds of continuous silence after
                speech that stop the recording
        """
        if not 0.0 < threshold <= 1.0:
            raise ValueError(f"Silence threshold must be in (0, 1], got {threshold}")
        if required_silence_duration <= 0:
            raise ValueError(f"Silence duration must be positive, got {required_silence_duration}")
        self.state = SilenceState(
            threshold=threshold,
            required_silence_duration=required_silence_duration,
        )

    @property
    def has_detected_speech(self) -> bool:
        return self.state.has_detected_speech

    def observe(self, sample: LoudnessSample, frame_duration_seconds: float) -> SilenceDecision:
        """Feed one loudness sample and get the decision for this frame."""
        state = self.state

        if sample.loudness >= state.threshold:
            if not state.has_detected_speech:
                logger.debug(f"Speech detected at {sample.timestamp:.2f}s "
                             f"(loudness {sample.loudness:.4f})")
            state.has_detected_speech = True
            state.accumulated_silence_duration = 0.0
            return SilenceDecision.CONTINUE

        state.accumulated_silence_duration += frame_duration_seconds

        if (state.has_detected_speech and
                state.accumulated_silence_duration + _EPSILON >= state.required_silence_duration):
            logger.debug(f"Silence detected for {state.accumulated_silence_duration:.2f}s - stopping")
            return SilenceDecision.STOP_SILENCE

        return SilenceDecision.CONTINUE
