"""Audio capture and silence detection module."""

from .capture import PyAudioSource
from .controller import CancellationToken, RecorderState, RecordingController
from .sampler import AmplitudeSampler
from .silence import SilenceDecision, SilenceDetector
from .source import AudioSource
from .sox import SoxAudioSource

__all__ = [
    'AmplitudeSampler',
    'AudioSource',
    'CancellationToken',
    'PyAudioSource',
    'RecorderState',
    'RecordingController',
    'SilenceDecision',
    'SilenceDetector',
    'SoxAudioSource',
]
