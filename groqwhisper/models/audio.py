"""Audio-related data models."""

from dataclasses import dataclass

# Capture format expected by the Whisper API
SAMPLE_RATE = 16000
CHANNELS = 1
SAMPLE_WIDTH = 2  # 16-bit signed PCM
BYTES_PER_SECOND = SAMPLE_RATE * CHANNELS * SAMPLE_WIDTH


def pcm_duration(num_bytes: int, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> float:
    """Duration in seconds of a 16-bit PCM buffer of the given size."""
    return num_bytes / (sample_rate * channels * SAMPLE_WIDTH)


@dataclass
class AudioFrame:
    """A single audio frame with timestamp."""
    data: bytes
    timestamp: float  # Seconds since the source started
    frame_number: int

    @property
    def duration_seconds(self) -> float:
        return pcm_duration(len(self.data))


@dataclass(frozen=True)
class LoudnessSample:
    """Normalized loudness of one frame, 0.0 (silence) to 1.0 (full scale)."""
    loudness: float
    timestamp: float


@dataclass
class AudioStats:
    """Audio recording statistics."""
    is_recording: bool
    duration_seconds: float
    sample_rate: int
    chunk_size: int
    total_chunks: int


@dataclass
class MicrophoneInfo:
    """An input device reported by the audio host."""
    index: int
    name: str
    max_input_channels: int
    default_sample_rate: float
    is_default: bool = False
