"""Audio source interface shared by the capture backends."""

import time
import queue
import logging
from abc import ABC, abstractmethod
from threading import Event
from typing import Optional, Tuple, Union

from ..models.audio import AudioFrame, AudioStats, SAMPLE_RATE, CHANNELS

logger = logging.getLogger(__name__)

# 100 ms of 16 kHz audio
DEFAULT_CHUNK_SIZE = 1600

Device = Union[int, str, None]


class AudioSource(ABC):
    """A concurrently running producer of fixed-format audio frames.

    ``start()`` hands back a readiness event, set once the first frame has
    actually been captured, and the queue the frames arrive on. ``None`` on
    the queue marks the end of the stream; if the stream ended because of a
    failure, ``error`` holds the exception.
    """

    def __init__(
        self,
        device: Device = None,
        sample_rate: int = SAMPLE_RATE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        channels: int = CHANNELS,
    ):
        """Initialize audio source.

        Args:
            device: Device index, device name, or None for the system default
            sample_rate: Audio sample rate (16kHz for Whisper compatibility)
            chunk_size: Size of each audio chunk in samples
            channels: Number of audio channels (1 for mono)
        """
        self.device = device
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels

        self.ready_event = Event()
        self.stop_event = Event()
        self.frames: "queue.Queue[Optional[AudioFrame]]" = queue.Queue()
        self.error: Optional[BaseException] = None

        # Statistics tracking
        self.start_time: Optional[float] = None
        self.total_chunks = 0

    @property
    def frame_duration(self) -> float:
        """Nominal duration of one frame in seconds."""
        return self.chunk_size / self.sample_rate

    @abstractmethod
    def start(self) -> Tuple[Event, "queue.Queue[Optional[AudioFrame]]"]:
        """Start producing frames.

        Raises:
            SourceStartFailure: If the device cannot be opened
        """

    @abstractmethod
    def stop(self, timeout: float = 2.0) -> None:
        """Stop producing frames, forcing termination after ``timeout``.

        Calling stop on a stopped source is a no-op.
        """

    @abstractmethod
    def is_alive(self) -> bool:
        """Whether the underlying thread or process is still running."""

    def _reset(self) -> None:
        # Fresh objects per recording; a previous reader keeps its own
        self.ready_event = Event()
        self.stop_event = Event()
        self.frames = queue.Queue()
        self.error = None
        self.start_time = time.monotonic()
        self.total_chunks = 0

    def _publish_frame(self, data: bytes) -> None:
        frame = AudioFrame(
            data=data,
            timestamp=time.monotonic() - self.start_time,
            frame_number=self.total_chunks,
        )
        self.total_chunks += 1
        self.frames.put(frame)
        if not self.ready_event.is_set():
            logger.debug(f"{type(self).__name__} ready after {frame.timestamp:.3f}s")
            self.ready_event.set()

    def _end_stream(self) -> None:
        self.frames.put(None)

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        duration = 0.0
        if self.start_time is not None:
            duration = time.monotonic() - self.start_time

        return AudioStats(
            is_recording=self.is_alive(),
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
        )
