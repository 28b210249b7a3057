"""PyAudio microphone capture running in a background thread."""

import logging
import threading
from threading import Event, Thread
from typing import Optional

import pyaudio

from .devices import find_input_device
from .source import AudioSource, DEFAULT_CHUNK_SIZE, Device
from ..errors import SourceStartFailure
from ..models.audio import SAMPLE_RATE, CHANNELS

logger = logging.getLogger(__name__)


class PyAudioSource(AudioSource):
    """Continuous microphone capture through PyAudio."""

    def __init__(
        self,
        device: Device = None,
        sample_rate: int = SAMPLE_RATE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        channels: int = CHANNELS,
        format: int = pyaudio.paInt16,
    ):
        super().__init__(device, sample_rate, chunk_size, channels)
        self.format = format

        # Recording thread management
        self.recording_thread: Optional[Thread] = None

        # PyAudio instance and stream, guarded so a forced stop and the
        # recording thread never close them twice
        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None
        self._stream_lock = threading.Lock()

    def start(self):
        """Open the input stream and start reading it in a background thread.

        Raises:
            SourceStartFailure: If the device cannot be opened, or the thread
                of a previous recording has not exited yet
        """
        if self.is_alive():
            raise SourceStartFailure("Audio source is still running; stop it before starting again")

        self._reset()
        self.__open_audio_stream()

        self.recording_thread = Thread(
            target=self._record_continuously,
            args=(self.stream, self.frames, self.stop_event),
            daemon=True,
        )
        self.recording_thread.name = "AudioCaptureThread"
        self.recording_thread.start()
        return self.ready_event, self.frames

    def stop(self, timeout: float = 2.0) -> None:
        """Stop recording and clean up resources.

        A thread that stays blocked after its stream was closed is kept, so
        ``is_alive()`` keeps reporting it and ``start()`` refuses to run.
        """
        thread = self.recording_thread
        if thread is None:
            return

        self.stop_event.set()

        # Wait for recording thread to finish
        if thread.is_alive():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Recording thread did not stop cleanly, closing stream")
                self._close_stream()
                thread.join(timeout=timeout)

        if thread.is_alive():
            logger.error("Recording thread still blocked after its stream was closed")
            return

        self.recording_thread = None
        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}")

    def is_alive(self) -> bool:
        return self.recording_thread is not None and self.recording_thread.is_alive()

    def __open_audio_stream(self) -> None:
        try:
            self.pyaudio_instance = pyaudio.PyAudio()
            device_index = find_input_device(self.pyaudio_instance, self.device)
            self.stream = self.pyaudio_instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                input_device_index=device_index,
                frames_per_buffer=self.chunk_size,
                stream_callback=None
            )
        except SourceStartFailure:
            self._close_stream()
            raise
        except (IOError, OSError, ValueError) as e:
            self._close_stream()
            raise SourceStartFailure(f"Could not open microphone {self.device or '(default)'}: {e}") from e

        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk, device={self.device or 'default'}")

    def __read_audio_chunk(self, stream) -> bytes:
        return stream.read(self.chunk_size, exception_on_overflow=False)

    def _record_continuously(self, stream, frames, stop_event: Event) -> None:
        """Internal method: continuous recording loop in background thread.

        Works only on the stream, queue and stop event of the recording that
        started it.
        """
        try:
            while not stop_event.is_set():
                audio_chunk = self.__read_audio_chunk(stream)
                if stop_event.is_set():
                    break
                self._publish_frame(audio_chunk)
        except Exception as e:
            # A read failing after stop() closed the stream is expected
            if not stop_event.is_set():
                logger.error(f"Audio capture failed: {e}")
                self.error = e
        finally:
            self._close_stream(stream)
            frames.put(None)

    def _close_stream(self, stream=None) -> None:
        """Close the stream and terminate PyAudio.

        With ``stream`` given, only closes if that stream is still the
        current one.
        """
        with self._stream_lock:
            if stream is not None and stream is not self.stream:
                return
            if self.stream is not None:
                try:
                    self.stream.stop_stream()
                    self.stream.close()
                except (IOError, OSError) as e:
                    logger.debug(f"Error closing audio stream: {e}")
                self.stream = None
            if self.pyaudio_instance is not None:
                self.pyaudio_instance.terminate()
                self.pyaudio_instance = None

    def __del__(self):
        """Ensure resources are cleaned up on deletion."""
        if self.is_alive():
            self.stop()
