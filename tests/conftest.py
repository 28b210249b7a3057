"""Pytest configuration and fixtures for groq-whisper tests."""

import pytest
import tempfile
import logging
from typing import Iterable, Optional
from unittest.mock import Mock, patch
import numpy as np

from groqwhisper.audio.source import AudioSource


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

FRAME_SAMPLES = 1600  # 100 ms at 16 kHz


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without I/O")
    config.addinivalue_line("markers", "integration: tests wiring several components together")
    config.addinivalue_line("markers", "hardware: tests that need a real microphone")


def tone_frame(loudness: float, samples: int = FRAME_SAMPLES) -> bytes:
    """A frame whose RMS and peak loudness both equal ``loudness``."""
    value = min(int(round(loudness * 32768)), 32767)
    return np.full(samples, value, dtype=np.int16).tobytes()


def frames_at(loudness: float, count: int, samples: int = FRAME_SAMPLES) -> list:
    frame = tone_frame(loudness, samples)
    return [frame] * count


class FakeAudioSource(AudioSource):
    """Scripted audio source delivering a fixed list of chunks.

    With ``end_stream`` the stream ends after the last chunk (optionally
    with ``fail_with`` as the source error); otherwise it stays open and
    silent until stopped.
    """

    def __init__(self, chunks: Iterable[bytes] = (), end_stream: bool = False,
                 fail_with: Optional[Exception] = None,
                 start_error: Optional[Exception] = None,
                 chunk_size: int = FRAME_SAMPLES):
        super().__init__(chunk_size=chunk_size)
        self.chunks = list(chunks)
        self.end_stream = end_stream
        self.fail_with = fail_with
        self.start_error = start_error
        self.start_calls = 0
        self.stop_calls = 0
        self._alive = False

    def start(self):
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        self._reset()
        self._alive = True
        for chunk in self.chunks:
            self._publish_frame(chunk)
        if self.end_stream:
            self.error = self.fail_with
            self._alive = False
            self._end_stream()
        return self.ready_event, self.frames

    def stop(self, timeout: float = 2.0) -> None:
        self.stop_calls += 1
        self.stop_event.set()
        self._alive = False

    def is_alive(self) -> bool:
        return self._alive


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """Generate a 100 ms sine wave chunk at half of full scale."""
    sample_rate = 16000
    duration = FRAME_SAMPLES / sample_rate
    freq = 440  # A4 note

    t = np.linspace(0, duration, FRAME_SAMPLES, False)
    wave_data = 0.5 * np.sin(2 * np.pi * freq * t)

    # Convert to 16-bit integers
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def silent_chunk():
    return b'\x00' * (FRAME_SAMPLES * 2)


@pytest.fixture
def fake_source_factory():
    """Build FakeAudioSource instances."""
    return FakeAudioSource


@pytest.fixture
def mock_devices():
    """Device table reported by the mocked PyAudio host."""
    return [
        {"index": 0, "name": "HDA Intel PCH: ALC3246 Analog (hw:0,0)",
         "maxInputChannels": 2, "defaultSampleRate": 44100.0},
        {"index": 1, "name": "HDMI 0", "maxInputChannels": 0, "defaultSampleRate": 48000.0},
        {"index": 2, "name": "alsa_output.pci.analog-stereo.monitor",
         "maxInputChannels": 2, "defaultSampleRate": 48000.0},
        {"index": 3, "name": "Blue Yeti USB Microphone",
         "maxInputChannels": 1, "defaultSampleRate": 48000.0},
    ]


@pytest.fixture
def mock_pyaudio(mock_devices):
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Configure mock stream
        mock_stream.read.return_value = b'\x00' * (FRAME_SAMPLES * 2)  # Silent audio
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_sample_size.return_value = 2
        mock_pyaudio_instance.get_device_count.return_value = len(mock_devices)
        mock_pyaudio_instance.get_device_info_by_index.side_effect = lambda i: mock_devices[i]
        mock_pyaudio_instance.get_default_input_device_info.return_value = mock_devices[0]

        # Configure mock PyAudio class
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def audio_test_data():
    """Generate various audio test data patterns."""
    def generate_audio(pattern="sine", duration_seconds=1.0, sample_rate=16000):
        """Generate audio data for testing.

        Args:
            pattern: Type of audio pattern ('sine', 'noise', 'silence')
            duration_seconds: Duration of audio
            sample_rate: Sample rate in Hz

        Returns:
            bytes: Audio data as bytes
        """
        samples = int(duration_seconds * sample_rate)

        if pattern == "sine":
            t = np.linspace(0, duration_seconds, samples, False)
            wave_data = np.sin(2 * np.pi * 440 * t)  # 440 Hz sine wave
        elif pattern == "noise":
            wave_data = np.random.uniform(-1, 1, samples)
        elif pattern == "silence":
            wave_data = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")

        # Convert to 16-bit integers
        audio_data = (wave_data * 32767).astype(np.int16)
        return audio_data.tobytes()

    return generate_audio


@pytest.fixture
def make_tone():
    """Build one frame of constant loudness."""
    return tone_frame


@pytest.fixture
def make_frames():
    """Build ``count`` frames of constant loudness."""
    return frames_at
