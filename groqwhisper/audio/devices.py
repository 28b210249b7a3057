"""Microphone enumeration and lookup."""

import logging
from typing import List, Optional

import pyaudio

from ..errors import SourceStartFailure
from ..models.audio import MicrophoneInfo

logger = logging.getLogger(__name__)


def _input_devices(pa: pyaudio.PyAudio) -> List[MicrophoneInfo]:
    try:
        default_index = pa.get_default_input_device_info()["index"]
    except (IOError, OSError):
        default_index = None

    devices = []
    for index in range(pa.get_device_count()):
        info = pa.get_device_info_by_index(index)
        if info.get("maxInputChannels", 0) <= 0:
            continue
        # PulseAudio/PipeWire monitor sources capture playback, not a microphone
        if info["name"].endswith(".monitor"):
            continue
        devices.append(MicrophoneInfo(
            index=index,
            name=info["name"],
            max_input_channels=int(info["maxInputChannels"]),
            default_sample_rate=float(info.get("defaultSampleRate", 0.0)),
            is_default=index == default_index,
        ))
    return devices


def list_input_devices() -> List[MicrophoneInfo]:
    """List microphones available to PyAudio."""
    pa = pyaudio.PyAudio()
    try:
        devices = _input_devices(pa)
    finally:
        pa.terminate()
    logger.debug(f"Found {len(devices)} input devices")
    return devices


def find_input_device(pa: pyaudio.PyAudio, device) -> Optional[int]:
    """Resolve a device index or name to a PyAudio device index.

    ``None`` or an empty string selects the system default (returns None).
    Names match case-insensitively, exact names first, then substrings.

    Raises:
        SourceStartFailure: If no matching input device exists
    """
    if device is None or device == "":
        return None

    devices = _input_devices(pa)

    if isinstance(device, int) or str(device).isdigit():
        index = int(device)
        for mic in devices:
            if mic.index == index:
                return index
        raise SourceStartFailure(f"No input device with index {index}")

    wanted = str(device).casefold()
    for mic in devices:
        if mic.name.casefold() == wanted:
            return mic.index
    for mic in devices:
        if wanted in mic.name.casefold():
            return mic.index

    raise SourceStartFailure(f"Failed to set microphone: {device}")
