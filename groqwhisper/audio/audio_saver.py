"""WAV packaging for captured PCM audio."""

import io
import wave

from ..models.audio import SAMPLE_RATE, CHANNELS, SAMPLE_WIDTH


def pcm_to_wav_bytes(audio_data: bytes, sample_rate: int = SAMPLE_RATE,
                     channels: int = CHANNELS) -> bytes:
    """Wrap raw 16-bit PCM in a WAV container held in memory."""
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(SAMPLE_WIDTH)
        wf.setframerate(sample_rate)
        wf.writeframes(audio_data)
    return buffer.getvalue()
