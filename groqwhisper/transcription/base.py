"""Abstract base class for transcription backends."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.transcription import TranscriptionResult


class AbstractTranscriptionBackend(ABC):
    """Abstract base class for transcription backends."""

    def __init__(self, model: str, language: str = "en"):
        """Initialize backend with model and language preference."""
        self.model = model
        self.language = language

    @abstractmethod
    async def transcribe(self, audio: bytes, model: Optional[str] = None,
                         language: Optional[str] = None,
                         filename: str = "audio.wav") -> TranscriptionResult:
        """Transcribe an audio file and return the result.

        Args:
            audio: Encoded audio file contents (WAV, MP3, ...)
            model: Model id, the backend default when None
            language: Language code, the backend default when None
            filename: File name sent along with the audio

        Returns:
            TranscriptionResult with the transcript and metadata

        Raises:
            TranscriptionError: If the remote call fails or returns no text
        """
