"""Speech-to-text transcription module."""

from .base import AbstractTranscriptionBackend
from .groq_backend import GroqTranscriptionBackend

__all__ = [
    "AbstractTranscriptionBackend",
    "GroqTranscriptionBackend",
]
