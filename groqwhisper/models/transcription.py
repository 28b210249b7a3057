"""Transcription-related data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class TranscriptionResult:
    """Result of a transcription operation."""
    text: str
    processing_time: float
    timestamp: datetime
    service: str
    model: str
    language: str = "en"
    duration_seconds: Optional[float] = None  # Audio duration reported by the API
