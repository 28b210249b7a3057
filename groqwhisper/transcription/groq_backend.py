"""Groq Whisper transcription backend."""

import json
import time
import asyncio
import logging
import mimetypes
from datetime import datetime
from typing import Any, Optional

import aiohttp

from .base import AbstractTranscriptionBackend
from ..config import DEFAULT_API_URL
from ..errors import (
    ConfigError,
    EmptyTranscriptionError,
    MalformedResponseError,
    TranscriptionAPIError,
    TranscriptionAuthError,
    TranscriptionNetworkError,
)
from ..models.transcription import TranscriptionResult

logger = logging.getLogger(__name__)


class GroqTranscriptionBackend(AbstractTranscriptionBackend):
    """Groq's OpenAI-compatible ``/audio/transcriptions`` endpoint."""

    def __init__(self,
                 api_key: str,
                 model: str = "whisper-large-v3-turbo",
                 language: str = "en",
                 api_url: str = DEFAULT_API_URL,
                 request_timeout: float = 60.0):
        """Initialize Groq backend.

        Args:
            api_key: Groq API key
            model: Whisper model id
            language: ISO-639-1 language code, empty for auto-detection
            api_url: Transcription endpoint
            request_timeout: Total seconds allowed for one request
        """
        super().__init__(model, language)
        if not api_key:
            raise ConfigError("Groq API key is required - cannot transcribe without credentials")
        self.api_key = api_key
        self.api_url = api_url
        self.request_timeout = request_timeout
        self.service_name = "Groq Whisper"

    def _build_form(self, audio: bytes, model: str, language: str, filename: str) -> aiohttp.FormData:
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        form = aiohttp.FormData()
        form.add_field("file", audio, filename=filename, content_type=content_type)
        form.add_field("model", model)
        if language:
            form.add_field("language", language)
        form.add_field("response_format", "json")
        return form

    async def transcribe(self, audio: bytes, model: Optional[str] = None,
                         language: Optional[str] = None,
                         filename: str = "audio.wav") -> TranscriptionResult:
        """Transcribe audio using the Groq API."""
        model = model or self.model
        language = self.language if language is None else language
        start_time = time.time()

        logger.info(f"Transcribing via Groq ({model})...")
        logger.debug(f"Audio size: {len(audio)} bytes; Language: {language or 'auto'}; URL: {self.api_url}")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        form = self._build_form(audio, model, language, filename)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.api_url, headers=headers, data=form) as response:
                    status = response.status
                    body = await response.text()
        except asyncio.TimeoutError as e:
            logger.error(f"Groq API request timed out after {self.request_timeout}s")
            raise TranscriptionNetworkError(
                f"Groq API request timed out after {self.request_timeout}s") from e
        except aiohttp.ClientError as e:
            logger.error(f"Groq API request failed: {e}")
            raise TranscriptionNetworkError(f"Could not reach Groq API: {e}") from e

        processing_time = time.time() - start_time
        logger.debug(f"Groq API answered {status} in {processing_time:.3f}s")
        text, payload = self.__extract_text(status, body)

        logger.debug(f"✅ TRANSCRIPTION SUCCESS: '{text}' (processing_time: {processing_time:.3f}s)")
        return TranscriptionResult(
            text=text,
            processing_time=processing_time,
            timestamp=datetime.now(),
            service=self.service_name,
            model=model,
            language=language,
            duration_seconds=payload.get("duration"),
        )

    @staticmethod
    def __error_message(payload: Any) -> Optional[str]:
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict):
                return error.get("message")
            if isinstance(error, str):
                return error
        return None

    def __extract_text(self, status: int, body: str):
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None

        message = self.__error_message(payload)
        if status in (401, 403):
            raise TranscriptionAuthError(f"API error: {message or body}", status=status)
        if status >= 400 or message is not None:
            raise TranscriptionAPIError(f"API error: {message or body}", status=status)
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"Unexpected response from Groq API: {body[:200]}", status=status)

        text = payload.get("text")
        if not isinstance(text, str) or not text.strip():
            raise EmptyTranscriptionError(f"No transcription returned. Response: {body[:200]}", status=status)
        return text.strip(), payload
