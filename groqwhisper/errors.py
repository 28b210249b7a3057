"""Exception hierarchy for groq-whisper."""

from typing import Optional


class GroqWhisperError(Exception):
    """Base class for every fatal error reported by the CLI."""


class ConfigError(GroqWhisperError):
    """Configuration could not be loaded or is invalid."""


class DependencyError(GroqWhisperError):
    """A required external program is not installed."""


class InstallError(GroqWhisperError):
    """The executable could not be installed."""


class CaptureError(GroqWhisperError):
    """Base class for recording failures."""


class SourceStartFailure(CaptureError):
    """The audio source could not be started (bad device, permission denied)."""


class SourceRuntimeError(CaptureError):
    """The audio source died in the middle of a recording."""

    def __init__(self, message: str, partial_audio: bytes = b""):
        super().__init__(message)
        self.partial_audio = partial_audio


class EmptyRecording(CaptureError):
    """The finalized recording contains no audio."""


class RecordingCancelled(CaptureError):
    """The recording was cancelled and its partial audio discarded."""


class TranscriptionError(GroqWhisperError):
    """Base class for transcription API failures."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TranscriptionNetworkError(TranscriptionError):
    """The API could not be reached or did not answer in time."""


class TranscriptionAuthError(TranscriptionError):
    """The API rejected the credentials."""


class TranscriptionAPIError(TranscriptionError):
    """The API answered with an error."""


class MalformedResponseError(TranscriptionError):
    """The API answer could not be parsed."""


class EmptyTranscriptionError(TranscriptionError):
    """The API answer carried no usable text."""


class AudioFileError(GroqWhisperError):
    """An audio file given on the command line cannot be used."""
