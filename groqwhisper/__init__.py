"""groq-whisper: record from the microphone and transcribe with Groq Whisper."""

__version__ = "0.1.0"
