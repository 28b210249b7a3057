"""Main application entry point for groq-whisper."""

import os
import sys
import signal
import asyncio
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from pubsub import pub
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .audio import CancellationToken, PyAudioSource, RecordingController, SoxAudioSource
from .audio.audio_saver import pcm_to_wav_bytes
from .audio.devices import list_input_devices
from .audio.sampler import AmplitudeSampler
from .audio.session_pub import SessionPublisher
from .audio.source import AudioSource
from .audio.sox import rec_available
from .config import DEFAULT_CONFIG_PATH, GroqWhisperConfig, Settings, resolve_settings
from .errors import AudioFileError, DependencyError, EmptyRecording, GroqWhisperError
from .install import install_symlink
from .models.events import SessionEvent
from .models.session import CaptureResult
from .transcription import GroqTranscriptionBackend

logger = logging.getLogger(__name__)

CONFIG_HELP = f"""\
Config file: {DEFAULT_CONFIG_PATH} (YAML)
  api_key: your-groq-api-key
  mic: alsa_input.usb-...
  duration: 60
  silence_duration: 3.0
  silence_threshold: 0.2      # percent of full scale, lower = more sensitive
  start_prompt: "🎙️"
  model: whisper-large-v3-turbo
  language: en
  backend: pyaudio            # or sox, where mic is a sox device name (AUDIODEV)

Environment: GROQ_API_KEY and GROQ_WHISPER_MIC override the config file.
"""


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser that exits with status 1 on bad usage."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="groq-whisper",
        description="Record audio and transcribe via Groq Whisper API. "
                    "Stops on silence or at the max duration.",
        epilog=CONFIG_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--file", "-f", metavar="FILE",
                        help="Transcribe existing audio file")
    parser.add_argument("--mic", "-m", metavar="DEVICE",
                        help="Use specific microphone, by index or name (see --list-mics); "
                             "the sox backend takes a device name only")
    parser.add_argument("--duration", "-d", type=float, metavar="SEC",
                        help="Max recording duration in seconds")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show progress messages")
    parser.add_argument("--list-mics", action="store_true",
                        help="List available microphones")
    parser.add_argument("--install", nargs="?", const="", metavar="DIR",
                        help="Create symlink (default: ~/.local/bin)")
    parser.add_argument("--config", metavar="PATH",
                        help=f"Path to configuration YAML file (default: {DEFAULT_CONFIG_PATH})")
    return parser


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Set up console logging, plus a debug log file when configured."""
    handlers = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter('[groq-whisper] %(levelname)s %(message)s'))
    handlers.append(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        ))
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG if verbose or log_file else logging.WARNING)
    for handler in handlers:
        root_logger.addHandler(handler)


def check_deps(settings: Settings) -> None:
    logger.info("Checking dependencies...")
    if settings.backend == "sox" and not rec_available():
        raise DependencyError("sox not found. Install: apt install sox libsox-fmt-mp3")
    settings.require_api_key()
    logger.info("Dependencies OK")


def build_source(settings: Settings) -> AudioSource:
    if settings.backend == "sox":
        return SoxAudioSource(device=settings.mic, chunk_size=settings.chunk_size)
    return PyAudioSource(device=settings.mic, chunk_size=settings.chunk_size)


def build_controller(settings: Settings, source: AudioSource,
                     publisher: SessionPublisher) -> RecordingController:
    return RecordingController(
        source=source,
        max_duration=settings.duration,
        silence_threshold=settings.silence_threshold_fraction,
        silence_duration=settings.silence_duration,
        sampler=AmplitudeSampler(settings.silence_metric),
        callback=publisher.get_callback(),
        startup_timeout=settings.startup_timeout,
        stop_grace=settings.stop_grace,
        trim_leading_silence=settings.trim_leading_silence,
        keep_partial_on_cancel=settings.keep_partial_on_cancel,
    )


def record_audio(settings: Settings, console: Console,
                 source: Optional[AudioSource] = None) -> CaptureResult:
    """Record from the microphone until silence, timeout or Ctrl+C.

    Raises:
        CaptureError: If nothing usable was recorded
    """
    if settings.mic:
        logger.info(f"Using microphone: {settings.mic}")

    publisher = SessionPublisher()
    controller = build_controller(settings, source or build_source(settings), publisher)

    # pubsub keeps weak references; the local name keeps the listener alive
    def show_start_prompt(event: SessionEvent) -> None:
        console.print(settings.start_prompt, markup=False)

    started_topic = publisher.topic_for("started")
    pub.subscribe(show_start_prompt, started_topic)

    token = CancellationToken()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())
    try:
        result = controller.record(token)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        pub.unsubscribe(show_start_prompt, started_topic)

    result.raise_for_failure()
    logger.info(f"Recording saved ({len(result.audio) / 1024:.0f}K, "
                f"{result.duration_seconds:.1f}s, {result.termination_reason.value})")
    return result


def read_audio_file(path: str) -> bytes:
    audio_file = Path(path).expanduser()
    if not audio_file.is_file():
        raise AudioFileError(f"Audio file not found: {path}")
    audio = audio_file.read_bytes()
    if not audio:
        raise EmptyRecording(f"Audio file is empty: {path}")
    return audio


def transcribe(settings: Settings, audio: bytes, filename: str = "audio.wav") -> str:
    backend = GroqTranscriptionBackend(
        api_key=settings.require_api_key(),
        model=settings.model,
        language=settings.language,
        api_url=settings.api_url,
        request_timeout=settings.request_timeout,
    )
    result = asyncio.run(backend.transcribe(audio, filename=filename))
    return result.text


def print_microphones(console: Console, backend: str = "pyaudio") -> None:
    devices = list_input_devices()
    if not devices:
        console.print("No input devices found")
        return

    table = Table(title="Available microphones")
    table.add_column("Index", justify="right")
    table.add_column("Name")
    table.add_column("Channels", justify="right")
    table.add_column("Rate", justify="right")
    for mic in devices:
        name = f"{mic.name} (default)" if mic.is_default else mic.name
        table.add_row(str(mic.index), name, str(mic.max_input_channels), f"{mic.default_sample_rate:.0f}")
    console.print(table)
    if backend == "sox":
        console.print("The sox backend opens devices by name through AUDIODEV, not by the indexes above.")
        console.print("Set mic with: --mic <sox device, e.g. hw:1 or a PulseAudio source> "
                      "or export GROQ_WHISPER_MIC=<name>")
    else:
        console.print("Set mic with: --mic <index or name> or export GROQ_WHISPER_MIC=<name>")


def run_install(install_dir: str, console: Console) -> None:
    result = install_symlink(install_dir or None)
    verb = "Updated" if result.replaced else "Created"
    console.print(f"{verb} symlink: {result.link_path} -> {result.target}")
    if result.on_path:
        console.print(f"You can now run: {result.link_path.name}")
    else:
        console.print(f"\nNote: {result.link_path.parent} is not in your PATH.")
        console.print("Add to your shell config:")
        console.print(f'  export PATH="{result.link_path.parent}:$PATH"', markup=False)


def run(args: argparse.Namespace, stdout: Console, stderr: Console) -> None:
    config = GroqWhisperConfig(args.config or os.environ.get("GROQ_WHISPER_CONFIG"))
    settings = resolve_settings(config, mic=args.mic, duration=args.duration)
    if settings.log_file:
        setup_logging(args.verbose, settings.log_file)

    if args.list_mics:
        print_microphones(stdout, settings.backend)
        return
    if args.install is not None:
        run_install(args.install, stdout)
        return

    # Checked after parsing, so --list-mics and --help work without an API key
    check_deps(settings)

    if args.file:
        audio = read_audio_file(args.file)
        text = transcribe(settings, audio, filename=Path(args.file).name)
    else:
        result = record_audio(settings, stderr)
        text = transcribe(settings, pcm_to_wav_bytes(result.audio))

    stdout.print(text, markup=False, emoji=False, highlight=False, soft_wrap=True)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for groq-whisper."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    stdout = Console()
    stderr = Console(stderr=True)
    try:
        run(args, stdout, stderr)
    except GroqWhisperError as e:
        logger.debug("Fatal error", exc_info=True)
        stderr.print(Text.assemble(("[error]", "red"), " ", str(e)))
        sys.exit(1)
    except KeyboardInterrupt:
        stderr.print(Text.assemble(("[error]", "red"), " Interrupted"))
        sys.exit(1)


if __name__ == "__main__":
    main()
