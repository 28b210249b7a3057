"""Unit tests for the groq-whisper command line."""

import io
import wave
import signal
import logging
import pytest
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

from groqwhisper import main as cli
from groqwhisper.errors import TranscriptionAPIError
from groqwhisper.install import InstallResult
from groqwhisper.models.audio import MicrophoneInfo
from groqwhisper.models.transcription import TranscriptionResult


class FakeBackend:
    """Stands in for GroqTranscriptionBackend and records what it was sent."""

    calls = []
    error = None
    text = "hello world"

    def __init__(self, api_key, model, language, api_url, request_timeout):
        self.init_kwargs = dict(api_key=api_key, model=model, language=language)

    async def transcribe(self, audio, model=None, language=None, filename="audio.wav"):
        FakeBackend.calls.append({"audio": audio, "filename": filename, **self.init_kwargs})
        if FakeBackend.error is not None:
            raise FakeBackend.error
        return TranscriptionResult(text=FakeBackend.text, processing_time=0.1,
                                   timestamp=datetime.now(), service="fake",
                                   model=self.init_kwargs["model"])


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def cli_env(monkeypatch, temp_data_dir):
    """Isolated HOME with an API key and no config file."""
    monkeypatch.setenv("HOME", temp_data_dir)
    monkeypatch.setenv("GROQ_API_KEY", "gsk_test")
    monkeypatch.delenv("GROQ_WHISPER_MIC", raising=False)
    monkeypatch.delenv("GROQ_WHISPER_CONFIG", raising=False)
    return Path(temp_data_dir)


@pytest.fixture
def fake_backend():
    FakeBackend.calls = []
    FakeBackend.error = None
    FakeBackend.text = "hello world"
    with patch("groqwhisper.main.GroqTranscriptionBackend", FakeBackend):
        yield FakeBackend


def run_main(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(argv)
    return exc_info.value.code


@pytest.mark.unit
class TestArguments:

    def test_help(self, capsys):
        assert run_main(["--help"]) == 0
        out = capsys.readouterr().out
        assert "--list-mics" in out
        assert "whisper.yaml" in out

    def test_unknown_flag_exits_with_one(self, capsys):
        assert run_main(["--bogus"]) == 1
        assert "unrecognized arguments: --bogus" in capsys.readouterr().err

    def test_duration_must_be_a_number(self, capsys):
        assert run_main(["--duration", "soon"]) == 1

    def test_install_directory_is_optional(self):
        parser = cli.build_parser()

        assert parser.parse_args(["--install"]).install == ""
        assert parser.parse_args(["--install", "/opt/bin"]).install == "/opt/bin"
        assert parser.parse_args([]).install is None


@pytest.mark.unit
class TestMain:

    def test_missing_api_key(self, cli_env, monkeypatch, capsys):
        monkeypatch.delenv("GROQ_API_KEY")

        assert run_main(["--file", "clip.wav"]) == 1
        assert "GROQ_API_KEY environment variable not set" in capsys.readouterr().err

    def test_api_key_from_config_file(self, cli_env, fake_backend, monkeypatch, capsys):
        monkeypatch.delenv("GROQ_API_KEY")
        config_dir = cli_env / ".config" / "groq"
        config_dir.mkdir(parents=True)
        (config_dir / "whisper.yaml").write_text("api_key: gsk_from_file\nlanguage: fr\n")
        audio = cli_env / "clip.wav"
        audio.write_bytes(b"RIFF....WAVE")

        cli.main(["--file", str(audio)])

        assert fake_backend.calls[0]["api_key"] == "gsk_from_file"
        assert fake_backend.calls[0]["language"] == "fr"

    def test_missing_config_file(self, cli_env, capsys):
        assert run_main(["--config", str(cli_env / "missing.yaml"), "--list-mics"]) == 1
        assert "Configuration file not found" in capsys.readouterr().err

    def test_transcribe_file(self, cli_env, fake_backend, capsys):
        audio = cli_env / "clip.mp3"
        audio.write_bytes(b"ID3 fake mp3")

        cli.main(["--file", str(audio)])

        out, err = capsys.readouterr()
        assert out.strip() == "hello world"
        assert fake_backend.calls == [{
            "audio": b"ID3 fake mp3", "filename": "clip.mp3", "api_key": "gsk_test",
            "model": "whisper-large-v3-turbo", "language": "en",
        }]

    def test_file_not_found(self, cli_env, fake_backend, capsys):
        assert run_main(["--file", str(cli_env / "missing.wav")]) == 1
        assert "Audio file not found" in capsys.readouterr().err
        assert fake_backend.calls == []

    def test_empty_file(self, cli_env, fake_backend, capsys):
        audio = cli_env / "empty.wav"
        audio.write_bytes(b"")

        assert run_main(["--file", str(audio)]) == 1
        assert "empty" in capsys.readouterr().err

    def test_transcription_error(self, cli_env, fake_backend, capsys):
        audio = cli_env / "clip.wav"
        audio.write_bytes(b"RIFF....WAVE")
        fake_backend.error = TranscriptionAPIError("API error: Invalid file format", status=400)

        assert run_main(["--file", str(audio)]) == 1
        out, err = capsys.readouterr()
        assert "[error] API error: Invalid file format" in err
        assert out == ""

    def test_record_and_transcribe(self, cli_env, fake_backend, capsys, fake_source_factory, make_frames):
        source = fake_source_factory(make_frames(0.5, 10) + make_frames(0.0, 35))
        sigint_before = signal.getsignal(signal.SIGINT)

        with patch("groqwhisper.main.build_source", return_value=source):
            cli.main([])

        out, err = capsys.readouterr()
        assert "🎙" in err
        assert out.strip() == "hello world"
        assert signal.getsignal(signal.SIGINT) == sigint_before
        assert source.stop_calls == 1

        sent = fake_backend.calls[0]
        assert sent["filename"] == "audio.wav"
        with wave.open(io.BytesIO(sent["audio"]), "rb") as wav:
            assert wav.getframerate() == 16000
            assert wav.getnchannels() == 1
            assert wav.getsampwidth() == 2
            assert wav.getnframes() == 40 * 1600

    def test_empty_recording(self, cli_env, fake_backend, capsys, fake_source_factory):
        source = fake_source_factory([])

        with patch("groqwhisper.main.build_source", return_value=source):
            assert run_main(["--duration", "0.3"]) == 1

        assert "Audio recording is empty" in capsys.readouterr().err
        assert fake_backend.calls == []

    def test_mic_flag_beats_environment(self, cli_env, fake_backend, monkeypatch,
                                        fake_source_factory, make_frames):
        monkeypatch.setenv("GROQ_WHISPER_MIC", "env-mic")
        chosen = []

        def build_source(settings):
            chosen.append(settings.mic)
            return fake_source_factory(make_frames(0.5, 1) + make_frames(0.0, 30))

        with patch("groqwhisper.main.build_source", side_effect=build_source):
            cli.main(["--mic", "cli-mic"])

        assert chosen == ["cli-mic"]

    def test_sox_backend_requires_rec(self, cli_env, capsys):
        config = cli_env / "whisper.yaml"
        config.write_text("backend: sox\n")

        with patch("groqwhisper.main.rec_available", return_value=False):
            assert run_main(["--config", str(config)]) == 1

        assert "sox not found" in capsys.readouterr().err

    def test_list_mics_needs_no_api_key(self, cli_env, monkeypatch, capsys):
        monkeypatch.delenv("GROQ_API_KEY")
        mics = [MicrophoneInfo(0, "Built-in", 2, 44100.0, is_default=True),
                MicrophoneInfo(3, "Yeti", 1, 48000.0)]

        with patch("groqwhisper.main.list_input_devices", return_value=mics):
            cli.main(["--list-mics"])

        out = capsys.readouterr().out
        assert "Built-in (default)" in out
        assert "Yeti" in out
        assert "--mic" in out

    def test_list_mics_with_sox_backend_asks_for_a_device_name(self, cli_env, capsys):
        config = cli_env / "whisper.yaml"
        config.write_text("backend: sox\n")
        mics = [MicrophoneInfo(3, "Yeti", 1, 48000.0)]

        with patch("groqwhisper.main.list_input_devices", return_value=mics):
            cli.main(["--config", str(config), "--list-mics"])

        out = capsys.readouterr().out
        assert "AUDIODEV" in out
        assert "<index or name>" not in out

    def test_sox_backend_rejects_mic_index(self, cli_env, capsys):
        config = cli_env / "whisper.yaml"
        config.write_text("backend: sox\n")

        with patch("groqwhisper.main.rec_available", return_value=True), \
                patch("groqwhisper.audio.sox.subprocess.Popen") as popen:
            assert run_main(["--config", str(config), "--mic", "3"]) == 1

        popen.assert_not_called()
        assert "takes a device name" in capsys.readouterr().err

    def test_list_mics_without_devices(self, cli_env, capsys):
        with patch("groqwhisper.main.list_input_devices", return_value=[]):
            cli.main(["--list-mics"])

        assert "No input devices found" in capsys.readouterr().out

    def test_install(self, cli_env, capsys):
        result = InstallResult(link_path=Path("/opt/bin/groq-whisper"), target=Path("/venv/bin/groq-whisper"),
                               replaced=False, on_path=False)

        with patch("groqwhisper.main.install_symlink", return_value=result) as install:
            cli.main(["--install", "/opt/bin"])

        install.assert_called_once_with("/opt/bin")
        out = capsys.readouterr().out
        assert "Created symlink" in out
        assert 'export PATH="/opt/bin:$PATH"' in out

    def test_transcript_is_printed_verbatim(self, cli_env, fake_backend, capsys):
        audio = cli_env / "clip.wav"
        audio.write_bytes(b"RIFF....WAVE")
        fake_backend.text = "reply with :thumbs_up: or :smile: [bold]please[/bold]"

        cli.main(["--file", str(audio)])

        assert capsys.readouterr().out == "reply with :thumbs_up: or :smile: [bold]please[/bold]\n"
