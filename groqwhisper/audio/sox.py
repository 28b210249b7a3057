"""Capture through the sox ``rec`` command in a child process."""

import os
import shutil
import logging
import subprocess
from threading import Event, Thread
from typing import List, Optional

from .source import AudioSource, DEFAULT_CHUNK_SIZE, Device
from ..errors import SourceRuntimeError, SourceStartFailure
from ..models.audio import SAMPLE_RATE, CHANNELS, SAMPLE_WIDTH

logger = logging.getLogger(__name__)

REC_COMMAND = "rec"


def rec_available() -> bool:
    return shutil.which(REC_COMMAND) is not None


class SoxAudioSource(AudioSource):
    """Runs ``rec`` writing raw PCM to stdout and turns it into frames.

    The device, if given, is passed to sox through ``AUDIODEV`` and must be a
    name sox understands (e.g. a PulseAudio source or ``hw:1``); the numeric
    indexes shown by ``--list-mics`` belong to PyAudio.
    """

    def __init__(
        self,
        device: Device = None,
        sample_rate: int = SAMPLE_RATE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        channels: int = CHANNELS,
    ):
        super().__init__(device, sample_rate, chunk_size, channels)
        self.process: Optional[subprocess.Popen] = None
        self.reader_thread: Optional[Thread] = None

    def build_command(self) -> List[str]:
        return [
            REC_COMMAND, "-q",
            "-t", "raw",
            "-r", str(self.sample_rate),
            "-c", str(self.channels),
            "-b", str(SAMPLE_WIDTH * 8),
            "-e", "signed-integer",
            "--endian", "little",
            "-",
        ]

    def start(self):
        if self.is_alive():
            raise SourceStartFailure("Audio source is still running; stop it before starting again")
        if isinstance(self.device, int) or str(self.device).isdigit():
            raise SourceStartFailure(
                f"The sox backend takes a device name, not the PyAudio index {self.device}")

        self._reset()
        env = os.environ.copy()
        if self.device not in (None, ""):
            env["AUDIODEV"] = str(self.device)

        command = self.build_command()
        logger.debug(f"Starting recorder: {' '.join(command)}")
        try:
            self.process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                env=env,
            )
        except OSError as e:
            raise SourceStartFailure(f"Could not run {REC_COMMAND}: {e}") from e

        self.reader_thread = Thread(
            target=self._read_continuously,
            args=(self.process, self.frames, self.stop_event),
            daemon=True,
        )
        self.reader_thread.name = "SoxReaderThread"
        self.reader_thread.start()
        return self.ready_event, self.frames

    def stop(self, timeout: float = 2.0) -> None:
        process, reader = self.process, self.reader_thread
        if process is None and reader is None:
            return

        self.stop_event.set()
        if process is not None and process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"{REC_COMMAND} did not exit within {timeout}s, killing it")
                process.kill()
                process.wait()

        if reader is not None:
            reader.join(timeout=timeout)
        if process is not None:
            for pipe in (process.stdout, process.stderr):
                if pipe is not None:
                    pipe.close()
            self.process = None

        if reader is not None and reader.is_alive():
            logger.error(f"Reader of {REC_COMMAND} output still running after the process exited")
            return
        self.reader_thread = None
        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}")

    def is_alive(self) -> bool:
        process_running = self.process is not None and self.process.poll() is None
        reader_running = self.reader_thread is not None and self.reader_thread.is_alive()
        return process_running or reader_running

    def _read_continuously(self, process: subprocess.Popen, frames, stop_event: Event) -> None:
        sample_bytes = self.channels * SAMPLE_WIDTH
        chunk_bytes = self.chunk_size * sample_bytes
        # Bytes of a sample split across two reads
        pending = b""
        try:
            while True:
                data = process.stdout.read(chunk_bytes)
                if not data:
                    break
                data = pending + data
                usable = len(data) - len(data) % sample_bytes
                pending = data[usable:]
                if usable:
                    self._publish_frame(data[:usable])

            if pending:
                logger.debug(f"Dropped {len(pending)} trailing bytes of an incomplete sample")

            if not stop_event.is_set():
                returncode = process.wait()
                stderr = process.stderr.read().decode(errors="replace").strip()
                message = f"{REC_COMMAND} exited with code {returncode}"
                if stderr:
                    message = f"{message}: {stderr}"
                logger.error(message)
                self.error = SourceRuntimeError(message)
        except (OSError, ValueError) as e:
            if not stop_event.is_set():
                logger.error(f"Reading from {REC_COMMAND} failed: {e}")
                self.error = e
        finally:
            frames.put(None)
