"""Microphone audio source adapter."""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from typing import Any, Optional

from errors import CaptureUnavailableError
from models import AudioFormat

logger = logging.getLogger(__name__)

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore


class SoundDeviceAudioSource:
    """Captures into a zero-filled ring buffer that always holds the latest audio."""

    def __init__(
        self,
        audio_format: AudioFormat,
        buffer_samples: int,
        device: Optional[str] = None,
        chunk_ms: int = 100,
    ) -> None:
        if np is None:
            raise RuntimeError("numpy is not installed")
        self.sample_rate = audio_format.sample_rate
        self.channels = audio_format.channels
        self.chunk_ms = chunk_ms
        self._device = device or None
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._buffer_lock = threading.Lock()
        self._ring = np.zeros(buffer_samples, dtype=np.float32)
        self._pos = 0
        self.overflows = 0

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            stream = None
            try:
                stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="float32",
                    blocksize=blocksize,
                    device=self._device,
                    callback=self._on_audio,
                )
                stream.start()
            except Exception as exc:
                if stream is not None:
                    stream.close()
                if isinstance(exc, sd.PortAudioError):
                    raise CaptureUnavailableError(f"microphone unavailable: {exc}") from exc
                raise
            self._stream = stream
            self._running = True
            logger.info("Audio capture started at %d Hz", self.sample_rate)

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            if self._stream is not None:
                self._stream.stop()
            logger.info("Audio capture stopped")

    def release(self) -> None:
        with self._lock:
            self._running = False
            if self._stream is not None:
                self._stream.close()
                self._stream = None

    def read(self, num_samples: int) -> Any:
        """Return the most recent ``num_samples`` mono samples, oldest first."""
        with self._buffer_lock:
            ordered = np.concatenate((self._ring[self._pos:], self._ring[: self._pos]))
        if num_samples >= ordered.size:
            return ordered
        return ordered[-num_samples:]

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            self.overflows += 1
        if not self._running:
            return
        data = np.asarray(indata, dtype=np.float32)
        mono = data.mean(axis=1) if data.ndim > 1 else data
        with self._buffer_lock:
            self._write(mono)

    def _write(self, samples: Any) -> None:
        size = self._ring.size
        if samples.size >= size:
            self._ring[:] = samples[-size:]
            self._pos = 0
            return
        end = self._pos + samples.size
        if end <= size:
            self._ring[self._pos:end] = samples
        else:
            split = size - self._pos
            self._ring[self._pos:] = samples[:split]
            self._ring[: end - size] = samples[split:]
        self._pos = end % size


def default_source_muted() -> bool:
    """Whether the default PulseAudio/PipeWire input is muted.

    Reports False where ``pactl`` is missing or cannot answer, since
    sounddevice itself has no mute query.
    """
    pactl = shutil.which("pactl")
    if pactl is None:
        return False
    try:
        result = subprocess.run(
            [pactl, "get-source-mute", "@DEFAULT_SOURCE@"],
            capture_output=True,
            text=True,
            timeout=2.0,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Cannot query microphone mute state: %s", exc)
        return False
    return result.stdout.strip().lower().endswith("yes")
