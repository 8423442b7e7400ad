"""
Microphone capture and clip playback on the default audio devices.
"""
import io
import logging
from typing import Optional

import numpy as np
import sounddevice as sd
import soundfile as sf

from speech import SpeechError
import constants as C

logger = logging.getLogger(__name__)


def encode_wav(audio: np.ndarray, samplerate: int) -> bytes:
    buf = io.BytesIO()
    sf.write(buf, audio, samplerate, format="WAV", subtype="PCM_16")
    return buf.getvalue()


class Recorder:
    """Records from the default input until stopped."""

    def __init__(self, samplerate: int = C.SPEECH_SAMPLE_RATE, channels: int = 1):
        self.samplerate = samplerate
        self.channels = channels
        self._stream: Optional[sd.InputStream] = None
        self._chunks: list[np.ndarray] = []

    def start(self) -> None:
        if self._stream is not None:
            return
        self._chunks = []
        try:
            self._stream = sd.InputStream(
                samplerate=self.samplerate,
                channels=self.channels,
                dtype="int16",
                callback=self._on_audio,
            )
            self._stream.start()
        except sd.PortAudioError as e:
            self._stream = None
            raise SpeechError(f"Microphone unavailable: {e}") from e

    def _on_audio(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug("Input status: %s", status)
        self._chunks.append(indata.copy())

    def stop(self) -> Optional[bytes]:
        """Stop capture and return the recording as WAV, if anything was heard."""
        stream, self._stream = self._stream, None
        if stream is None:
            return None
        stream.stop()
        stream.close()
        chunks, self._chunks = self._chunks, []
        if not chunks:
            return None
        return encode_wav(np.concatenate(chunks, axis=0), self.samplerate)


class Player:
    """Plays one clip at a time on the default output."""

    def __init__(self, rate: float = C.TTS_PLAYBACK_RATE):
        self.rate = rate

    def play(self, audio: bytes) -> None:
        """Block until the clip ends or ``stop`` is called from another thread."""
        try:
            data, samplerate = sf.read(io.BytesIO(audio), dtype="float32")
        except RuntimeError as e:
            raise SpeechError(f"Unreadable audio: {e}") from e
        try:
            sd.play(data, int(samplerate * self.rate))
            sd.wait()
        except sd.PortAudioError as e:
            raise SpeechError(f"Playback failed: {e}") from e

    def stop(self) -> None:
        sd.stop()
