"""
Voice input and read-aloud.

Recorded audio is sent to the provider's transcription route and reply text
to its speech route. Capture and playback devices are passed in, so the
toggle logic here runs without audio hardware.
"""
import asyncio
import logging
import re
from typing import Optional

import aiohttp

from models import SessionState
import constants as C

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"https?://\S+")
_PICTOGRAPH_RE = re.compile("[\U0001F000-\U0001FAFF\u2600-\u27BF\uFE0F\u200D]")


class SpeechError(Exception):
    """Raised when audio capture, transcription or synthesis fails."""
    pass


def clean_for_speech(text: Optional[str]) -> str:
    """Drop links and emoji, collapse whitespace and cap the length."""
    text = _URL_RE.sub(" ", text or "")
    text = _PICTOGRAPH_RE.sub(" ", text)
    return " ".join(text.split())[:C.TTS_MAX_CHARS]


class SpeechClient:
    """Client for the OpenAI-compatible ``/audio`` routes."""

    def __init__(
        self,
        api_key: str = "",
        endpoint: str = C.API_ENDPOINT_DEFAULT,
        stt_model: str = C.STT_MODEL,
        tts_model: str = C.TTS_MODEL,
        tts_voice: str = C.TTS_VOICE,
    ):
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/")
        self.stt_model = stt_model
        self.tts_model = tts_model
        self.tts_voice = tts_voice
        self.session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()

    async def transcribe(self, audio: bytes) -> str:
        """Turn WAV bytes into text.

        Raises:
            SpeechError: On transport failure or a rejected request.
        """
        form = aiohttp.FormData()
        form.add_field("file", audio, filename="speech.wav", content_type="audio/wav")
        form.add_field("model", self.stt_model)
        form.add_field("language", C.STT_LANGUAGE)
        form.add_field("response_format", "json")
        data = await self._post(C.API_TRANSCRIPTIONS, expect_json=True, data=form)
        text = str(data.get("text") or "").strip()
        logger.info("Transcribed %d byte(s) into %d char(s)", len(audio), len(text))
        return text

    async def synthesize(self, text: str) -> bytes:
        """Render text to WAV bytes in the configured voice.

        Raises:
            SpeechError: On transport failure or a rejected request.
        """
        payload = {
            "model": self.tts_model,
            "voice": self.tts_voice,
            "input": text,
            "response_format": C.TTS_FORMAT,
        }
        return await self._post(C.API_SPEECH, expect_json=False, json=payload)

    async def _post(self, path: str, expect_json: bool, **kwargs):
        if self.session is None or self.session.closed:
            await self.initialize()
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            async with self.session.post(
                f"{self.endpoint}{path}",
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=C.SPEECH_TIMEOUT),
                **kwargs,
            ) as resp:
                if resp.status != 200:
                    raise SpeechError(f"Speech API error {resp.status}: {await resp.text()}")
                return await resp.json() if expect_json else await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SpeechError(f"Speech request failed: {e}") from e


class VoiceController:
    """Mic toggle and read-aloud toggle for one session.

    ``recorder`` needs ``start()`` and ``stop() -> Optional[bytes]``;
    ``player`` needs a blocking ``play(audio)`` and a thread-safe ``stop()``.
    Only one clip plays at a time: asking to speak while speaking stops it.
    """

    def __init__(self, client: SpeechClient, recorder, player, session: SessionState):
        self.client = client
        self.recorder = recorder
        self.player = player
        self.session = session
        self._playback = 0

    def toggle_listening(self) -> Optional[bytes]:
        """Start capture, or stop it and return the captured WAV bytes.

        Raises:
            SpeechError: If the microphone cannot be opened.
        """
        if self.session.is_listening:
            self.session.is_listening = False
            return self.recorder.stop()
        self.recorder.start()
        self.session.is_listening = True
        logger.info("Listening")
        return None

    async def transcribe(self, audio: Optional[bytes]) -> str:
        """Transcribe captured audio; failures yield an empty string."""
        if not audio:
            return ""
        try:
            return await self.client.transcribe(audio)
        except SpeechError as e:
            logger.warning("Transcription failed: %s", e)
            return ""

    def toggle_speaking(self, text: str) -> Optional[int]:
        """Stop the current clip, or claim a new one for ``text``.

        Returns:
            A playback token for ``speak``, or None if playback was stopped
            or there is nothing to say.
        """
        self._playback += 1
        if self.session.is_speaking:
            self.session.is_speaking = False
            self.player.stop()
            logger.info("Playback stopped")
            return None
        if not clean_for_speech(text):
            return None
        self.session.is_speaking = True
        return self._playback

    async def speak(self, text: str, token: int) -> None:
        """Synthesize and play ``text`` unless the token was superseded."""
        try:
            audio = await self.client.synthesize(clean_for_speech(text))
        except SpeechError as e:
            logger.warning("Speech synthesis failed: %s", e)
            return
        if token != self._playback:
            logger.debug("Playback %d cancelled before it started", token)
            return
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.player.play, audio)
        except SpeechError as e:
            logger.warning("Playback failed: %s", e)

    def playback_finished(self, token: Optional[int]) -> bool:
        """Clear the speaking flag if ``token`` is still the current clip.

        Returns:
            True if the flag was cleared.
        """
        if token is None or token != self._playback or not self.session.is_speaking:
            return False
        self.session.is_speaking = False
        return True
