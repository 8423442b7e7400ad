"""
Application configuration from the environment and an optional ``.env`` file.
"""
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

import constants as C

logger = logging.getLogger(__name__)


@dataclass
class Identity:
    """Signed-in user as handed over by the identity provider."""
    user_id: str
    id_token: Optional[str] = None


@dataclass
class AppConfig:
    api_key: str = ""
    api_endpoint: str = C.API_ENDPOINT_DEFAULT
    image_host: str = C.IMAGE_HOST_DEFAULT
    firebase_project_id: Optional[str] = None
    firebase_api_key: str = ""
    identity: Optional[Identity] = None
    stt_model: str = C.STT_MODEL
    tts_model: str = C.TTS_MODEL
    tts_voice: str = C.TTS_VOICE
    log_level: str = "DEBUG"

    @property
    def cloud_enabled(self) -> bool:
        return bool(self.identity and self.firebase_project_id)


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def load_config(dotenv_path: Optional[str] = None) -> AppConfig:
    """Read ``.env`` (without overriding the environment), then build the config."""
    load_dotenv(dotenv_path=dotenv_path, override=False)

    user_id = _env("SMOKESTREAM_USER_ID")
    identity = Identity(user_id=user_id, id_token=_env("SMOKESTREAM_ID_TOKEN")) if user_id else None

    config = AppConfig(
        api_key=_env("SMOKESTREAM_API_KEY") or _env("GROQ_API_KEY", ""),
        api_endpoint=_env("SMOKESTREAM_API_ENDPOINT", C.API_ENDPOINT_DEFAULT),
        image_host=_env("SMOKESTREAM_IMAGE_HOST", C.IMAGE_HOST_DEFAULT),
        firebase_project_id=_env("FIREBASE_PROJECT_ID"),
        firebase_api_key=_env("FIREBASE_API_KEY", ""),
        identity=identity,
        stt_model=_env("SMOKESTREAM_STT_MODEL", C.STT_MODEL),
        tts_model=_env("SMOKESTREAM_TTS_MODEL", C.TTS_MODEL),
        tts_voice=_env("SMOKESTREAM_TTS_VOICE", C.TTS_VOICE),
        log_level=(_env("SMOKESTREAM_LOG_LEVEL", "DEBUG") or "DEBUG").upper(),
    )
    if not config.api_key:
        logger.warning("No API key configured; completion requests will be rejected")
    if identity and not config.firebase_project_id:
        logger.warning("User id set but FIREBASE_PROJECT_ID missing; cloud sync disabled")
    return config
