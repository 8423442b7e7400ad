import pytest

from config import load_config
import constants as C

ENV_VARS = [
    "SMOKESTREAM_API_KEY",
    "GROQ_API_KEY",
    "SMOKESTREAM_API_ENDPOINT",
    "SMOKESTREAM_IMAGE_HOST",
    "FIREBASE_PROJECT_ID",
    "FIREBASE_API_KEY",
    "SMOKESTREAM_USER_ID",
    "SMOKESTREAM_ID_TOKEN",
    "SMOKESTREAM_LOG_LEVEL",
    "SMOKESTREAM_STT_MODEL",
    "SMOKESTREAM_TTS_MODEL",
    "SMOKESTREAM_TTS_VOICE",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    env_file = tmp_path / ".env"
    env_file.write_text("", encoding="utf-8")
    return env_file


def test_defaults(clean_env):
    config = load_config(str(clean_env))

    assert config.api_key == ""
    assert config.api_endpoint == C.API_ENDPOINT_DEFAULT
    assert config.image_host == C.IMAGE_HOST_DEFAULT
    assert config.identity is None
    assert not config.cloud_enabled
    assert (config.stt_model, config.tts_model, config.tts_voice) == (C.STT_MODEL, C.TTS_MODEL, C.TTS_VOICE)


def test_voice_overrides(clean_env, monkeypatch):
    monkeypatch.setenv("SMOKESTREAM_TTS_VOICE", "Deep-Voice")

    assert load_config(str(clean_env)).tts_voice == "Deep-Voice"


def test_groq_key_fallback(clean_env, monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "gsk_test")

    assert load_config(str(clean_env)).api_key == "gsk_test"


def test_dotenv_does_not_override_environment(clean_env, monkeypatch):
    clean_env.write_text(
        "SMOKESTREAM_API_KEY=from-file\nSMOKESTREAM_LOG_LEVEL=info\n", encoding="utf-8"
    )
    monkeypatch.setenv("SMOKESTREAM_API_KEY", "from-env")

    config = load_config(str(clean_env))

    assert config.api_key == "from-env"
    assert config.log_level == "INFO"


def test_cloud_enabled_needs_user_and_project(clean_env, monkeypatch):
    monkeypatch.setenv("SMOKESTREAM_USER_ID", "u1")
    assert not load_config(str(clean_env)).cloud_enabled

    monkeypatch.setenv("FIREBASE_PROJECT_ID", "demo-project")
    monkeypatch.setenv("SMOKESTREAM_ID_TOKEN", "tok")
    config = load_config(str(clean_env))

    assert config.cloud_enabled
    assert config.identity.user_id == "u1"
    assert config.identity.id_token == "tok"
