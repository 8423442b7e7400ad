"""
Local persistence for the chat snapshot and settings.
"""
import json
import logging
import os
from typing import Optional

from models import ChatSettings, Turn
import constants as C

logger = logging.getLogger(__name__)


def _get_config_dir() -> str:
    """Get config directory path."""
    config_dir = os.environ.get("SMOKESTREAM_CONFIG_DIR") or os.path.join(
        os.path.expanduser("~"), ".config", C.APP_NAME
    )
    os.makedirs(config_dir, exist_ok=True)
    return config_dir


def _get_state_path() -> str:
    """Get path to the chat snapshot file."""
    return os.path.join(_get_config_dir(), C.STATE_FILE)


def _get_settings_path() -> str:
    """Get path to the settings file."""
    return os.path.join(_get_config_dir(), C.SETTINGS_FILE)


def turns_to_dicts(turns: list[Turn]) -> list[dict]:
    return [t.to_dict() for t in turns]


def turns_from_dicts(items: object) -> list[Turn]:
    """Deserialize turns, skipping entries that fail to parse."""
    if not isinstance(items, list):
        return []
    turns = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            turns.append(Turn.from_dict(item))
        except (ValueError, TypeError) as e:
            logger.warning("Skipping unreadable turn: %s", e)
    return turns


def load_state() -> tuple[str, list[Turn]]:
    """Load theme and turns from disk.

    Returns:
        (theme, turns); defaults when the file is missing or invalid.
    """
    path = _get_state_path()
    if not os.path.exists(path):
        return (C.DEFAULT_THEME, [])
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning("Could not load chat state: %s", e)
        return (C.DEFAULT_THEME, [])
    if not isinstance(data, dict):
        return (C.DEFAULT_THEME, [])
    theme = data.get("theme")
    if theme not in C.THEMES:
        theme = C.DEFAULT_THEME
    return (theme, turns_from_dicts(data.get("turns")))


def save_state(theme: str, turns: list[Turn]) -> None:
    """Overwrite the snapshot with the full turn list.

    Args:
        theme: Current theme name.
        turns: Full visible history.
    """
    data = {
        "version": C.STATE_VERSION,
        "theme": theme if theme in C.THEMES else C.DEFAULT_THEME,
        "turns": turns_to_dicts(turns),
    }
    path = _get_state_path()
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    os.replace(tmp_path, path)


def _settings_to_dict(settings: ChatSettings) -> dict:
    """Serialize ChatSettings to a JSON-serializable dict."""
    return {
        "model": settings.model,
        "temperature": settings.temperature,
        "max_tokens": settings.max_tokens,
        "tool_choice": settings.tool_choice,
        "max_rounds": settings.max_rounds,
        "system_prompt": settings.system_prompt,
    }


def _settings_from_dict(data: dict) -> ChatSettings:
    """Deserialize ChatSettings from a dict."""
    return ChatSettings(
        model=data.get("model", C.DEFAULT_MODEL),
        temperature=float(data.get("temperature", C.DEFAULT_TEMPERATURE)),
        max_tokens=int(data.get("max_tokens", C.DEFAULT_MAX_TOKENS)),
        tool_choice=data.get("tool_choice", C.DEFAULT_TOOL_CHOICE),
        max_rounds=int(data.get("max_rounds", C.DEFAULT_MAX_ROUNDS)),
        system_prompt=data.get("system_prompt", C.SYSTEM_PROMPT),
    )


def load_settings(path: Optional[str] = None) -> ChatSettings:
    """Load completion settings from disk.

    Returns:
        ChatSettings, or defaults if the file doesn't exist or is invalid.
    """
    path = path or _get_settings_path()
    if not os.path.exists(path):
        return ChatSettings()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return _settings_from_dict(data)
    except (json.JSONDecodeError, KeyError, ValueError, TypeError, AttributeError) as e:
        logger.warning("Could not load settings: %s", e)
        return ChatSettings()


def save_settings(settings: ChatSettings, path: Optional[str] = None) -> None:
    """Save completion settings to disk."""
    path = path or _get_settings_path()
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(_settings_to_dict(settings), f, indent=2, ensure_ascii=False)
    except IOError as e:
        logger.error("Error saving settings: %s", e)
