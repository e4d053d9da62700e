import json
import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from .models import UserPreferences

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path("config")
PREFERENCES_PATH = CONFIG_DIR / "preferences.yaml"


def default_preferences_path() -> Path:
    """Preferences file, overridable through IBADAH365_CONFIG."""
    override = os.environ.get("IBADAH365_CONFIG", "").strip()
    return Path(override) if override else PREFERENCES_PATH


def load_preferences(path: Optional[Path] = None, missing_ok: bool = True) -> UserPreferences:
    """Loads user preferences from YAML file."""
    path = Path(path) if path else default_preferences_path()
    if not path.exists():
        if not missing_ok:
            raise FileNotFoundError(f"Preferences file not found at {path}")
        LOGGER.info("No preferences at %s, using defaults", path)
        return UserPreferences()

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    return UserPreferences(**(data or {}))


def save_preferences(preferences: UserPreferences, path: Optional[Path] = None) -> Path:
    """Writes preferences back to YAML, keeping the snake_case keys."""
    path = Path(path) if path else default_preferences_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(preferences.model_dump(mode="json"), f, allow_unicode=True, sort_keys=False)
    LOGGER.info("Preferences saved to %s", path)
    return path


def reset_preferences(path: Optional[Path] = None) -> UserPreferences:
    path = Path(path) if path else default_preferences_path()
    if path.exists():
        path.unlink()
    return UserPreferences()


def export_preferences(preferences: UserPreferences) -> str:
    """JSON in the camelCase layout the mobile app stored."""
    return preferences.model_dump_json(by_alias=True, indent=2)


def import_preferences(preferences_json: str) -> UserPreferences:
    try:
        return UserPreferences(**json.loads(preferences_json))
    except (json.JSONDecodeError, TypeError, ValidationError) as e:
        LOGGER.error("Failed to import preferences: %s", e)
        raise ValueError("Invalid preferences format") from e


def set_hijri_offset(preferences: UserPreferences, offset: int) -> UserPreferences:
    if not -2 <= offset <= 2:
        raise ValueError("Offset must be between -2 and +2 days")
    return preferences.model_copy(update={"hijri_offset": offset})
