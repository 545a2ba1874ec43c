"""Runtime settings loaded from YAML, with command-line overrides.

Search order (the first file found is used):
    1. An explicit path (``--config FILE``)
    2. The FIELDSCRIPT_CONFIG environment variable
    3. The user config file (~/.config/fieldscript/config.yaml)

With no file, the defaults below apply. Example file::

    http: "127.0.0.1:35367"
    keep_open: true
    log_level: DEBUG
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

__all__ = [
    "FIELDSCRIPT_CONFIG",
    "RuntimeSettings",
    "find_config_file",
    "load_settings",
]

# Environment variable naming a settings file
FIELDSCRIPT_CONFIG = "FIELDSCRIPT_CONFIG"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class RuntimeSettings(BaseModel):
    """Process-wide settings of one fieldscript invocation."""
    http: str = ":35367"      # address of the command server
    serve: bool = True        # start the command server at all
    keep_open: bool = False   # wait for injections after the script ends
    gpu: int = Field(default=0, ge=0)
    silent: bool = False
    log_level: str = "INFO"
    max_errors: int = Field(default=20, ge=1)

    model_config = {"title": "RuntimeSettings", "frozen": True, "extra": "forbid"}

    @field_validator("log_level", mode="before")
    @classmethod
    def _check_log_level(cls, value: Any) -> str:
        level = str(value).upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"invalid log_level '{value}', expected one of {LOG_LEVELS}")
        return level

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuntimeSettings":
        unknown = sorted(set(data) - set(cls.model_fields))
        if unknown:
            raise ValueError(f"unknown settings: {', '.join(unknown)}")
        return cls.model_validate(data)

    def override(self, **changes: Any) -> "RuntimeSettings":
        """Copy with the given values replaced; None means keep the current value."""
        values = self.model_dump()
        values.update({k: v for k, v in changes.items() if v is not None})
        return type(self).model_validate(values)


def _user_config_file() -> Path:
    if sys.platform == "win32":
        config_base = Path(os.environ.get("APPDATA", "~")).expanduser()
    else:
        config_base = Path.home() / ".config"
    return config_base / "fieldscript" / "config.yaml"


def find_config_file(explicit: Optional[str] = None) -> Optional[Path]:
    """
    Locate the settings file to use.

    Raises:
        FileNotFoundError: if an explicit path or FIELDSCRIPT_CONFIG names
            a file that does not exist
    """
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"Settings file not found: {path}")
        return path

    env_path = os.environ.get(FIELDSCRIPT_CONFIG)
    if env_path:
        path = Path(env_path).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"{FIELDSCRIPT_CONFIG} names a missing file: {path}")
        return path

    user_config = _user_config_file()
    if user_config.is_file():
        return user_config
    return None


def _load_yaml(path: Path) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in settings file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid settings format in {path}: expected mapping at root")
    return data


def load_settings(explicit: Optional[str] = None, **overrides: Any) -> RuntimeSettings:
    """
    Load settings from the first file found and apply overrides.

    Args:
        explicit: Path given on the command line, if any
        overrides: Values from command-line flags; None leaves the file value

    Returns:
        The effective RuntimeSettings
    """
    path = find_config_file(explicit)
    settings = RuntimeSettings.from_dict(_load_yaml(path)) if path else RuntimeSettings()
    return settings.override(**overrides)
