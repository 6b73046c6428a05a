"""
fluidkeys - Config persistence
Config lives as JSON in ~/.fluidkeys/config.json unless a path is given.
Older files are migrated on load and written back at the current version.
"""

import json
from dataclasses import asdict
from pathlib import Path

from config import (
    Config,
    apply_dict_to_dataclass,
    migrate_config,
)
from logging_utils import log_event


CONFIG_DIR_NAME = '.fluidkeys'
CONFIG_FILE_NAME = 'config.json'


def get_config_dir() -> Path:
    """~/.fluidkeys, created on first use."""
    config_dir = Path.home() / CONFIG_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_file() -> Path:
    return get_config_dir() / CONFIG_FILE_NAME


def save_config(config: Config, config_file: Path | None = None) -> bool:
    """Write `config` as indented JSON. Returns False (and logs) on failure."""
    target = config_file or get_config_file()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(asdict(config), indent=2), encoding='utf-8')
    except (OSError, TypeError, ValueError) as e:
        log_event("ERROR", "Config", "Failed to save", path=target, error=e)
        return False
    log_event("INFO", "Config", "Saved", path=target)
    return True


def _read_document(path: Path) -> dict:
    data = json.loads(path.read_text(encoding='utf-8'))
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def load_config(config_file: Path | None = None) -> Config:
    """Load config, falling back to defaults when the file is missing or unreadable."""
    source = config_file or get_config_file()
    if not source.exists():
        log_event("INFO", "Config", "No saved config found, using defaults", path=source)
        return Config()

    try:
        data = _read_document(source)
    except (OSError, ValueError) as e:
        log_event("WARN", "Config", "Failed to load, using defaults", path=source, error=e)
        return Config()

    config = Config()
    apply_dict_to_dataclass(config, data)
    loaded_version = data.get('version')
    migrate_config(config, loaded_version)
    log_event("INFO", "Config", "Loaded", path=source, version=config.version)

    if loaded_version != config.version:
        log_event("INFO", "Config", "Migrated", path=source,
                  from_version=loaded_version, to_version=config.version)
        save_config(config, source)
    return config
