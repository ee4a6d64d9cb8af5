"""Paths and user configuration for the this tool."""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv
from pydantic import ValidationError

from this_tool.models.schemas import Config

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "THIS_DATA_DIR"
CONFIG_PATH_ENV = "THIS_CONFIG"


def default_data_dir() -> Path:
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".this"


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_PATH_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".this.config"


def read_config(path: Optional[Path] = None) -> Tuple[Config, bool]:
    """Load the config file, returning ``(config, parsed_ok)``.

    A missing, unreadable or malformed file yields the built-in defaults.
    ``parsed_ok`` is False only when a file exists but could not be used.
    """
    path = path or default_config_path()
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Config(), True
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Config read error (%s): %s, using defaults", path, e)
        return Config(), False

    try:
        return Config.model_validate(json.loads(raw)), True
    except (ValueError, ValidationError) as e:
        logger.warning("Invalid config %s: %s, using defaults", path, e)
        return Config(), False


def load_config(path: Optional[Path] = None) -> Config:
    config, _ = read_config(path)
    return config


def write_default_config(path: Optional[Path] = None) -> bool:
    """Write the default config if no file exists yet."""
    path = path or default_config_path()
    if path.exists():
        return False

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(Config().to_record(), indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        logger.warning("Could not write default config %s: %s", path, e)
        return False

    logger.info("Wrote default config to %s", path)
    return True
