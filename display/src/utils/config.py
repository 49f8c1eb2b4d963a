"""
Configuration Management
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path(__file__).parent.parent.parent / "config" / "display.conf"

# Environment prefixes mapped onto top-level config sections
ENV_SECTIONS = {
    "DRAWING_": "drawing",
    "BACKEND_": "backend",
    "ANIMATION_": "animation",
    "SERVER_": "server",
    "APP_": "app",
}


def load_config(config_file: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Load configuration from the JSON config file and environment variables"""
    config: Dict[str, Any] = {}

    config_file = Path(config_file) if config_file else DEFAULT_CONFIG_FILE
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                config.update(json.load(f))
            logger.info(f"Loaded configuration from {config_file}")
        except (OSError, ValueError) as e:
            logger.error(f"Error loading config file {config_file}: {e}")
    else:
        logger.warning(f"Config file {config_file} not found. Will only use environment variables.")

    config = _apply_env_overrides(config, os.environ if environ is None else environ)

    logger.debug(f"Configuration after applying environment overrides: {json.dumps(_redacted(config), indent=2)}")
    return config


def _apply_env_overrides(config: Dict[str, Any], environ: Dict[str, str]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration"""
    for key, value in environ.items():
        for prefix, section in ENV_SECTIONS.items():
            if key.startswith(prefix):
                name = key[len(prefix):].lower()
                if name:
                    config.setdefault(section, {})[name] = value
                break
    return config


def _redacted(config: Dict[str, Any]) -> Dict[str, Any]:
    backend = config.get("backend")
    if isinstance(backend, dict) and backend.get("auth_token"):
        config = dict(config)
        config["backend"] = {**backend, "auth_token": "***"}
    return config


def get_config_value(config: Dict[str, Any], key_path: str, default=None):
    """Get configuration value by dot-separated key path"""
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def get_float(config: Dict[str, Any], key_path: str, default: float) -> float:
    """Read a numeric setting that may arrive as a string from the environment"""
    value = get_config_value(config, key_path, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid number for '{key_path}': {value!r}; using {default}")
        return default


def get_int(config: Dict[str, Any], key_path: str, default: int) -> int:
    return int(get_float(config, key_path, default))
