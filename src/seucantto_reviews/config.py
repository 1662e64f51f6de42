"""
Configuration defaults and loading for SeuCantto reviews.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000

DEFAULT_CONFIG: Dict[str, Any] = {
    "paths": {
        "reviews_dir": "reviews",
        "output_file": "public/reviews.json",
        "backup_file": "public/reviews-backup.json",
    },
    "rate_limit": {
        "otp_generation": {"max_attempts": 5, "window_ms": HOUR_MS},
        "otp_verification": {"max_failures": 3, "lockout_ms": 30 * 60 * 1000},
        "review_submission": {"max_attempts": 2, "window_ms": 24 * HOUR_MS},
    },
    "otp": {"code_length": 4, "ttl_ms": 15 * 60 * 1000},
    "session": {"duration_ms": 72 * HOUR_MS},
    "database": {"path": "data/gate.db"},
    "feed": {
        "url": "http://localhost:5000/api/reviews",
        "max_retries": 3,
        "delay": 1.0,
        "backoff": 2.0,
    },
    "flask": {"SECRET_KEY": "change-this-in-production", "DEBUG": False},
    "logging": {"level": "INFO", "file": "logs/reviews.log"},
}


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = "config/config.json") -> Dict[str, Any]:
    """
    Load configuration from a JSON file layered over the defaults.

    Args:
        config_path: Path to the JSON config file

    Returns:
        Complete configuration dictionary
    """
    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    config_file = Path(config_path)
    if not config_file.exists():
        logger.warning(f"Config file {config_path} not found, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    with open(config_file, "r", encoding="utf-8") as f:
        return merge_config(DEFAULT_CONFIG, json.load(f))


def create_sample_config(config_path: str = "config/config.json") -> Path:
    """Write the default configuration to ``config_path``."""
    config_file = Path(config_path)
    config_file.parent.mkdir(parents=True, exist_ok=True)

    with open(config_file, "w", encoding="utf-8") as f:
        json.dump(DEFAULT_CONFIG, f, indent=2)

    return config_file
