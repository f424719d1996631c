"""Configuration loading and validation."""

import copy
import string
import sys
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

DEFAULTS: dict[str, Any] = {
    "engine": {
        "language": "por",
        "product_language": "por",
        "engine_mode": 1,
        "tesseract_cmd": "",
        "timeout_s": 0,
    },
    "plate": {
        "scale": 3.0,
        "block_size": 25,
        "offset": 10,
        "pad_margin": 20,
        "whitelist": string.ascii_uppercase + string.digits,
        "concurrency": 1,
    },
    "weight": {
        "scale": 2.5,
        "block_size": 15,
        "offset": 5,
        "pad_margin": 20,
        "min_kg": 500,
        "max_kg": 80000,
        "tare_max_kg": 30000,
        "tonnes_min": 1,
        "tonnes_max": 80,
    },
    "product": {
        "vocabulary": ["soja", "milho", "trigo", "sorgo", "café", "feijão", "arroz", "algodão", "cana"],
    },
    "debug": {
        "keep_images": False,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into base, returning a new dict."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def validate_config(config: dict[str, Any]) -> None:
    """Reject settings the pipeline cannot run with.

    Raises:
        ValueError: Naming the offending key.
    """
    if config["plate"]["concurrency"] < 1:
        raise ValueError("plate.concurrency must be at least 1")

    for section in ("plate", "weight"):
        if config[section]["block_size"] < 1:
            raise ValueError(f"{section}.block_size must be positive")
        if config[section]["scale"] <= 0:
            raise ValueError(f"{section}.scale must be positive")

    weight = config["weight"]
    if not weight["min_kg"] <= weight["tare_max_kg"] <= weight["max_kg"]:
        raise ValueError("weight limits must satisfy min_kg <= tare_max_kg <= max_kg")
    if weight["tonnes_min"] > weight["tonnes_max"]:
        raise ValueError("weight.tonnes_min must not exceed weight.tonnes_max")

    if not config["product"]["vocabulary"]:
        raise ValueError("product.vocabulary must not be empty")


def load_config(path: str | Path = "config.toml") -> dict[str, Any]:
    """Load config from a TOML file, falling back to defaults for missing values."""
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, "rb") as f:
            user_config = tomllib.load(f)
        config = _deep_merge(DEFAULTS, user_config)
    else:
        config = copy.deepcopy(DEFAULTS)
    validate_config(config)
    return config
