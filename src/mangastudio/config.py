from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG: Dict[str, Any] = {
    "data_root": "~/.local/share/mangastudio",
    "window": {
        "width": 1280,
        "height": 800,
        "pixel_ratio": 1.0,
        "fps": 60,
    },
    "storage": {
        # Same order of magnitude as a browser origin's local storage.
        "quota_bytes": 5 * 1024 * 1024,
    },
    "history": {
        "limit": 50,
    },
    "gemini": {
        "api_key": "",
        "image_model": "gemini-2.5-flash-image",
        "text_model": "gemini-2.5-flash",
    },
    "draw": {
        "brush_size": 5,
        "brush_sizes": [2, 5, 10, 20],
        "eraser_scale": 3,
        "background": [255, 255, 255],
        "palette": [
            [0, 0, 0],
            [105, 105, 105],
            [220, 20, 60],
            [255, 127, 0],
            [255, 215, 0],
            [34, 139, 34],
            [30, 144, 255],
            [138, 43, 226],
        ],
    },
    "intake": {
        "preview_size": 256,
    },
    "logging": {
        "level": "INFO",
        "to_file": True,
    },
}

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(value, dict)
        ):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _candidate_config_paths() -> list[Path]:
    env_path = os.environ.get("MANGASTUDIO_CONFIG")
    paths = []
    if env_path:
        paths.append(Path(env_path))
    paths.extend([
        Path("config.yaml"),
        Path("~/.config/mangastudio/config.yaml").expanduser(),
    ])
    return paths


def load_config() -> Dict[str, Any]:
    config = dict(DEFAULT_CONFIG)
    for path in _candidate_config_paths():
        if path.exists():
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
            if isinstance(data, dict):
                config = _deep_merge(config, data)
            break
    return config


def get_api_key(config: Dict[str, Any]) -> Optional[str]:
    # Environment wins so a key never has to be written into a config file.
    for name in API_KEY_ENV_VARS:
        value = (os.environ.get(name) or "").strip()
        if value:
            return value
    gemini = config.get("gemini") if isinstance(config, dict) else None
    if isinstance(gemini, dict):
        key = str(gemini.get("api_key") or "").strip()
        return key or None
    return None


def coerce_int(value: object, default: int, *, minimum: int = 0) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return max(minimum, number)


def coerce_float(value: object, default: float, *, minimum: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return max(minimum, number)
