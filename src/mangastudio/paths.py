from __future__ import annotations

from pathlib import Path
from typing import Dict, Any


def get_data_root(config: Dict[str, Any]) -> Path:
    root = config.get("data_root", "~/.local/share/mangastudio")
    return Path(root).expanduser().resolve()


def ensure_directories(data_root: Path) -> Dict[str, Path]:
    storage_dir = data_root / "storage"
    drawings_dir = data_root / "drawings"
    downloads_dir = data_root / "downloads"
    logs_dir = data_root / "logs"

    for directory in (storage_dir, drawings_dir, downloads_dir, logs_dir):
        directory.mkdir(parents=True, exist_ok=True)

    return {
        "storage": storage_dir,
        "drawings": drawings_dir,
        "downloads": downloads_dir,
        "logs": logs_dir,
    }
