from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

from mangastudio.errors import StorageError, StorageQuotaError

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonFileStorage:
    """Key-value store with one file per key and a total byte quota.

    Values are opaque strings (callers serialize JSON themselves). ``set``
    raises ``StorageQuotaError`` when the write would push the total size of
    all stored values past ``quota_bytes``.
    """

    suffix = ".json"

    def __init__(self, root: Path, quota_bytes: int) -> None:
        self.root = Path(root)
        self.quota_bytes = int(quota_bytes)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.root / f"{key}{self.suffix}"

    def _used_bytes(self, *, excluding: Optional[Path] = None) -> int:
        total = 0
        for path in self.root.glob(f"*{self.suffix}"):
            if excluding is not None and path == excluding:
                continue
            try:
                total += path.stat().st_size
            except OSError:
                continue
        return total

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Could not read {key}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        encoded = value.encode("utf-8")
        if self._used_bytes(excluding=path) + len(encoded) > self.quota_bytes:
            raise StorageQuotaError(f"Storage quota of {self.quota_bytes} bytes exceeded writing {key}")
        # Temp name falls outside the key glob, so quota accounting skips it.
        tmp_path = path.with_name(f".{path.stem}.tmp")
        try:
            tmp_path.write_bytes(encoded)
            os.replace(tmp_path, path)
        except OSError as exc:
            raise StorageError(f"Could not write {key}: {exc}") from exc

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Could not remove {key}: {exc}") from exc
