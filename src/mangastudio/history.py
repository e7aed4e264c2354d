from __future__ import annotations

import json
import logging
from typing import List, Optional, Protocol

from mangastudio.errors import StorageError, StorageQuotaError
from mangastudio.models import HistoryItem

logger = logging.getLogger(__name__)

HISTORY_KEY = "mangaHistory"
HISTORY_LIMIT = 50


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class HistoryStore:
    """Most-recent-first list of past results, mirrored to durable storage.

    The store is the only writer of ``key``. Every mutation is followed by a
    synchronous write; when storage reports its quota is exhausted the oldest
    entries are dropped one at a time until the write fits, and the in-memory
    list is cut to what was actually persisted.
    """

    def __init__(self, storage: KeyValueStorage, *, key: str = HISTORY_KEY, limit: int = HISTORY_LIMIT) -> None:
        self.storage = storage
        self.key = key
        self.limit = max(1, int(limit))
        self._items: List[HistoryItem] = []

    @property
    def items(self) -> List[HistoryItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def load(self) -> List[HistoryItem]:
        try:
            raw = self.storage.get(self.key)
        except StorageError as exc:
            logger.error("Failed to load history: %s", exc)
            raw = None
        if raw is None:
            self._items = []
            return self.items
        try:
            payload = json.loads(raw)
            if not isinstance(payload, list):
                raise TypeError("history record is not a list")
            items = [HistoryItem.from_dict(entry) for entry in payload]
        except (ValueError, TypeError, KeyError) as exc:
            logger.error("Failed to load history, discarding stored record: %s", exc)
            self._discard_record()
            items = []
        self._items = items[: self.limit]
        return self.items

    def record(self, item: HistoryItem) -> None:
        self._items = [item, *self._items[: self.limit - 1]]
        self._persist()

    def remove(self, item_id: str) -> bool:
        for idx, item in enumerate(self._items):
            if item.id == item_id:
                del self._items[idx]
                self._persist()
                return True
        return False

    def select(self, item_id: str) -> Optional[HistoryItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def _discard_record(self) -> None:
        try:
            self.storage.remove(self.key)
        except StorageError as exc:
            logger.error("Failed to remove history record: %s", exc)

    def _persist(self) -> None:
        if not self._items:
            self._discard_record()
            return

        to_save = list(self._items)
        while to_save:
            try:
                self.storage.set(self.key, json.dumps([item.to_dict() for item in to_save]))
            except StorageQuotaError:
                logger.warning("Storage quota exceeded. Removing the oldest history item to make space.")
                to_save.pop()
                continue
            except StorageError as exc:
                logger.error("Failed to save history: %s", exc)
                return
            if len(to_save) < len(self._items):
                logger.warning("History was truncated to %d items to fit in storage.", len(to_save))
                self._items = to_save
            return

        logger.warning("History could not be stored at any size; clearing it.")
        self._items = []
        self._discard_record()
