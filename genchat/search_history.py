"""Most-recent-first list of past queries."""

import json
import os
from threading import RLock

from genchat.globals import SEARCH_HISTORY_FILE, log_exception

MAX_HISTORY_SIZE = 100


class SearchHistoryStore:
    """Capped, case-insensitively deduplicated query history"""

    def __init__(self, path: str = SEARCH_HISTORY_FILE):
        self.path = path
        self._lock = RLock()

    def get(self) -> list[str]:
        with self._lock:
            if not os.path.exists(self.path):
                return []
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                return [str(item) for item in data]
            except Exception as e:
                log_exception(e, f"Error loading search history from {self.path}")
                return []

    def _save(self, history: list[str]):
        with self._lock:
            try:
                with open(self.path, "w", encoding="utf-8") as f:
                    json.dump(history, f, indent=2, ensure_ascii=False)
            except Exception as e:
                log_exception(e, f"Error saving search history to {self.path}")

    def add(self, query: str):
        """Move a query to the front, replacing any entry that differs only by case."""
        if not query:
            return
        with self._lock:
            lowered = query.lower()
            history = [item for item in self.get() if item.lower() != lowered]
            history.insert(0, query)
            self._save(history[:MAX_HISTORY_SIZE])

    def delete(self, query: str) -> list[str]:
        with self._lock:
            history = [item for item in self.get() if item != query]
            self._save(history)
            return history

    def clear(self):
        self._save([])
