"""
Durable key-value storage backed by a single JSON file.

- The whole document is rewritten on every set(), atomically (temp file + rename),
  so a crash mid-write leaves the previous version intact.
- A missing file reads as empty; a corrupt one raises StorageError so the
  caller decides how to degrade.
- The tracked usernames live under USERNAMES_KEY as a JSON array of strings.
"""

from __future__ import annotations
import json
import os
import threading
from typing import Any, Dict

USERNAMES_KEY = "lastfm_usernames"

class StorageError(Exception): ...

class JsonFileStorage:
    def __init__(self, path: str):
        self.path = os.path.expanduser(path)
        self._lock = threading.Lock()

    # -------- persistence --------
    def _read(self) -> Dict[str, Any]:
        if not os.path.isfile(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"unexpected document type in {self.path}: {type(data).__name__}")
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        tmp = f"{self.path}.tmp"
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f"cannot write {self.path}: {e}") from e

    # -------- public API --------
    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            try:
                data = self._read()
            except StorageError:
                # Unreadable document: overwrite it rather than fail every write.
                data = {}
            data[key] = value
            self._write(data)

