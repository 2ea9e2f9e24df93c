"""Key-value storage used for outcome history.

Services receive a store instead of reaching for a global, so tests can use
:class:`InMemoryStore` while the server persists to a JSON file.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from threading import Lock
from typing import Any, Protocol

from mcq_app.core.quiz_exporter import write_json_atomic


class KeyValueStore(Protocol):
    """Minimal get/set interface over JSON-serialisable values."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class InMemoryStore:
    """Process-local store; values are deep-copied on the way in and out."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)


class JsonFileStore:
    """Store backed by a single JSON object on disk."""

    def __init__(self, file_path: Path) -> None:
        self._path = file_path
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read_all().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._path.parent.mkdir(parents=True, exist_ok=True)
            write_json_atomic(self._path, data)

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        text = self._path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self._path} does not contain a JSON object.")
        return data
