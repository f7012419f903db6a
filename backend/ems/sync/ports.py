from __future__ import annotations
"""Key-value persistence port used by the offline queue.

Values are JSON-compatible structures. ``JsonFileKeyValueStore`` rewrites its
file through a temporary sibling and ``os.replace`` so a crash mid-write leaves
either the old or the new document, never a torn one.
"""
import copy
import json
import os
import tempfile
import threading
from typing import Any, Dict, List, Optional, Protocol


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...
    def set(self, key: str, value: Any) -> None: ...
    def list(self, prefix: str = '') -> List[str]: ...


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})
        self.writes = 0

    def get(self, key):
        return copy.deepcopy(self._data.get(key))

    def set(self, key, value):
        self._data[key] = copy.deepcopy(value)
        self.writes += 1

    def list(self, prefix=''):
        return sorted(k for k in self._data if k.startswith(prefix))


class JsonFileKeyValueStore:
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        try:
            with open(self.path, 'r', encoding='utf-8') as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key):
        with self._lock:
            return self._read().get(key)

    def set(self, key, value):
        with self._lock:
            data = self._read()
            data[key] = value
            directory = os.path.dirname(os.path.abspath(self.path))
            fd, tmp = tempfile.mkstemp(prefix='.kv-', suffix='.json', dir=directory)
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                    json.dump(data, fh, ensure_ascii=False)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise

    def list(self, prefix=''):
        with self._lock:
            return sorted(k for k in self._read() if k.startswith(prefix))


__all__ = ['KeyValueStore', 'MemoryKeyValueStore', 'JsonFileKeyValueStore']
