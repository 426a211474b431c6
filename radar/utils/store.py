# radar/utils/store.py
# Purpose: Async key-value persistence. Values must be JSON-serializable.
from __future__ import annotations

import asyncio
import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from radar.errors import StorageError


class KeyValueStore:
    """Capability interface: get / set / remove. Implementations raise StorageError on failure."""

    async def get(self, key: str) -> Any:
        raise NotImplementedError

    async def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    async def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """In-process store. Copies on the way in and out so callers never share mutable state."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> Any:
        await asyncio.sleep(0)
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        await asyncio.sleep(0)
        try:
            # reject what a real store could not persist
            json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for {key!r} is not JSON-serializable: {e}") from e
        self._data[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        await asyncio.sleep(0)
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Whole-store JSON file. Disk I/O runs in a worker thread; writes go through a temp file."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read store {self.path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, Any]):
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write store {self.path}: {e}") from e

    async def get(self, key: str) -> Any:
        data = await asyncio.to_thread(self._read_all)
        return data.get(key)

    async def set(self, key: str, value: Any) -> None:
        # the file holds every key, so a write is itself read-modify-write
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            data[key] = value
            await asyncio.to_thread(self._write_all, data)

    async def remove(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read_all)
            if key in data:
                del data[key]
                await asyncio.to_thread(self._write_all, data)


def open_store(path: Optional[str]) -> KeyValueStore:
    if path:
        print(f"[STORE] JSON file store -> {path}")
        return JsonFileStore(path)
    print("[STORE] In-memory store (set RADAR_STORE_PATH to persist)")
    return MemoryStore()
