# radar/utils/cache.py
# Purpose: TTL-bounded scan cache kept under one key of the async store.
# Read-modify-write on the cache map is not serialized: a lost write only
# costs one extra scan, and entries expire after CACHE_TTL anyway.
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from radar.errors import StorageError
from radar.settings import CACHE_MAX_ENTRIES, CACHE_TTL, STORAGE_KEYS
from radar.utils.addr import cache_key
from radar.utils.store import KeyValueStore


@dataclass(frozen=True)
class CacheEntry:
    key: str
    data: Any
    timestamp: float

    def is_valid(self, now: float, ttl: float = CACHE_TTL) -> bool:
        return now - self.timestamp < ttl


class CacheManager:
    def __init__(self, store: KeyValueStore, ttl: float = CACHE_TTL, max_entries: int = CACHE_MAX_ENTRIES,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock

    async def _load(self) -> Dict[str, dict]:
        try:
            raw = await self.store.get(STORAGE_KEYS["cache"])
        except StorageError as e:
            print(f"[CACHE] load FAIL -> {e}")
            return {}
        return raw if isinstance(raw, dict) else {}

    async def _save(self, entries: Dict[str, dict]) -> bool:
        try:
            await self.store.set(STORAGE_KEYS["cache"], entries)
            return True
        except StorageError as e:
            print(f"[CACHE] save FAIL -> {e}")
            return False

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Entry for `key`, or None when absent or stale (expiry is checked here, not swept)."""
        raw = (await self._load()).get(key)
        if not isinstance(raw, dict) or "timestamp" not in raw:
            return None
        entry = CacheEntry(key=key, data=raw.get("data"), timestamp=float(raw["timestamp"]))
        if not entry.is_valid(self._clock(), self.ttl):
            return None
        return entry

    async def set(self, key: str, data: Any) -> bool:
        entries = await self._load()
        entries[key] = {"data": data, "timestamp": self._clock()}
        if len(entries) > self.max_entries:
            entries = self._pruned(entries)
        return await self._save(entries)

    async def remove(self, key: str) -> bool:
        entries = await self._load()
        if entries.pop(key, None) is None:
            return True
        return await self._save(entries)

    def _pruned(self, entries: Dict[str, dict]) -> Dict[str, dict]:
        now = self._clock()
        fresh = [(k, e) for k, e in entries.items()
                 if isinstance(e, dict) and now - float(e.get("timestamp", 0)) < self.ttl]
        fresh.sort(key=lambda kv: float(kv[1]["timestamp"]), reverse=True)
        kept = dict(fresh[: self.max_entries])
        dropped = len(entries) - len(kept)
        if dropped:
            print(f"[CACHE] cleanup -> dropped={dropped} kept={len(kept)}")
        return kept

    async def cleanup(self) -> int:
        """Drop expired entries and trim to the cap, newest first. Returns how many were removed."""
        entries = await self._load()
        kept = self._pruned(entries)
        if len(kept) != len(entries):
            await self._save(kept)
        return len(entries) - len(kept)

    async def get_token(self, address: str, chain: str) -> Optional[Any]:
        entry = await self.get(cache_key(address, chain))
        return entry.data if entry else None

    async def set_token(self, address: str, chain: str, record: Any) -> bool:
        return await self.set(cache_key(address, chain), record)

    async def remove_token(self, address: str, chain: str) -> bool:
        return await self.remove(cache_key(address, chain))

    async def clear_all(self) -> bool:
        print("[CACHE] clear_all")
        return await self._save({})

    async def size(self) -> int:
        return len(await self._load())
