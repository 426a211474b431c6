# radar/core/storage.py
# Purpose: Watchlist + user settings on top of the async store.
# Every read-modify-write of a collection happens under that manager's lock,
# so a poll cycle can never overwrite a user's add/remove (single writer).
from __future__ import annotations

import asyncio
import copy
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

import pydantic

from radar.errors import StorageError, ValidationError, WatchlistError
from radar.settings import DEFAULT_SETTINGS, STORAGE_KEYS, WATCHLIST_MAX_ITEMS, RadarSettings
from radar.utils.addr import normalize_address
from radar.utils.store import KeyValueStore

BASELINE_FIELDS = ("score", "liquidity", "holder_count", "is_honeypot", "top_holder_percent")


def baseline_snapshot(record: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """The fields change detection compares against. None when the record was never scored."""
    if record.get("score") is None:
        return None
    return {k: record.get(k) for k in BASELINE_FIELDS}


def _same_token(item: Mapping, address: str, chain: str) -> bool:
    return (item.get("chain") == chain
            and normalize_address(item.get("address") or "", chain) == normalize_address(address, chain))


class WatchlistManager:
    def __init__(self, store: KeyValueStore, max_items: int = WATCHLIST_MAX_ITEMS,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.max_items = max_items
        self._clock = clock
        self._lock = asyncio.Lock()

    async def _load(self) -> List[Dict[str, Any]]:
        try:
            raw = await self.store.get(STORAGE_KEYS["watchlist"])
        except StorageError as e:
            print(f"[WATCHLIST] load FAIL -> {e}")
            return []
        return [i for i in raw if isinstance(i, dict)] if isinstance(raw, list) else []

    async def _save(self, items: List[Dict[str, Any]]) -> bool:
        try:
            await self.store.set(STORAGE_KEYS["watchlist"], items)
            return True
        except StorageError as e:
            print(f"[WATCHLIST] save FAIL -> {e}")
            return False

    async def get_all(self) -> List[Dict[str, Any]]:
        return await self._load()

    async def has(self, address: str, chain: str) -> bool:
        return any(_same_token(i, address, chain) for i in await self._load())

    async def add(self, token: Mapping[str, Any]) -> bool:
        """Pin a token. Raises WatchlistError on duplicates or when the list is full."""
        address, chain = token.get("address"), token.get("chain")
        if not address or not chain:
            raise ValidationError("Token needs an address and a chain.")
        async with self._lock:
            items = await self._load()
            if any(_same_token(i, address, chain) for i in items):
                print(f"[WATCHLIST] add skipped (duplicate) -> {chain}:{address}")
                raise WatchlistError("Token already in watchlist")
            if len(items) >= self.max_items:
                print(f"[WATCHLIST] add refused (full, {len(items)} items)")
                raise WatchlistError(f"Watchlist is full ({self.max_items} items max)")

            item = copy.deepcopy(dict(token))
            item["added_at"] = self._clock()
            item["baseline"] = baseline_snapshot(token)
            items.append(item)
            ok = await self._save(items)
        print(f"[WATCHLIST] add -> {chain}:{address} ok={ok} size={len(items)}")
        return ok

    async def remove(self, address: str, chain: str) -> bool:
        async with self._lock:
            items = await self._load()
            kept = [i for i in items if not _same_token(i, address, chain)]
            if len(kept) == len(items):
                return False
            ok = await self._save(kept)
        print(f"[WATCHLIST] remove -> {chain}:{address} ok={ok}")
        return ok

    async def update(self, address: str, chain: str, updates: Mapping[str, Any]) -> bool:
        """Shallow-merge `updates` into the item. The baseline only changes if `updates` carries one."""
        async with self._lock:
            items = await self._load()
            for idx, item in enumerate(items):
                if _same_token(item, address, chain):
                    merged = {**item, **copy.deepcopy(dict(updates))}
                    # the stored identity wins over whatever the record says
                    merged["address"], merged["chain"] = item["address"], item["chain"]
                    merged["added_at"] = item.get("added_at")
                    merged["last_updated"] = self._clock()
                    items[idx] = merged
                    return await self._save(items)
        return False


class SettingsManager:
    def __init__(self, store: KeyValueStore):
        self.store = store
        self._lock = asyncio.Lock()

    async def _stored(self) -> Dict[str, Any]:
        try:
            raw = await self.store.get(STORAGE_KEYS["settings"])
        except StorageError as e:
            print(f"[SETTINGS] load FAIL -> {e}")
            return {}
        return raw if isinstance(raw, dict) else {}

    @staticmethod
    def _merge(base: Mapping[str, Any], updates: Mapping[str, Any]) -> Dict[str, Any]:
        out = dict(base)
        for k, v in updates.items():
            if isinstance(v, Mapping) and isinstance(out.get(k), Mapping):
                out[k] = {**out[k], **v}
            else:
                out[k] = v
        return out

    async def get_all(self) -> Dict[str, Any]:
        """Defaults merged with whatever is persisted. A corrupt record reads as defaults."""
        stored = await self._stored()
        try:
            return RadarSettings.model_validate(self._merge(DEFAULT_SETTINGS, stored)).model_dump()
        except pydantic.ValidationError as e:
            print(f"[SETTINGS] stored settings invalid, using defaults -> {e.error_count()} error(s)")
            return copy.deepcopy(DEFAULT_SETTINGS)

    async def get(self, key: str) -> Any:
        return (await self.get_all()).get(key)

    async def model(self) -> RadarSettings:
        return RadarSettings.model_validate(await self.get_all())

    async def update(self, updates: Mapping[str, Any]) -> Dict[str, Any]:
        if not isinstance(updates, Mapping):
            raise ValidationError("Settings updates must be an object.")
        unknown = sorted(set(updates) - set(RadarSettings.model_fields))
        if unknown:
            raise ValidationError(f"Unknown setting(s): {', '.join(unknown)}")
        async with self._lock:
            current = await self.get_all()
            try:
                validated = RadarSettings.model_validate(self._merge(current, updates)).model_dump()
            except pydantic.ValidationError as e:
                raise ValidationError(f"Invalid settings: {e.errors()[0].get('msg', 'bad value')}") from e
            await self.store.set(STORAGE_KEYS["settings"], validated)
        print(f"[SETTINGS] update -> {sorted(updates)}")
        return validated

    async def reset(self) -> Dict[str, Any]:
        async with self._lock:
            await self.store.set(STORAGE_KEYS["settings"], copy.deepcopy(DEFAULT_SETTINGS))
        print("[SETTINGS] reset to defaults")
        return copy.deepcopy(DEFAULT_SETTINGS)
