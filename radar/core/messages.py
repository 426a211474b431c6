# radar/core/messages.py
# Purpose: Request/response message protocol between the page side and the background.
# Every request gets exactly one response dict with a `success` key.
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from radar.core.analyze import normalize_target, scan_token
from radar.core.context import RadarContext
from radar.core.monitor import RecurringTimer, WatchlistMonitor
from radar.errors import RadarError
from radar.utils.extract import extract_contract_addresses


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ScanPayload(_Payload):
    address: str
    chain: Optional[str] = None
    use_cache: bool = Field(default=True, alias="useCache")


class TokenRef(_Payload):
    address: str
    chain: Optional[str] = None


class ScanMultiplePayload(_Payload):
    tokens: List[TokenRef] = Field(default_factory=list)


class WatchlistAddPayload(_Payload):
    token: Dict[str, Any]


class SettingsUpdatePayload(_Payload):
    updates: Dict[str, Any]


class ExtractPayload(_Payload):
    text: str = ""


class MessageRouter:
    """Dispatches {type, payload} messages. Holds the monitor/timer the message types poke at."""

    def __init__(self, ctx: RadarContext, monitor: Optional[WatchlistMonitor] = None,
                 timer: Optional[RecurringTimer] = None):
        self.ctx = ctx
        self.monitor = monitor or WatchlistMonitor(ctx)
        self.timer = timer
        self._background: Set[asyncio.Task] = set()
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], Awaitable[Dict[str, Any]]]] = {
            "SCAN_TOKEN": self._scan_token,
            "SCAN_MULTIPLE": self._scan_multiple,
            "GET_CACHED": self._get_cached,
            "WATCHLIST_ADD": self._watchlist_add,
            "WATCHLIST_REMOVE": self._watchlist_remove,
            "WATCHLIST_GET": self._watchlist_get,
            "WATCHLIST_CHECK": self._watchlist_check,
            "SETTINGS_GET": self._settings_get,
            "SETTINGS_UPDATE": self._settings_update,
            "SETTINGS_RESET": self._settings_reset,
            "CLEAR_CACHE": self._clear_cache,
            "EXTRACT_ADDRESSES": self._extract,
            "TEST_NOTIFICATION": self._test_notification,
            "TEST_WATCHLIST_POLL": self._test_poll,
            "GET_MONITOR_STATUS": self._monitor_status,
        }

    @property
    def message_types(self) -> List[str]:
        return sorted(self._handlers)

    async def handle(self, message: Any) -> Dict[str, Any]:
        if not isinstance(message, Mapping):
            return {"success": False, "error": "Message must be an object"}
        handler = self._handlers.get(message.get("type"))
        if handler is None:
            print(f"[MSG] unknown type -> {message.get('type')!r}")
            return {"success": False, "error": "Unknown message type"}
        payload = message.get("payload") or {}
        try:
            return await handler(payload)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            where = ".".join(str(p) for p in first.get("loc", ()))
            return {"success": False, "error": f"Invalid payload: {where} {first.get('msg', '')}".strip()}
        except RadarError as e:
            return {"success": False, "error": str(e)}
        except Exception as e:
            print(f"[MSG] {message.get('type')} handler ERROR -> {e!r}")
            return {"success": False, "error": str(e) or "Unknown error occurred"}

    # --- scanning
    async def _scan_token(self, payload):
        p = ScanPayload.model_validate(payload)
        return await scan_token(self.ctx, p.address, p.chain, use_cache=p.use_cache)

    async def _scan_multiple(self, payload):
        p = ScanMultiplePayload.model_validate(payload)
        results = []
        for token in p.tokens:
            res = await scan_token(self.ctx, token.address, token.chain)
            results.append({"address": token.address, "chain": token.chain, "result": res})
        return {"success": True, "results": results}

    async def _get_cached(self, payload):
        p = TokenRef.model_validate(payload)
        chain, address = normalize_target(p.chain, p.address)
        return {"success": True, "data": await self.ctx.cache.get_token(address, chain)}

    async def _extract(self, payload):
        p = ExtractPayload.model_validate(payload)
        return {"success": True, "addresses": extract_contract_addresses(p.text)}

    async def _clear_cache(self, payload):
        await self.ctx.cache.clear_all()
        return {"success": True}

    # --- watchlist
    async def _watchlist_add(self, payload):
        p = WatchlistAddPayload.model_validate(payload)
        chain, address = normalize_target(p.token.get("chain"), p.token.get("address") or "")
        ok = await self.ctx.watchlist.add({**p.token, "address": address, "chain": chain})
        return {"success": ok} if ok else {"success": False, "error": "Failed to save watchlist"}

    async def _watchlist_remove(self, payload):
        p = TokenRef.model_validate(payload)
        chain, address = normalize_target(p.chain, p.address)
        return {"success": await self.ctx.watchlist.remove(address, chain)}

    async def _watchlist_get(self, payload):
        return {"success": True, "items": await self.ctx.watchlist.get_all()}

    async def _watchlist_check(self, payload):
        p = TokenRef.model_validate(payload)
        chain, address = normalize_target(p.chain, p.address)
        return {"success": True, "exists": await self.ctx.watchlist.has(address, chain)}

    # --- settings
    async def _settings_get(self, payload):
        return {"success": True, "settings": await self.ctx.settings.get_all()}

    async def _settings_update(self, payload):
        p = SettingsUpdatePayload.model_validate(payload)
        return {"success": True, "settings": await self.ctx.settings.update(p.updates)}

    async def _settings_reset(self, payload):
        return {"success": True, "settings": await self.ctx.settings.reset()}

    # --- monitor
    async def _test_notification(self, payload):
        ok = await self.ctx.notifier.notify("Token Rug Radar Test",
                                            "If you see this, notifications are working!", priority=2)
        return {"success": ok} if ok else {"success": False, "error": "Notifier did not deliver"}

    async def _test_poll(self, payload):
        print("[MSG] manual watchlist poll triggered")
        task = asyncio.create_task(self.monitor.poll_once())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return {"success": True, "message": "Poll started"}

    async def _monitor_status(self, payload):
        return {
            "success": True,
            "monitor": self.monitor.status(),
            "timer": self.timer.status() if self.timer else None,
        }


async def handle_message(ctx: RadarContext, message: Any, router: Optional[MessageRouter] = None) -> Dict[str, Any]:
    return await (router or MessageRouter(ctx)).handle(message)
