# radar/core/monitor.py
# Purpose: Re-scan pinned tokens on a timer and alert on material risk changes.
from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from radar.core.analyze import scan_token
from radar.core.changes import detect_changes
from radar.core.context import RadarContext
from radar.core.storage import baseline_snapshot
from radar.settings import (
    WATCHLIST_FIRST_POLL_DELAY,
    WATCHLIST_ITEM_DELAY,
    WATCHLIST_POLL_INTERVAL,
    AlertThresholds,
)
from radar.utils.format import truncate_address

ALERT_TYPES = ("critical", "warning")


class WatchlistMonitor:
    def __init__(self, ctx: RadarContext, item_delay: float = WATCHLIST_ITEM_DELAY,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.ctx = ctx
        self.item_delay = item_delay
        self._sleep = sleep
        self.running = False
        self.last_run: Optional[float] = None
        self.last_summary: Dict[str, int] = {}

    async def poll_once(self) -> Dict[str, int]:
        """One cycle over the watchlist. A cycle already in flight makes this a no-op."""
        if self.running:
            print("[MONITOR] cycle already running; skipped")
            return {"skipped": 1}
        self.running = True
        try:
            return await self._cycle()
        finally:
            self.running = False
            self.last_run = time.time()

    async def _cycle(self) -> Dict[str, int]:
        # settings are re-read every cycle, never cached across cycles
        settings = await self.ctx.settings.get_all()
        summary = {"scanned": 0, "failed": 0, "adopted": 0, "changed": 0, "alerts": 0}
        if not settings.get("watchlist_polling"):
            print("[MONITOR] watchlist polling disabled")
            return summary

        items = await self.ctx.watchlist.get_all()
        if not items:
            print("[MONITOR] watchlist empty")
            return summary

        thresholds = AlertThresholds.model_validate(settings.get("alert_thresholds") or {})
        rolling = settings.get("watchlist_baseline_mode") == "rolling"
        print(f"[MONITOR] cycle start items={len(items)} notifications={settings.get('notifications')} "
              f"baseline={'rolling' if rolling else 'fixed'}")

        for idx, item in enumerate(items):
            if idx:
                await self._sleep(self.item_delay)
            try:
                await self._poll_item(item, settings, thresholds, rolling, summary)
            except Exception as e:
                # one bad item never stops the rest of the cycle
                summary["failed"] += 1
                print(f"[MONITOR] item FAIL {item.get('chain')}:{item.get('address')} -> {e!r}")

        self.last_summary = summary
        print(f"[MONITOR] cycle done -> {summary}")
        return summary

    async def _poll_item(self, item: Dict[str, Any], settings: Dict[str, Any], thresholds: AlertThresholds,
                         rolling: bool, summary: Dict[str, int]):
        address, chain = item.get("address"), item.get("chain")
        result = await scan_token(self.ctx, address, chain, use_cache=False)
        if not result.get("success"):
            summary["failed"] += 1
            print(f"[MONITOR] scan failed {chain}:{address} -> {result.get('error')}")
            return
        summary["scanned"] += 1
        record = result["data"]

        baseline = item.get("baseline")
        if not baseline:
            await self.ctx.watchlist.update(address, chain, {**record, "baseline": baseline_snapshot(record)})
            summary["adopted"] += 1
            print(f"[MONITOR] baseline adopted {chain}:{address} score={record.get('score')}")
            return

        changes = detect_changes(baseline, record, thresholds)
        updates: Dict[str, Any] = dict(record)
        if changes:
            updates["last_changes"] = changes
            summary["changed"] += 1
        if rolling:
            updates["baseline"] = baseline_snapshot(record)
        await self.ctx.watchlist.update(address, chain, updates)

        if not changes:
            return
        print(f"[MONITOR] {len(changes)} change(s) {chain}:{address} -> {[c['field'] for c in changes]}")
        if not settings.get("notifications"):
            print("[MONITOR] notifications disabled; no alerts sent")
            return
        label = item.get("token_symbol") or record.get("token_symbol") or truncate_address(address)
        summary["alerts"] += await self._alert(label, changes)

    async def _alert(self, label: str, changes: List[Dict[str, Any]]) -> int:
        sent = 0
        for change in changes:
            if change["type"] not in ALERT_TYPES:
                continue
            critical = change["type"] == "critical"
            title = f"{'Alert' if critical else 'Warning'}: {label}"
            try:
                ok = await self.ctx.notifier.notify(title, change["message"], priority=2 if critical else 1)
            except Exception as e:
                print(f"[MONITOR] notify FAIL -> {e!r}")
                continue
            sent += 1 if ok else 0
        return sent

    def status(self) -> Dict[str, Any]:
        return {"running": self.running, "last_run": self.last_run, "last_summary": self.last_summary}


class RecurringTimer:
    """Runs `fn` every `interval` seconds after `first_delay`. Runs never overlap (the next
    wait starts once the previous run returns)."""

    def __init__(self, fn: Callable[[], Awaitable[Any]], interval: float = WATCHLIST_POLL_INTERVAL,
                 first_delay: float = WATCHLIST_FIRST_POLL_DELAY, name: str = "watchlist-poll"):
        self.fn = fn
        self.interval = interval
        self.first_delay = first_delay
        self.name = name
        self.next_run: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _loop(self):
        delay = self.first_delay
        while True:
            self.next_run = time.time() + delay
            await asyncio.sleep(delay)
            try:
                await self.fn()
            except Exception as e:
                print(f"[TIMER] {self.name} run FAIL -> {e!r}")
            delay = self.interval

    def start(self):
        if self.active:
            return
        print(f"[TIMER] {self.name} every {self.interval:.0f}s (first in {self.first_delay:.0f}s)")
        self._task = asyncio.create_task(self._loop(), name=self.name)

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.next_run = None
        print(f"[TIMER] {self.name} stopped")

    def status(self) -> Dict[str, Any]:
        return {"name": self.name, "active": self.active, "interval": self.interval, "next_run": self.next_run}
