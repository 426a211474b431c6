# radar/page/scanner.py
# Purpose: Find addresses in a live page, request scans, and keep their badges current.
#
# Badge lifecycle per (element, address): pending -> loading -> loaded | error.
# All state lives on one PageScanner; nothing is module-global.
from __future__ import annotations

import asyncio
import weakref
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, Set, Tuple

from radar.page.debounce import Debouncer
from radar.page.host import MessageClient, PageElement, PageHost, is_domain_allowed
from radar.settings import (
    DEFAULT_SETTINGS,
    INITIAL_SCAN_DELAY,
    MUTATION_BUFFER_SIZE,
    MUTATION_DEBOUNCE,
    SCAN_BATCH_DELAY,
    SCAN_BATCH_SIZE,
    SCROLL_DEBOUNCE,
)
from radar.utils.addr import cache_key
from radar.utils.extract import extract_contract_addresses
from radar.utils.format import BADGE_COLORS


@dataclass(frozen=True)
class Badge:
    state: str  # pending | loading | loaded | error
    address: str
    chain: str
    score: Optional[int] = None
    risk_level: Optional[str] = None
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    @property
    def color(self) -> str:
        if self.state == "loaded":
            return BADGE_COLORS.get(self.risk_level or "", BADGE_COLORS["error"])
        if self.state == "error":
            return BADGE_COLORS["error"]
        return BADGE_COLORS["loading"]

    @property
    def title(self) -> str:
        if self.state == "loaded":
            return f"Safety Score: {self.score}/100"
        if self.state == "error":
            return f"Error: {self.message}"
        return "Scanning..."

    @classmethod
    def from_response(cls, address: str, chain: str, response: Dict[str, Any]) -> "Badge":
        data = response.get("data") if isinstance(response, dict) else None
        if isinstance(response, dict) and response.get("success") and isinstance(data, dict):
            return cls("loaded", address, chain, score=data.get("score"), risk_level=data.get("risk_level"),
                       data=data)
        err = response.get("error") if isinstance(response, dict) else None
        return cls("error", address, chain, message=err or "Scan failed")


@dataclass
class ScanJob:
    key: str
    address: str
    chain: str
    element: PageElement
    generation: int = 0


class PageScanner:
    def __init__(self, host: PageHost, client: MessageClient, batch_size: int = SCAN_BATCH_SIZE,
                 batch_delay: float = SCAN_BATCH_DELAY, mutation_window: float = MUTATION_DEBOUNCE,
                 scroll_window: float = SCROLL_DEBOUNCE, initial_delay: float = INITIAL_SCAN_DELAY,
                 buffer_size: int = MUTATION_BUFFER_SIZE):
        self.host = host
        self.client = client
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.initial_delay = initial_delay

        self.settings: Dict[str, Any] = {}
        self.initialized = False
        # element -> keys already handled inside it; entries vanish with the element
        self.processed: "weakref.WeakKeyDictionary[PageElement, Set[str]]" = weakref.WeakKeyDictionary()
        self.address_cache: Dict[str, Badge] = {}
        self.pending: Set[str] = set()
        self.waiters: Dict[str, List[Tuple[PageElement, str]]] = {}
        self.queue: Deque[ScanJob] = deque()
        self.watchlist_keys: Set[str] = set()
        self.requests_sent = 0
        # bumped by reset(); results from older jobs are discarded
        self.generation = 0

        self._queue_task: Optional[asyncio.Task] = None
        self._initial_task: Optional[asyncio.Task] = None
        self.mutations = Debouncer(self._flush_mutations, mutation_window, maxlen=buffer_size,
                                   on_overflow=self._overflow_scan)
        self.scroll = Debouncer(self._flush_scroll, scroll_window, maxlen=1)

    # --- setup
    @property
    def active(self) -> bool:
        return bool(self.initialized and self.settings.get("auto_scan") and self.settings.get("show_badges"))

    async def _load_settings(self, retries: int = 3) -> Dict[str, Any]:
        for attempt in range(retries):
            res = await self.client.send({"type": "SETTINGS_GET"})
            if res.get("success") and isinstance(res.get("settings"), dict):
                return res["settings"]
            if attempt < retries - 1:
                await asyncio.sleep(0.5)
        print("[PAGE] settings unavailable; using defaults")
        return dict(DEFAULT_SETTINGS)

    async def initialize(self) -> bool:
        if self.initialized:
            return True
        self.settings = await self._load_settings()
        if not is_domain_allowed(self.host.hostname, self.settings.get("allowed_websites")):
            print(f"[PAGE] domain not allowed -> {self.host.hostname}")
            return False
        await self.load_watchlist()
        self.initialized = True
        self.host.observe_mutations(self.on_mutation)
        self.host.observe_scroll(self.on_scroll)
        self._initial_task = asyncio.create_task(self._initial_scan())
        print(f"[PAGE] initialized on {self.host.hostname} auto_scan={self.settings.get('auto_scan')}")
        return True

    async def _initial_scan(self):
        await asyncio.sleep(self.initial_delay)
        if self.active:
            self.scan_page()

    async def load_watchlist(self):
        res = await self.client.send({"type": "WATCHLIST_GET"})
        self.watchlist_keys.clear()
        if res.get("success"):
            for item in res.get("items") or []:
                if item.get("address") and item.get("chain"):
                    self.watchlist_keys.add(cache_key(item["address"], item["chain"]))

    def is_in_watchlist(self, address: str, chain: str) -> bool:
        return cache_key(address, chain) in self.watchlist_keys

    # --- discovery
    def scan_page(self) -> int:
        """Full pass over the document. Returns how many elements were looked at."""
        if not self.settings.get("show_badges"):
            return 0
        elements = list(self.host.text_elements())
        print(f"[PAGE] scan_page -> {len(elements)} element(s)")
        for el in elements:
            self.process_element(el)
        return len(elements)

    def process_element(self, element: PageElement):
        if not element.connected:
            return
        found = extract_contract_addresses(element.text)
        if not found:
            return
        seen = self.processed.setdefault(element, set())
        for hit in found:
            address, chain = hit["address"], hit["chain"]
            key = cache_key(address, chain)
            if key in seen:
                continue
            seen.add(key)

            cached = self.address_cache.get(key)
            if cached is not None:
                element.set_badge(address, cached)
                continue
            element.set_badge(address, Badge("pending", address, chain))
            if key in self.pending:
                # already in flight elsewhere on the page: adopt that result
                self.waiters.setdefault(key, []).append((element, address))
                continue
            self.pending.add(key)
            self.queue.append(ScanJob(key, address, chain, element, self.generation))
        self._ensure_queue()

    # --- request queue
    def _ensure_queue(self):
        if self.queue and (self._queue_task is None or self._queue_task.done()):
            self._queue_task = asyncio.create_task(self._process_queue())

    async def _process_queue(self):
        try:
            while self.queue:
                batch = [self.queue.popleft() for _ in range(min(self.batch_size, len(self.queue)))]
                await asyncio.gather(*(self._run_job(job) for job in batch))
                if self.queue:
                    await asyncio.sleep(self.batch_delay)
        finally:
            # only non-empty when the loop was cancelled
            for job in self.queue:
                if self._current(job):
                    self.pending.discard(job.key)
            self.queue.clear()

    def _apply(self, element: PageElement, address: str, badge: Badge):
        if not element.connected:
            # element left the page while we waited; the result is simply dropped
            return
        element.set_badge(address, badge)

    def _current(self, job: ScanJob) -> bool:
        return job.generation == self.generation

    async def _run_job(self, job: ScanJob):
        try:
            await self._scan(job)
        except Exception as e:
            print(f"[PAGE] badge update error {job.key} -> {e!r}")
        finally:
            if self._current(job):
                self.pending.discard(job.key)
                if job.key not in self.address_cache:
                    # never resolved: let the next pass pick these occurrences up again
                    stuck = [job.element] + [el for el, _ in self.waiters.pop(job.key, [])]
                    for el in stuck:
                        self.processed.get(el, set()).discard(job.key)

    async def _scan(self, job: ScanJob):
        loading = Badge("loading", job.address, job.chain)
        self._apply(job.element, job.address, loading)
        for el, addr in self.waiters.get(job.key, []):
            self._apply(el, addr, loading)
        try:
            self.requests_sent += 1
            res = await self.client.send({"type": "SCAN_TOKEN",
                                          "payload": {"address": job.address, "chain": job.chain}})
            badge = Badge.from_response(job.address, job.chain, res)
        except Exception as e:
            print(f"[PAGE] scan error {job.key} -> {e!r}")
            badge = Badge("error", job.address, job.chain, message=str(e) or "Scan failed")
        if not self._current(job):
            print(f"[PAGE] stale result dropped -> {job.key}")
            return
        self.address_cache[job.key] = badge
        self.pending.discard(job.key)
        waiting = self.waiters.pop(job.key, [])
        self._apply(job.element, job.address, badge)
        for el, addr in waiting:
            self._apply(el, addr, badge)

    async def wait_idle(self):
        """Until queued work, debounced events and the initial scan have all settled."""
        while True:
            tasks = [t for t in (self._initial_task, self._queue_task, self.mutations._task, self.scroll._task)
                     if t is not None and not t.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    # --- host events
    def on_mutation(self, added: List[Any]):
        if self.active:
            self.mutations.push(list(added))

    def on_scroll(self):
        if self.active:
            self.scroll.push([None])

    async def _flush_mutations(self, nodes: List[Any]):
        if not self.active:
            return
        unique = list(dict.fromkeys(nodes))
        for node in unique:
            for el in self.host.text_elements(node):
                self.process_element(el)

    async def _overflow_scan(self):
        print("[PAGE] mutation buffer overflow -> full scan")
        if self.active:
            self.scan_page()

    async def _flush_scroll(self, _events):
        if self.active:
            self.scan_page()

    # --- messages from the background
    def reset(self):
        self.generation += 1
        self.processed = weakref.WeakKeyDictionary()
        self.address_cache.clear()
        self.pending.clear()
        self.waiters.clear()
        self.queue.clear()

    async def handle_message(self, message: Dict[str, Any]):
        kind = message.get("type")
        if kind == "SETTINGS_UPDATED":
            self.settings = dict(message.get("settings") or self.settings)
            if self.active:
                self.scan_page()
        elif kind == "RESCAN_PAGE":
            self.reset()
            await self.load_watchlist()
            self.scan_page()
        elif kind == "WATCHLIST_UPDATED":
            await self.load_watchlist()

    async def close(self):
        self.mutations.cancel()
        self.scroll.cancel()
        for t in (self._initial_task, self._queue_task):
            if t is not None and not t.done():
                t.cancel()
