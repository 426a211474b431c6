import asyncio

import pytest

from radar.core.messages import MessageRouter
from radar.page.host import LocalMessageClient, MessageClient, StaticPageHost, TextElement, is_domain_allowed
from radar.page.scanner import Badge, PageScanner
from radar.settings import DEFAULT_SETTINGS
from radar.utils.format import BADGE_COLORS

from conftest import EVM_ADDR, SOL_ADDR


def addr(i):
    return "0x" + f"{i:02x}" * 20


class RecordingClient(MessageClient):
    """Background stand-in: answers settings/watchlist, counts scans and their concurrency."""

    def __init__(self, settings=None, watchlist=None, delay=0.01, fail=False):
        self.settings = {**DEFAULT_SETTINGS, **(settings or {})}
        self.watchlist = list(watchlist or [])
        self.delay = delay
        self.fail = fail
        self.scans = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, message):
        kind = message["type"]
        if kind == "SETTINGS_GET":
            return {"success": True, "settings": self.settings}
        if kind == "WATCHLIST_GET":
            return {"success": True, "items": self.watchlist}
        if kind == "SCAN_TOKEN":
            self.scans.append(message["payload"]["address"])
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                await asyncio.sleep(self.delay)
            finally:
                self.in_flight -= 1
            if self.fail:
                return {"success": False, "error": "Failed to fetch token data"}
            return {"success": True, "data": {"score": 85, "risk_level": "safe"}}
        return {"success": False, "error": "Unknown message type"}


def make_scanner(host, client, **kw):
    opts = dict(batch_delay=0.01, mutation_window=0.02, scroll_window=0.02, initial_delay=0)
    opts.update(kw)
    return PageScanner(host, client, **opts)


def counting(fn):
    calls = []

    def wrapper(*args, **kwargs):
        calls.append(args)
        return fn(*args, **kwargs)

    wrapper.calls = calls
    return wrapper


@pytest.mark.asyncio
async def test_one_request_per_address_across_the_page():
    elements = [TextElement(f"CA {EVM_ADDR} #{i}") for i in range(5)]
    client = RecordingClient()
    scanner = make_scanner(StaticPageHost("x.com", elements), client)
    assert await scanner.initialize()
    await scanner.wait_idle()

    assert client.scans == [EVM_ADDR]
    for el in elements:
        badge = el.badges[EVM_ADDR]
        assert badge.state == "loaded"
        assert badge.score == 85


@pytest.mark.asyncio
async def test_requests_go_out_in_batches_of_three():
    text = " ".join(addr(i) for i in range(7))
    client = RecordingClient(delay=0.02)
    scanner = make_scanner(StaticPageHost("x.com", [TextElement(text)]), client)
    await scanner.initialize()
    await scanner.wait_idle()
    assert len(client.scans) == 7
    assert client.max_in_flight == 3


@pytest.mark.asyncio
async def test_second_pass_uses_the_local_cache():
    el = TextElement(EVM_ADDR)
    client = RecordingClient()
    host = StaticPageHost("x.com", [el])
    scanner = make_scanner(host, client)
    await scanner.initialize()
    await scanner.wait_idle()

    other = TextElement(f"again {EVM_ADDR}")
    host.elements.append(other)
    scanner.scan_page()
    await scanner.wait_idle()
    assert client.scans == [EVM_ADDR]
    assert other.badges[EVM_ADDR].state == "loaded"
    # no pending flash for a cached address
    assert [b.state for b in other.history] == ["loaded"]


@pytest.mark.asyncio
async def test_removed_element_drops_the_late_result():
    el = TextElement(EVM_ADDR)
    host = StaticPageHost("x.com", [el])
    client = RecordingClient(delay=0.05)
    scanner = make_scanner(host, client)
    await scanner.initialize()
    await asyncio.sleep(0.02)
    assert el.badges[EVM_ADDR].state == "loading"

    host.remove(el)
    await scanner.wait_idle()
    assert el.badges[EVM_ADDR].state == "loading"
    assert scanner.address_cache[f"1:{EVM_ADDR}"].state == "loaded"


@pytest.mark.asyncio
async def test_failed_scan_shows_error_badge():
    el = TextElement(EVM_ADDR)
    scanner = make_scanner(StaticPageHost("x.com", [el]), RecordingClient(fail=True))
    await scanner.initialize()
    await scanner.wait_idle()
    badge = el.badges[EVM_ADDR]
    assert badge.state == "error"
    assert badge.color == BADGE_COLORS["error"]
    assert badge.title == "Error: Failed to fetch token data"
    assert not scanner.pending


@pytest.mark.asyncio
async def test_disallowed_domain_stays_idle():
    client = RecordingClient()
    scanner = make_scanner(StaticPageHost("example.com", [TextElement(EVM_ADDR)]), client)
    assert not await scanner.initialize()
    assert not scanner.active
    await scanner.wait_idle()
    assert client.scans == []


@pytest.mark.asyncio
async def test_auto_scan_off_means_no_initial_scan():
    client = RecordingClient(settings={"auto_scan": False})
    scanner = make_scanner(StaticPageHost("x.com", [TextElement(EVM_ADDR)]), client)
    assert await scanner.initialize()
    await scanner.wait_idle()
    assert client.scans == []


@pytest.mark.parametrize(
    "host,allowed,expected",
    [
        ("x.com", ["x.com"], True),
        ("www.x.com", ["x.com"], True),
        ("mobile.twitter.com", ["twitter.com"], True),
        ("x.com", ["www.x.com"], True),
        ("evilx.com", ["x.com"], False),
        ("x.com.evil.io", ["x.com"], False),
        ("twitter.com", [], True),
        ("example.com", None, False),
    ],
)
def test_domain_matching(host, allowed, expected):
    assert is_domain_allowed(host, allowed) is expected


@pytest.mark.asyncio
async def test_mutations_are_debounced_into_one_flush():
    host = StaticPageHost("x.com")
    client = RecordingClient()
    scanner = make_scanner(host, client)
    await scanner.initialize()
    await scanner.wait_idle()

    scanner.mutations.flush = counting(scanner.mutations.flush)
    for i in range(3):
        host.append(TextElement(addr(i)))
    await scanner.wait_idle()

    assert len(scanner.mutations.flush.calls) == 1
    assert sorted(client.scans) == [addr(i) for i in range(3)]


@pytest.mark.asyncio
async def test_nested_nodes_are_walked():
    host = StaticPageHost("x.com")
    client = RecordingClient()
    scanner = make_scanner(host, client)
    await scanner.initialize()
    await scanner.wait_idle()

    inner = TextElement(f"ca: {SOL_ADDR}")
    host.append(TextElement("thread", children=[inner]))
    await scanner.wait_idle()
    assert client.scans == [SOL_ADDR]
    assert inner.badges[SOL_ADDR].state == "loaded"


@pytest.mark.asyncio
async def test_mutation_overflow_falls_back_to_full_scan():
    host = StaticPageHost("x.com")
    client = RecordingClient()
    scanner = make_scanner(host, client, buffer_size=2)
    await scanner.initialize()
    await scanner.wait_idle()

    scanner.scan_page = counting(scanner.scan_page)
    host.append(*(TextElement(addr(i)) for i in range(3)))
    await scanner.wait_idle()

    assert len(scanner.scan_page.calls) == 1
    assert len(client.scans) == 3
    assert not scanner.mutations.overflowed


@pytest.mark.asyncio
async def test_scroll_triggers_a_rescan():
    host = StaticPageHost("x.com")
    client = RecordingClient()
    scanner = make_scanner(host, client)
    await scanner.initialize()
    await scanner.wait_idle()

    # lands without a mutation event (e.g. virtualized list)
    host.elements.append(TextElement(EVM_ADDR))
    host.scroll()
    host.scroll()
    await scanner.wait_idle()
    assert client.scans == [EVM_ADDR]


@pytest.mark.asyncio
async def test_rescan_page_message_clears_everything():
    el = TextElement(EVM_ADDR)
    client = RecordingClient()
    scanner = make_scanner(StaticPageHost("x.com", [el]), client)
    await scanner.initialize()
    await scanner.wait_idle()

    await scanner.handle_message({"type": "RESCAN_PAGE"})
    await scanner.wait_idle()
    assert client.scans == [EVM_ADDR, EVM_ADDR]


@pytest.mark.asyncio
async def test_watchlist_updated_message_reloads_keys():
    client = RecordingClient()
    scanner = make_scanner(StaticPageHost("x.com"), client)
    await scanner.initialize()
    assert not scanner.is_in_watchlist(EVM_ADDR, "1")

    client.watchlist = [{"address": EVM_ADDR.upper().replace("0X", "0x"), "chain": "1"}]
    await scanner.handle_message({"type": "WATCHLIST_UPDATED"})
    assert scanner.is_in_watchlist(EVM_ADDR, "1")
    await scanner.close()


@pytest.mark.asyncio
async def test_settings_updated_can_hide_badges():
    el = TextElement(EVM_ADDR)
    client = RecordingClient(settings={"show_badges": False})
    scanner = make_scanner(StaticPageHost("x.com", [el]), client)
    await scanner.initialize()
    await scanner.wait_idle()
    assert client.scans == []

    await scanner.handle_message({"type": "SETTINGS_UPDATED", "settings": {**client.settings, "show_badges": True}})
    await scanner.wait_idle()
    assert client.scans == [EVM_ADDR]


def test_badge_presentation():
    loaded = Badge("loaded", EVM_ADDR, "1", score=42, risk_level="danger")
    assert loaded.color == BADGE_COLORS["danger"]
    assert loaded.title == "Safety Score: 42/100"
    assert Badge("pending", EVM_ADDR, "1").title == "Scanning..."
    assert Badge.from_response(EVM_ADDR, "1", {"success": False}).message == "Scan failed"


@pytest.mark.asyncio
async def test_end_to_end_with_local_router(ctx, fake_http):
    el = TextElement(f"new gem {EVM_ADDR}")
    scanner = make_scanner(StaticPageHost("twitter.com", [el]), LocalMessageClient(MessageRouter(ctx)))
    await scanner.initialize()
    await scanner.wait_idle()
    badge = el.badges[EVM_ADDR]
    assert badge.state == "loaded"
    assert badge.score == 85
    assert badge.data["token_symbol"] == "SAFE"


async def settle(predicate, tries=200):
    for _ in range(tries):
        if predicate():
            return
        await asyncio.sleep(0.005)
    raise AssertionError("condition never held")


class GatedClient(RecordingClient):
    """Each scan blocks on its own gate and answers with the next score in line."""

    def __init__(self, scores):
        super().__init__()
        self.scores = list(scores)
        self.gates = []

    async def send(self, message):
        if message["type"] != "SCAN_TOKEN":
            return await super().send(message)
        self.scans.append(message["payload"]["address"])
        score = self.scores[len(self.gates)]
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        return {"success": True, "data": {"score": score, "risk_level": "safe"}}


@pytest.mark.asyncio
async def test_continuous_scrolling_scans_once_after_it_stops():
    host = StaticPageHost("x.com")
    scanner = make_scanner(host, RecordingClient(), scroll_window=0.1)
    await scanner.initialize()
    await scanner.wait_idle()

    scanner.scan_page = counting(scanner.scan_page)
    for _ in range(10):
        host.scroll()
        await asyncio.sleep(0.03)
    assert scanner.scan_page.calls == []
    await scanner.wait_idle()
    assert len(scanner.scan_page.calls) == 1


@pytest.mark.asyncio
async def test_rescan_mid_flight_drops_the_old_result():
    el = TextElement(EVM_ADDR)
    host = StaticPageHost("x.com", [el])
    client = GatedClient(scores=[10, 90])
    scanner = make_scanner(host, client)
    await scanner.initialize()
    await settle(lambda: len(client.gates) == 1)

    await scanner.handle_message({"type": "RESCAN_PAGE"})
    client.gates[0].set()
    await settle(lambda: len(client.gates) == 2)

    key = f"1:{EVM_ADDR}"
    assert key not in scanner.address_cache
    assert key in scanner.pending

    late = TextElement(f"late {EVM_ADDR}")
    host.elements.append(late)
    scanner.scan_page()
    assert late.badges[EVM_ADDR].state == "pending"

    client.gates[1].set()
    await scanner.wait_idle()
    assert el.badges[EVM_ADDR].score == 90
    assert late.badges[EVM_ADDR].score == 90
    assert scanner.address_cache[key].score == 90
    assert all(b.score != 10 for b in el.history + late.history)


class BrokenElement(TextElement):
    def set_badge(self, address, badge):
        if badge.state == "loaded":
            raise RuntimeError("node is gone")
        super().set_badge(address, badge)


@pytest.mark.asyncio
async def test_badge_failure_does_not_stall_the_queue():
    broken, fine = BrokenElement(addr(1)), TextElement(addr(2))
    client = RecordingClient()
    scanner = make_scanner(StaticPageHost("x.com", [broken, fine]), client, batch_size=1)
    await scanner.initialize()
    await scanner.wait_idle()

    assert client.scans == [addr(1), addr(2)]
    assert fine.badges[addr(2)].state == "loaded"
    assert not scanner.pending
    assert not scanner.queue
