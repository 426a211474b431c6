import asyncio

import pytest

from radar.core.monitor import RecurringTimer, WatchlistMonitor

from conftest import EVM_ADDR, dex_payload

PINNED = {
    "address": EVM_ADDR,
    "chain": "1",
    "token_symbol": "SAFE",
    "score": 85,
    "liquidity": 200_000,
    "holder_count": 5000,
    "is_honeypot": False,
}


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def _monitor(ctx, sleep=None):
    return WatchlistMonitor(ctx, item_delay=0.5, sleep=sleep or SleepRecorder())


async def _item(ctx, address=EVM_ADDR, chain="1"):
    return next(i for i in await ctx.watchlist.get_all() if i["address"] == address and i["chain"] == chain)


@pytest.mark.asyncio
async def test_first_poll_adopts_a_baseline(ctx):
    await ctx.watchlist.add({"address": EVM_ADDR, "chain": "1"})
    summary = await _monitor(ctx).poll_once()
    assert summary["adopted"] == 1
    item = await _item(ctx)
    assert item["baseline"]["score"] == 85
    assert item["score"] == 85
    assert ctx.notifier.sent == []


@pytest.mark.asyncio
async def test_liquidity_drain_sends_alert_and_keeps_baseline(ctx, fake_http):
    await ctx.watchlist.add(PINNED)
    fake_http.responses["dexscreener"] = dex_payload(liquidity=150_000)

    summary = await _monitor(ctx).poll_once()
    assert summary == {"scanned": 1, "failed": 0, "adopted": 0, "changed": 1, "alerts": 1}
    assert ctx.notifier.sent == [("Alert: SAFE", "Liquidity dropped by 25.0%", 2)]

    item = await _item(ctx)
    assert item["liquidity"] == 150_000
    assert item["baseline"]["liquidity"] == 200_000
    assert [c["field"] for c in item["last_changes"]] == ["liquidity"]


@pytest.mark.asyncio
async def test_fixed_baseline_alerts_again_next_cycle(ctx, fake_http):
    await ctx.watchlist.add(PINNED)
    fake_http.responses["dexscreener"] = dex_payload(liquidity=150_000)
    monitor = _monitor(ctx)
    await monitor.poll_once()
    await monitor.poll_once()
    assert len(ctx.notifier.sent) == 2


@pytest.mark.asyncio
async def test_rolling_baseline_follows_each_poll(ctx, fake_http):
    await ctx.settings.update({"watchlist_baseline_mode": "rolling"})
    await ctx.watchlist.add(PINNED)
    fake_http.responses["dexscreener"] = dex_payload(liquidity=150_000)
    monitor = _monitor(ctx)

    await monitor.poll_once()
    assert (await _item(ctx))["baseline"]["liquidity"] == 150_000
    second = await monitor.poll_once()
    assert second["changed"] == 0
    assert len(ctx.notifier.sent) == 1


@pytest.mark.asyncio
async def test_notifications_off_records_changes_without_alerts(ctx, fake_http):
    await ctx.settings.update({"notifications": False})
    await ctx.watchlist.add(PINNED)
    fake_http.responses["dexscreener"] = dex_payload(liquidity=10_000)

    summary = await _monitor(ctx).poll_once()
    assert summary["changed"] == 1
    assert summary["alerts"] == 0
    assert ctx.notifier.sent == []
    assert (await _item(ctx))["last_changes"]


@pytest.mark.asyncio
async def test_polling_disabled_does_nothing(ctx, fake_http):
    await ctx.settings.update({"watchlist_polling": False})
    await ctx.watchlist.add(PINNED)
    summary = await _monitor(ctx).poll_once()
    assert summary["scanned"] == 0
    assert fake_http.calls == []


@pytest.mark.asyncio
async def test_overlapping_cycles_are_skipped(ctx):
    await ctx.watchlist.add(PINNED)
    monitor = _monitor(ctx)
    first, second = await asyncio.gather(monitor.poll_once(), monitor.poll_once())
    assert first["scanned"] == 1
    assert second == {"skipped": 1}
    assert not monitor.running


@pytest.mark.asyncio
async def test_one_failing_item_does_not_stop_the_cycle(ctx, store):
    # written straight to the store so it skips add-time checks
    await store.set("watchlist", [
        {"address": "0xbad", "chain": "1", "baseline": None},
        {**PINNED, "baseline": None},
    ])
    summary = await _monitor(ctx).poll_once()
    assert summary["failed"] == 1
    assert summary["adopted"] == 1


@pytest.mark.asyncio
async def test_items_are_spaced_out(ctx):
    for i in range(3):
        await ctx.watchlist.add({**PINNED, "address": "0x" + f"{i:02x}" * 20})
    sleep = SleepRecorder()
    await _monitor(ctx, sleep).poll_once()
    assert sleep.calls == [0.5, 0.5]


@pytest.mark.asyncio
async def test_status_after_cycle(ctx):
    monitor = _monitor(ctx)
    await monitor.poll_once()
    status = monitor.status()
    assert status["running"] is False
    assert status["last_run"] is not None


@pytest.mark.asyncio
async def test_recurring_timer_runs_until_stopped():
    runs = []

    async def tick():
        runs.append(1)

    timer = RecurringTimer(tick, interval=0.01, first_delay=0)
    timer.start()
    assert timer.active
    await asyncio.sleep(0.1)
    await timer.stop()
    count = len(runs)
    assert count >= 2
    await asyncio.sleep(0.05)
    assert len(runs) == count
    assert not timer.active
    assert timer.status()["next_run"] is None


@pytest.mark.asyncio
async def test_timer_survives_a_failing_run():
    runs = []

    async def boom():
        runs.append(1)
        raise RuntimeError("upstream exploded")

    timer = RecurringTimer(boom, interval=0.01, first_delay=0)
    timer.start()
    await asyncio.sleep(0.08)
    await timer.stop()
    assert len(runs) >= 2
