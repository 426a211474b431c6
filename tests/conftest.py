import copy
from typing import Any, Dict, List, Optional, Tuple

import pytest

from radar.core.context import RadarContext
from radar.utils.notify import ConsoleNotifier
from radar.utils.store import MemoryStore

EVM_ADDR = "0x" + "ab" * 20
EVM_ADDR_MIXED = "0x" + "aB" * 20
SOL_ADDR = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


def dex_payload(liquidity=200_000, volume=500_000, buys=300, sells=200, symbol="SAFE"):
    return {
        "pairs": [
            {
                "baseToken": {"name": "Safe Token", "symbol": symbol},
                "priceUsd": "1.25",
                "priceChange": {"h24": 3.5},
                "volume": {"h24": volume},
                "liquidity": {"usd": liquidity},
                "fdv": 1_000_000,
                "marketCap": 900_000,
                "txns": {"h24": {"buys": buys, "sells": sells}},
                "dexId": "uniswap",
                "pairAddress": "0xpair",
                "pairCreatedAt": 1_700_000_000_000,
            },
            {
                "baseToken": {"name": "Safe Token", "symbol": symbol},
                "priceUsd": "1.20",
                "liquidity": {"usd": 10},
                "dexId": "sushiswap",
            },
        ]
    }


def goplus_payload(address=EVM_ADDR, **overrides):
    result = {
        "token_name": "Safe Token",
        "token_symbol": "SAFE",
        "is_honeypot": "0",
        "buy_tax": "0",
        "sell_tax": "0",
        "owner_address": "0x0000000000000000000000000000000000000000",
        "is_mintable": "0",
        "trading_cooldown": "0",
        "is_blacklisted": "0",
        "is_in_dex": "1",
        "is_proxy": "0",
        "holder_count": "5000",
        "lp_holder_count": "12",
        "top_10_holder_ratio": "0.15",
        "is_open_source": "1",
        "slippage_modifiable": "0",
        "creator_address": "0xcreator",
        "total_supply": "1000000",
    }
    result.update(overrides)
    return {"code": 1, "message": "OK", "result": {address.lower(): result}}


def honeypot_payload(is_honeypot=False, buy_tax=0, sell_tax=0, risk="low", holders=5000):
    return {
        "token": {"name": "Safe Token", "symbol": "SAFE", "totalHolders": holders, "totalSupply": "1000000"},
        "honeypotResult": {"isHoneypot": is_honeypot},
        "simulationResult": {"buyTax": buy_tax, "sellTax": sell_tax, "transferTax": 0},
        "summary": {"risk": risk},
    }


def rugcheck_payload(score=85, top_holder=8.0, lp_locked=True, honeypot=False):
    risks = [{"name": "Honeypot", "level": "danger"}] if honeypot else [{"name": "Low liquidity", "level": "warn"}]
    return {
        "tokenMeta": {"name": "Sol Token", "symbol": "SOLT"},
        "score": score,
        "mintAuthority": None,
        "lpLocked": lp_locked,
        "lpBurned": False,
        "topHoldersPercent": 22.0,
        "topHolderPercent": top_holder,
        "holderCount": 1500,
        "liquidity": 80_000,
        "risks": risks,
    }


class FakeHttp:
    """Stands in for HttpClient: answers get_json() by source name."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses: Dict[str, Any] = responses or {}
        self.calls: List[Tuple[Optional[str], str, Optional[dict]]] = []
        self.closed = False

    async def get_json(self, url, params=None, headers=None, source=None):
        self.calls.append((source, url, params))
        res = self.responses.get(source)
        if isinstance(res, Exception):
            raise res
        if callable(res):
            return res(url, params)
        return copy.deepcopy(res)

    def sources_called(self) -> List[Optional[str]]:
        return [c[0] for c in self.calls]

    def close(self):
        self.closed = True


def evm_responses(**kw) -> Dict[str, Any]:
    return {
        "dexscreener": kw.get("dex", dex_payload()),
        "goplus": kw.get("goplus", goplus_payload()),
        "honeypot": kw.get("honeypot", honeypot_payload()),
        "rugcheck": kw.get("rugcheck", rugcheck_payload()),
    }


@pytest.fixture
def fake_http():
    return FakeHttp(evm_responses())


@pytest.fixture
def notifier():
    return ConsoleNotifier()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def ctx(store, fake_http, notifier):
    return RadarContext.create(store=store, http=fake_http, notifier=notifier)
