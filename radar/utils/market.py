# radar/utils/market.py
# Purpose: DexScreener market data (price, liquidity, volume, txns). Works for every chain.
from typing import Any, Dict, Optional

from radar.settings import API_ENDPOINTS
from radar.utils.num import safe_float, safe_int
from radar.utils.ratelimit import HttpClient

SOURCE = "dexscreener"


def _deepest_pair(pairs: list) -> Optional[dict]:
    pairs = [p for p in pairs if isinstance(p, dict)]
    if not pairs:
        return None
    return max(pairs, key=lambda p: safe_float((p.get("liquidity") or {}).get("usd"), 0.0))


def parse_dexscreener(data: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(data, dict):
        return None
    pair = _deepest_pair(data.get("pairs") or [])
    if pair is None:
        return None

    base = pair.get("baseToken") or {}
    h24 = (pair.get("txns") or {}).get("h24") or {}
    buys = safe_int(h24.get("buys"), 0)
    sells = safe_int(h24.get("sells"), 0)
    return {
        "token_name": base.get("name"),
        "token_symbol": base.get("symbol"),
        "price_usd": safe_float(pair.get("priceUsd"), 0.0),
        "price_change_24h": safe_float((pair.get("priceChange") or {}).get("h24"), 0.0),
        "volume_24h": safe_float((pair.get("volume") or {}).get("h24"), 0.0),
        "liquidity": safe_float((pair.get("liquidity") or {}).get("usd"), 0.0),
        "fdv": safe_float(pair.get("fdv"), 0.0),
        "market_cap": safe_float(pair.get("marketCap"), 0.0),
        "tx_count_24h": buys + sells,
        "buys_24h": buys,
        "sells_24h": sells,
        "dex_id": pair.get("dexId"),
        "pair_address": pair.get("pairAddress"),
        "pair_created_at": pair.get("pairCreatedAt"),
    }


async def fetch_market_data(http: HttpClient, address: str, chain: str) -> Optional[Dict[str, Any]]:
    url = f"{API_ENDPOINTS['dexscreener']}/{address}"
    data = await http.get_json(url, source=SOURCE)
    return parse_dexscreener(data)
