# radar/utils/honeypot.py
# Purpose: Honeypot.is simulation (EVM secondary security source).
# It simulates a buy + sell against the deepest pool, so it catches sell-blocking
# tokens that a static ABI scan would miss.
from typing import Any, Dict, Optional

from radar.chains import CHAINS
from radar.settings import API_ENDPOINTS
from radar.utils.num import safe_float, safe_int
from radar.utils.ratelimit import HttpClient

SOURCE = "honeypot"


def parse_honeypot(data: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(data, dict) or not data:
        return None
    hp = data.get("honeypotResult") or {}
    sim = data.get("simulationResult") or {}
    summary = data.get("summary") or {}
    token = data.get("token") or {}

    risk = summary.get("risk")
    if not isinstance(risk, str):
        risk = "unknown"

    return {
        "token_name": token.get("name"),
        "token_symbol": token.get("symbol"),
        "is_honeypot": bool(hp.get("isHoneypot", False)),
        "honeypot_risk": risk.lower(),
        "buy_tax": safe_float(sim.get("buyTax"), 0.0),
        "sell_tax": safe_float(sim.get("sellTax"), 0.0),
        "transfer_tax": safe_float(sim.get("transferTax"), 0.0),
        "buy_gas": sim.get("buyGas"),
        "sell_gas": sim.get("sellGas"),
        "total_supply": token.get("totalSupply"),
        "holder_count": safe_int(token.get("totalHolders")),
    }


async def probe_honeypot(http: HttpClient, address: str, chain: str) -> Optional[Dict[str, Any]]:
    slug = CHAINS.get(chain, {}).get("honeypot_slug")
    if not slug:
        return None
    data = await http.get_json(API_ENDPOINTS["honeypot"], params={"address": address, "chain": slug},
                               source=SOURCE)
    return parse_honeypot(data)
