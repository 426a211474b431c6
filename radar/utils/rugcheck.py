# radar/utils/rugcheck.py
# Purpose: RugCheck report (Solana security source).
from typing import Any, Dict, Optional

from radar.settings import API_ENDPOINTS
from radar.utils.num import safe_float, safe_int
from radar.utils.ratelimit import HttpClient

SOURCE = "rugcheck"


def _risk_band(score: float) -> str:
    if score >= 80:
        return "low"
    if score >= 50:
        return "medium"
    return "high"


def parse_rugcheck(data: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(data, dict) or not data or data.get("error"):
        return None
    risks = [r for r in (data.get("risks") or []) if isinstance(r, dict)]
    meta = data.get("tokenMeta") or {}
    score = safe_float(data.get("score"), 0.0)
    mint_authority = data.get("mintAuthority")
    return {
        "token_name": meta.get("name"),
        "token_symbol": meta.get("symbol"),
        "is_honeypot": any(r.get("name") == "Honeypot" for r in risks),
        "honeypot_risk": _risk_band(score),
        "ownership_renounced": mint_authority in (None, ""),
        "liquidity_locked": bool(data.get("lpLocked", False)),
        "lp_burned": bool(data.get("lpBurned", False)),
        "top10_holders_percent": safe_float(data.get("topHoldersPercent"), 0.0),
        "top_holder_percent": safe_float(data.get("topHolderPercent"), 0.0),
        "holder_count": safe_int(data.get("holderCount"), 0),
        "liquidity": safe_float(data.get("liquidity"), 0.0),
        "rugcheck_score": score,
        "risks": [{"name": r.get("name"), "level": r.get("level")} for r in risks],
    }


async def fetch_rugcheck_data(http: HttpClient, address: str, chain: str) -> Optional[Dict[str, Any]]:
    url = f"{API_ENDPOINTS['rugcheck']}/{address}"
    data = await http.get_json(url, source=SOURCE)
    return parse_rugcheck(data)
