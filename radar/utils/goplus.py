# radar/utils/goplus.py
# Purpose: GoPlus token security (EVM primary security source).
from typing import Any, Dict, Optional

from radar.chains import CHAINS
from radar.settings import API_ENDPOINTS
from radar.utils.num import safe_float, safe_int
from radar.utils.ratelimit import HttpClient

SOURCE = "goplus"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _flag(result: dict, key: str) -> bool:
    return str(result.get(key, "")) == "1"


def parse_goplus(data: Any, address: str) -> Optional[Dict[str, Any]]:
    if not isinstance(data, dict) or data.get("code") != 1:
        return None
    result = (data.get("result") or {}).get(address.lower())
    if not isinstance(result, dict):
        return None

    owner = result.get("owner_address")
    return {
        "token_name": result.get("token_name"),
        "token_symbol": result.get("token_symbol"),
        "is_honeypot": _flag(result, "is_honeypot"),
        "buy_tax": safe_float(result.get("buy_tax"), 0.0) * 100,
        "sell_tax": safe_float(result.get("sell_tax"), 0.0) * 100,
        "ownership_renounced": owner == ZERO_ADDRESS or owner == "" or str(result.get("can_take_back_ownership")) == "0",
        "can_mint": _flag(result, "is_mintable"),
        "can_pause": _flag(result, "trading_cooldown") or _flag(result, "can_pause_trading"),
        "can_blacklist": _flag(result, "is_blacklisted") or str(result.get("is_in_dex")) == "0",
        "is_proxy": _flag(result, "is_proxy"),
        "holder_count": safe_int(result.get("holder_count"), 0),
        "lp_holder_count": safe_int(result.get("lp_holder_count"), 0),
        "top10_holders_percent": safe_float(result.get("top_10_holder_ratio"), 0.0) * 100,
        "is_verified": _flag(result, "is_open_source"),
        "can_modify_tax": _flag(result, "slippage_modifiable"),
        "creator_address": result.get("creator_address"),
        "owner_address": owner,
        "total_supply": result.get("total_supply"),
    }


async def fetch_goplus_data(http: HttpClient, address: str, chain: str) -> Optional[Dict[str, Any]]:
    goplus_id = CHAINS.get(chain, {}).get("goplus_id")
    if not goplus_id:
        return None
    url = f"{API_ENDPOINTS['goplus']}/{goplus_id}"
    data = await http.get_json(url, params={"contract_addresses": address}, source=SOURCE)
    return parse_goplus(data, address)
