# radar/core/merge.py
# Purpose: Fold per-source payloads into one TokenData using an explicit priority table.
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple

MARKET = ("dexscreener",)
SECURITY = ("rugcheck", "goplus", "honeypot")


@dataclass
class TokenData:
    # identity
    token_name: Optional[str] = None
    token_symbol: Optional[str] = None
    # market
    price_usd: Optional[float] = None
    price_change_24h: Optional[float] = None
    volume_24h: Optional[float] = None
    liquidity: Optional[float] = None
    fdv: Optional[float] = None
    market_cap: Optional[float] = None
    tx_count_24h: Optional[int] = None
    buys_24h: Optional[int] = None
    sells_24h: Optional[int] = None
    dex_id: Optional[str] = None
    pair_address: Optional[str] = None
    pair_created_at: Optional[int] = None
    # security
    is_honeypot: Optional[bool] = None
    honeypot_risk: Optional[str] = None
    buy_tax: Optional[float] = None
    sell_tax: Optional[float] = None
    transfer_tax: Optional[float] = None
    can_modify_tax: Optional[bool] = None
    ownership_renounced: Optional[bool] = None
    can_mint: Optional[bool] = None
    can_pause: Optional[bool] = None
    can_blacklist: Optional[bool] = None
    is_proxy: Optional[bool] = None
    is_verified: Optional[bool] = None
    liquidity_locked: Optional[bool] = None
    lp_burned: Optional[bool] = None
    top10_holders_percent: Optional[float] = None
    top_holder_percent: Optional[float] = None
    holder_count: Optional[int] = None
    lp_holder_count: Optional[int] = None
    creator_address: Optional[str] = None
    owner_address: Optional[str] = None
    total_supply: Optional[str] = None
    rugcheck_score: Optional[float] = None
    risks: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Only the fields some source actually provided (absent stays absent for the scorer)."""
        return {k: v for k, v in asdict(self).items() if v is not None and v != []}


@dataclass(frozen=True)
class FieldRule:
    field: str
    sources: Tuple[str, ...]
    # a 0 / "" from an earlier source does not block a later, real value
    zero_is_unset: bool = False


def _rules(names: Tuple[str, ...], sources: Tuple[str, ...], zero_is_unset: bool = False) -> List[FieldRule]:
    return [FieldRule(n, sources, zero_is_unset) for n in names]


MERGE_RULES: List[FieldRule] = (
    _rules(("token_name", "token_symbol"), MARKET + SECURITY, zero_is_unset=True)
    + _rules(("price_usd", "price_change_24h", "volume_24h", "fdv", "market_cap",
              "tx_count_24h", "buys_24h", "sells_24h", "dex_id", "pair_address", "pair_created_at"), MARKET)
    + [FieldRule("liquidity", MARKET + ("rugcheck",), zero_is_unset=True)]
    # primary security source first, honeypot.is only fills gaps
    + _rules(("is_honeypot", "honeypot_risk"), SECURITY)
    + _rules(("buy_tax", "sell_tax", "holder_count"), SECURITY, zero_is_unset=True)
    + _rules(("transfer_tax",), ("honeypot",))
    + _rules(("ownership_renounced", "liquidity_locked", "lp_burned", "top10_holders_percent",
              "top_holder_percent", "rugcheck_score", "risks"), ("rugcheck", "goplus"))
    + _rules(("can_mint", "can_pause", "can_blacklist", "is_proxy", "is_verified", "can_modify_tax",
              "lp_holder_count", "creator_address", "owner_address"), ("goplus",))
    + _rules(("total_supply",), ("goplus", "honeypot"))
)

_TOKEN_FIELDS = {f.name for f in fields(TokenData)}


def _is_zero(v: Any) -> bool:
    if isinstance(v, bool):
        return False
    return v == 0 or v == "" or v == []


def _pick(rule: FieldRule, sources: Mapping[str, Optional[dict]]) -> Any:
    fallback = None
    for name in rule.sources:
        payload = sources.get(name)
        if not payload:
            continue
        v = payload.get(rule.field)
        if v is None:
            continue
        if rule.zero_is_unset and _is_zero(v):
            if fallback is None:
                fallback = v
            continue
        return v
    return fallback


def merge_sources(sources: Mapping[str, Optional[dict]], rules: List[FieldRule] = MERGE_RULES) -> TokenData:
    merged = TokenData()
    for rule in rules:
        if rule.field not in _TOKEN_FIELDS:
            raise KeyError(f"Merge rule targets unknown field {rule.field!r}")
        value = _pick(rule, sources)
        if value is not None:
            setattr(merged, rule.field, value)
    return merged
