# radar/core/analyze.py
# Purpose: One scan = validate -> cache -> fetch+merge -> score -> cache -> record.
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from radar.chains import chain_name, resolve_chain
from radar.core.context import RadarContext
from radar.core.fetch import fetch_all_token_data
from radar.core.score import calculate_safety_score
from radar.errors import RadarError, ValidationError
from radar.utils.addr import detect_chain, validate_address

RECORD_KEYS = ("address", "chain", "chain_name", "score", "risk_level", "breakdown", "flags",
               "sources", "timestamp")


@dataclass(frozen=True)
class TokenRecord:
    address: str
    chain: str
    chain_name: str
    score: int
    risk_level: str
    breakdown: Dict[str, int]
    flags: List[Dict[str, str]]
    timestamp: float
    sources: List[str] = field(default_factory=list)
    # merged market + security fields (price_usd, liquidity, holder_count, buy_tax, ...)
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def token_name(self) -> Optional[str]:
        return self.metrics.get("token_name")

    @property
    def token_symbol(self) -> Optional[str]:
        return self.metrics.get("token_symbol")

    def to_dict(self) -> Dict[str, Any]:
        """Flat JSON shape used on the wire, in the cache and in watchlist items."""
        out: Dict[str, Any] = dict(self.metrics)
        out.update({k: getattr(self, k) for k in RECORD_KEYS})
        return out

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "TokenRecord":
        metrics = {k: v for k, v in d.items() if k not in RECORD_KEYS}
        return cls(
            address=d["address"],
            chain=d["chain"],
            chain_name=d.get("chain_name") or chain_name(d["chain"]),
            score=int(d.get("score", 0)),
            risk_level=d.get("risk_level", "danger"),
            breakdown=dict(d.get("breakdown") or {}),
            flags=list(d.get("flags") or []),
            timestamp=float(d.get("timestamp", 0.0)),
            sources=list(d.get("sources") or []),
            metrics=metrics,
        )


def normalize_target(chain_key: Optional[str], address: str) -> Tuple[str, str]:
    """(chain id, normalized address) or ValidationError. No network."""
    if not chain_key and isinstance(address, str):
        chain_key = detect_chain(address.strip())
    try:
        chain = resolve_chain(chain_key)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return chain, validate_address(address, chain)


async def analyze_token(ctx: RadarContext, chain_key: Optional[str], token_address: str,
                        use_cache: bool = True) -> Tuple[TokenRecord, bool]:
    """Return (record, served_from_cache). Raises ValidationError / MergeIncomplete."""
    print(f"[ANALYZE] analyze_token start chain={chain_key} addr={token_address} use_cache={use_cache}")
    chain, address = normalize_target(chain_key, token_address)

    if use_cache:
        cached = await ctx.cache.get_token(address, chain)
        if isinstance(cached, dict):
            try:
                record = TokenRecord.from_dict(cached)
            except (KeyError, TypeError, ValueError) as e:
                print(f"[ANALYZE] cached entry unreadable, refetching -> {e}")
            else:
                print(f"[ANALYZE] cache hit {chain}:{address} score={record.score}")
                return record, True

    fetched = await fetch_all_token_data(ctx.http, address, chain)
    metrics = fetched.data.to_dict()
    result = calculate_safety_score(metrics)
    record = TokenRecord(
        address=address,
        chain=chain,
        chain_name=chain_name(chain),
        score=result["score"],
        risk_level=result["risk_level"],
        breakdown=result["breakdown"],
        flags=result["flags"],
        timestamp=time.time(),
        sources=fetched.sources,
        metrics=metrics,
    )
    print(f"[ANALYZE] Score OK: score={record.score} level={record.risk_level} sources={record.sources}")

    await ctx.cache.set_token(address, chain, record.to_dict())
    return record, False


async def scan_token(ctx: RadarContext, address: str, chain: Optional[str], use_cache: bool = True) -> Dict[str, Any]:
    """Message-shaped wrapper: {success, data|error, cached}. Never raises for bad input or dead sources."""
    try:
        record, cached = await analyze_token(ctx, chain, address, use_cache=use_cache)
    except RadarError as e:
        print(f"[ANALYZE] scan FAIL chain={chain} addr={address} -> {e}")
        return {"success": False, "error": str(e)}
    return {"success": True, "data": record.to_dict(), "cached": cached}
