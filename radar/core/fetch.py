# radar/core/fetch.py
# Purpose: Query every chain-appropriate source concurrently and merge what came back.
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from radar.chains import SOLANA
from radar.core.merge import TokenData, merge_sources
from radar.errors import MergeIncomplete
from radar.utils import goplus, honeypot, market, rugcheck
from radar.utils.ratelimit import HttpClient

SourceFn = Callable[[HttpClient, str, str], Awaitable[Optional[dict]]]

SOLANA_SOURCES: Tuple[Tuple[str, SourceFn], ...] = (
    (market.SOURCE, market.fetch_market_data),
    (rugcheck.SOURCE, rugcheck.fetch_rugcheck_data),
)
EVM_SOURCES: Tuple[Tuple[str, SourceFn], ...] = (
    (market.SOURCE, market.fetch_market_data),
    (goplus.SOURCE, goplus.fetch_goplus_data),
    (honeypot.SOURCE, honeypot.probe_honeypot),
)


def sources_for_chain(chain: str) -> Tuple[Tuple[str, SourceFn], ...]:
    return SOLANA_SOURCES if chain == SOLANA else EVM_SOURCES


@dataclass
class FetchResult:
    data: TokenData
    sources: List[str]
    errors: Dict[str, str] = field(default_factory=dict)


async def fetch_all_token_data(http: HttpClient, address: str, chain: str,
                               sources: Optional[Tuple[Tuple[str, SourceFn], ...]] = None) -> FetchResult:
    """Fan out to every source; one source failing never aborts the others."""
    plan = sources if sources is not None else sources_for_chain(chain)
    print(f"[FETCH] start chain={chain} addr={address} sources={[n for n, _ in plan]}")

    results = await asyncio.gather(*(fn(http, address, chain) for _, fn in plan), return_exceptions=True)

    payloads: Dict[str, Optional[dict]] = {}
    errors: Dict[str, str] = {}
    for (name, _), res in zip(plan, results):
        if isinstance(res, asyncio.CancelledError):
            raise res
        if isinstance(res, Exception):
            errors[name] = str(res)
            print(f"[FETCH] {name} FAIL -> {res}")
            continue
        if res:
            payloads[name] = res
            print(f"[FETCH] {name} OK")
        else:
            print(f"[FETCH] {name} empty")

    if not payloads:
        print(f"[FETCH] no source answered for {address} on {chain}")
        raise MergeIncomplete(errors=errors)

    merged = merge_sources(payloads)
    return FetchResult(data=merged, sources=list(payloads), errors=errors)
