# radar/chains.py
# Purpose: Chain table. Maps our chain ids to display names, family and the
# per-provider slugs each upstream API expects.

from typing import Optional

DEFAULT_EVM_CHAIN = "1"
SOLANA = "solana"

CHAINS = {
    "1": {
        "name": "Ethereum",
        "family": "evm",
        "goplus_id": "1",
        "honeypot_slug": "eth",
    },
    "56": {
        "name": "BNB Chain",
        "family": "evm",
        "goplus_id": "56",
        "honeypot_slug": "bsc",
    },
    "137": {
        "name": "Polygon",
        "family": "evm",
        "goplus_id": "137",
        "honeypot_slug": "polygon",
    },
    "42161": {
        "name": "Arbitrum",
        "family": "evm",
        "goplus_id": "42161",
        "honeypot_slug": "arbitrum",
    },
    "8453": {
        "name": "Base",
        "family": "evm",
        "goplus_id": "8453",
        "honeypot_slug": "base",
    },
    "43114": {
        "name": "Avalanche",
        "family": "evm",
        "goplus_id": "43114",
        "honeypot_slug": "avalanche",
    },
    SOLANA: {
        "name": "Solana",
        "family": "solana",
    },
}

# Friendly aliases accepted on the CLI / API (eth, bsc, ...)
ALIASES = {
    "eth": "1",
    "ethereum": "1",
    "bsc": "56",
    "bnb": "56",
    "polygon": "137",
    "matic": "137",
    "arbitrum": "42161",
    "arb": "42161",
    "base": "8453",
    "avax": "43114",
    "avalanche": "43114",
    "sol": SOLANA,
}


def resolve_chain(chain_key: Optional[str]) -> str:
    """Map an id or alias to a known chain id. Raises ValueError on unknown chains."""
    key = (str(chain_key) if chain_key is not None else "").strip().lower()
    if not key:
        return DEFAULT_EVM_CHAIN
    key = ALIASES.get(key, key)
    if key not in CHAINS:
        raise ValueError(f"Unknown chain: {chain_key}")
    return key


def chain_name(chain_key: str) -> str:
    return CHAINS.get(chain_key, {}).get("name", chain_key)


def is_evm_chain(chain_key: str) -> bool:
    return CHAINS.get(chain_key, {}).get("family") == "evm"


__all__ = ["CHAINS", "ALIASES", "DEFAULT_EVM_CHAIN", "SOLANA",
           "resolve_chain", "chain_name", "is_evm_chain"]
