# radar/utils/addr.py
import re
from typing import Optional

from web3 import Web3

from radar.chains import DEFAULT_EVM_CHAIN, SOLANA, is_evm_chain
from radar.errors import ValidationError

_EVM_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def is_evm_address(address) -> bool:
    if not isinstance(address, str):
        return False
    return bool(_EVM_RE.match(address.strip()))


def is_solana_address(address) -> bool:
    """Base58, 32-44 chars, with a digit or mixed case (all-letter strings are words)."""
    if not isinstance(address, str):
        return False
    s = address.strip()
    if not _BASE58_RE.match(s):
        return False
    if s.isalpha():
        return False
    has_digit = any(c.isdigit() for c in s)
    has_upper = any(c.isupper() for c in s)
    has_lower = any(c.islower() for c in s)
    return has_digit or (has_upper and has_lower)


def detect_chain(address) -> Optional[str]:
    """EVM addresses default to Ethereum; the caller may pick another EVM chain."""
    if is_evm_address(address):
        return DEFAULT_EVM_CHAIN
    if is_solana_address(address):
        return SOLANA
    return None


def normalize_address(address, chain: str) -> str:
    if not address:
        return ""
    if chain == SOLANA:
        return address.strip()
    return address.strip().lower()


def cache_key(address, chain: str) -> str:
    return f"{chain}:{normalize_address(address, chain)}"


def validate_address(raw, chain: str) -> str:
    """Strictly validate & normalize an address for its chain family."""
    s = (raw or "").strip() if isinstance(raw, str) else ""
    if not s:
        raise ValidationError("Address is required.")
    if "..." in s:
        raise ValidationError("Ellipses ('...') are not allowed. Provide the full address.")
    if is_evm_chain(chain):
        if not s.startswith("0x") or len(s) != 42:
            raise ValidationError("Invalid address: must be 0x-prefixed and 42 characters long (0x + 40 hex).")
        # lowercase first: mixed case would be held to EIP-55 checksum rules
        if not Web3.is_address(s.lower()):
            raise ValidationError("Invalid address: not a valid hex string.")
        return s.lower()
    if chain == SOLANA:
        if not _BASE58_RE.match(s):
            raise ValidationError("Invalid address: expected 32-44 base58 characters.")
        return s
    raise ValidationError(f"Unsupported chain: {chain}")
