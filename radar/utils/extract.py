# radar/utils/extract.py
# Purpose: Pull contract-address candidates out of free text (tweets, posts, pasted notes).
import re
from typing import Dict, List

from radar.chains import DEFAULT_EVM_CHAIN, SOLANA

EVM_PATTERN = re.compile(r"(?<![a-fA-F0-9])0x[a-fA-F0-9]{40}(?![a-fA-F0-9])")
BASE58_PATTERN = re.compile(r"(?<![a-zA-Z0-9])([1-9A-HJ-NP-Za-km-z]{32,44})(?![a-zA-Z0-9])")

VANITY_SUFFIXES = ("pump",)

_URL_MARKER = re.compile(r"https?://|www\.", re.IGNORECASE)
_CA_LABEL = re.compile(r"\bCA:?\s*$", re.IGNORECASE)
_BARE_URL_TOKEN = re.compile(r"^(https?|www|com|org|net|io|app|dev|xyz)$", re.IGNORECASE)


def _url_context(text: str, start: int) -> bool:
    """True when the candidate sits inside a URL-looking token."""
    token_start = max(text.rfind(" ", 0, start), text.rfind("\n", 0, start), text.rfind("\t", 0, start)) + 1
    prefix = text[token_start:start]
    if not _URL_MARKER.search(prefix):
        return False
    # "CA:" right before the address wins over the URL marker
    return not _CA_LABEL.search(text[max(0, start - 15):start])


def _is_valid_base58_candidate(candidate: str, text: str, start: int) -> bool:
    if candidate.isalpha():
        return False
    if _BARE_URL_TOKEN.match(candidate):
        return False
    if _url_context(text, start):
        return False
    if candidate.endswith(VANITY_SUFFIXES):
        return True
    has_digit = any(c.isdigit() for c in candidate)
    has_upper = any(c.isupper() for c in candidate)
    has_lower = any(c.islower() for c in candidate)
    return has_digit or (has_upper and has_lower)


def extract_contract_addresses(text) -> List[Dict[str, str]]:
    """Return deduplicated [{address, chain, type}] in order of appearance per family."""
    if not text or not isinstance(text, str):
        return []

    results: List[Dict[str, str]] = []
    seen = set()

    for m in EVM_PATTERN.finditer(text):
        address = m.group(0)
        normalized = address.lower()
        if normalized in seen:
            continue
        seen.add(normalized)
        results.append({"address": address, "chain": DEFAULT_EVM_CHAIN, "type": "evm"})

    for m in BASE58_PATTERN.finditer(text):
        address = m.group(1)
        if address in seen:
            continue
        if not _is_valid_base58_candidate(address, text, m.start(1)):
            continue
        seen.add(address)
        results.append({"address": address, "chain": SOLANA, "type": "solana"})

    return results
