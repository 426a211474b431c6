# radar/settings.py
# Purpose: Tunables shared by every component + the user settings schema.
from __future__ import annotations

import os
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field

# --- Score
SCORE_THRESHOLDS = {
    "safe": 80,      # 80-100
    "warning": 50,   # 50-79
    "danger": 0,     # 0-49
}

SCORE_WEIGHTS = {
    "liquidity_lock": 0.25,
    "ownership_renounced": 0.15,
    "honeypot_check": 0.20,
    "holder_distribution": 0.15,
    "tax_rate": 0.10,
    "contract_verified": 0.10,
    "trading_activity": 0.05,
}

# --- Cache
CACHE_TTL = 5 * 60          # seconds
CACHE_MAX_ENTRIES = 500

# --- Network
RATE_LIMIT_PER_MINUTE = 30
RATE_LIMIT_WINDOW = 60.0
REQUEST_TIMEOUT = 15.0
RETRY_DELAY = 1.0
RETRY_MULTIPLIER = 2.0
MAX_RETRIES = 3

API_ENDPOINTS = {
    "goplus": "https://api.gopluslabs.io/api/v1/token_security",
    "rugcheck": "https://api.rugcheck.xyz/v1/tokens",
    "honeypot": "https://api.honeypot.is/v2/IsHoneypot",
    "dexscreener": "https://api.dexscreener.com/latest/dex/tokens",
}

# --- Watchlist
WATCHLIST_POLL_INTERVAL = 5 * 60
WATCHLIST_FIRST_POLL_DELAY = 60.0
WATCHLIST_ITEM_DELAY = 0.5
WATCHLIST_MAX_ITEMS = 50

# --- Page side
MUTATION_DEBOUNCE = 0.3
SCROLL_DEBOUNCE = 0.5
INITIAL_SCAN_DELAY = 0.5
SCAN_BATCH_SIZE = 3
SCAN_BATCH_DELAY = 0.3
MUTATION_BUFFER_SIZE = 1000

# --- Store keys
STORAGE_KEYS = {
    "cache": "cache",
    "watchlist": "watchlist",
    "settings": "settings",
}

DEFAULT_ALLOWED_WEBSITES = ["x.com", "twitter.com", "mobile.twitter.com"]


class AlertThresholds(BaseModel):
    score_change: int = Field(default=15, ge=1, le=100)
    liquidity_drop: float = Field(default=10.0, gt=0, le=100)
    holder_concentration: float = Field(default=10.0, gt=0, le=100)


class RadarSettings(BaseModel):
    auto_scan: bool = True
    show_badges: bool = True
    dark_mode: bool = True
    notifications: bool = True
    watchlist_polling: bool = True
    alert_thresholds: AlertThresholds = Field(default_factory=AlertThresholds)
    allowed_websites: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_WEBSITES))
    # "fixed": baseline only moves on explicit re-add (or first-poll adoption).
    # "rolling": baseline follows every successful poll.
    watchlist_baseline_mode: Literal["fixed", "rolling"] = "fixed"


DEFAULT_SETTINGS: Dict[str, Any] = RadarSettings().model_dump()


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        print(f"[SETTINGS] Bad {name}={raw!r}; using {default}")
        return default


def env_config() -> Dict[str, Any]:
    """Process-level config from the environment (call load_dotenv() first at entry points)."""
    return {
        "store_path": (os.getenv("RADAR_STORE_PATH") or "").strip() or None,
        "rate_limit": int(_env_float("RADAR_RATE_LIMIT", RATE_LIMIT_PER_MINUTE)),
        "poll_interval": _env_float("RADAR_POLL_INTERVAL", WATCHLIST_POLL_INTERVAL),
        "telegram_bot_token": (os.getenv("TELEGRAM_BOT_TOKEN") or "").strip(),
        "telegram_chat_id": (os.getenv("TELEGRAM_CHAT_ID") or "").strip(),
        "api_url": (os.getenv("RADAR_API_URL") or "http://127.0.0.1:8000").strip().rstrip("/"),
    }
