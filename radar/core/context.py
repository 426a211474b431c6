# radar/core/context.py
# Purpose: The per-process state every handler needs, built once at boot.
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from radar.core.storage import SettingsManager, WatchlistManager
from radar.settings import env_config
from radar.utils.cache import CacheManager
from radar.utils.notify import Notifier, notifier_from_env
from radar.utils.ratelimit import HttpClient, RateLimiter
from radar.utils.store import KeyValueStore, open_store


@dataclass
class RadarContext:
    store: KeyValueStore
    http: HttpClient
    cache: CacheManager
    watchlist: WatchlistManager
    settings: SettingsManager
    notifier: Notifier

    @classmethod
    def create(cls, store: KeyValueStore, http: Optional[HttpClient] = None,
               notifier: Optional[Notifier] = None, rate_limit: Optional[int] = None) -> "RadarContext":
        if http is None:
            http = HttpClient(limiter=RateLimiter(rate_limit) if rate_limit else None)
        return cls(
            store=store,
            http=http,
            cache=CacheManager(store),
            watchlist=WatchlistManager(store),
            settings=SettingsManager(store),
            notifier=notifier or notifier_from_env({}),
        )

    def close(self):
        self.http.close()


def build_context(cfg: Optional[Dict[str, Any]] = None) -> RadarContext:
    """Wire everything from env config (load_dotenv() must already have run)."""
    cfg = cfg if cfg is not None else env_config()
    print(f"[BOOT] store={cfg.get('store_path') or 'memory'} rate_limit={cfg.get('rate_limit')}/min "
          f"telegram={'yes' if cfg.get('telegram_bot_token') else 'no'}")
    return RadarContext.create(
        store=open_store(cfg.get("store_path")),
        notifier=notifier_from_env(cfg),
        rate_limit=cfg.get("rate_limit"),
    )
