# radar/core/changes.py
# Purpose: Diff a watchlist baseline against a fresh record.
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from radar.settings import AlertThresholds
from radar.utils.num import safe_float


def _change(kind: str, field: str, message: str, old: Any, new: Any) -> Dict[str, Any]:
    return {"type": kind, "field": field, "message": message, "old_value": old, "new_value": new}


def detect_changes(old: Optional[Mapping], new: Optional[Mapping],
                   thresholds: Optional[AlertThresholds] = None) -> List[Dict[str, Any]]:
    """Score swing, liquidity drain, honeypot flip and top-holder growth, in that order."""
    if not isinstance(old, Mapping) or not isinstance(new, Mapping):
        return []
    t = thresholds or AlertThresholds()
    changes: List[Dict[str, Any]] = []

    old_score, new_score = safe_float(old.get("score")), safe_float(new.get("score"))
    if old_score is not None and new_score is not None:
        diff = new_score - old_score
        if abs(diff) >= t.score_change:
            word = "dropped" if diff < 0 else "increased"
            changes.append(_change("critical" if diff < 0 else "info", "score",
                                   f"Score {word} by {abs(diff):g} points", old.get("score"), new.get("score")))

    old_liq, new_liq = safe_float(old.get("liquidity")), safe_float(new.get("liquidity"))
    # nothing to drain from an empty pool
    if old_liq and new_liq is not None:
        pct = (new_liq - old_liq) / old_liq * 100
        if pct < -t.liquidity_drop:
            changes.append(_change("critical", "liquidity", f"Liquidity dropped by {abs(pct):.1f}%",
                                   old.get("liquidity"), new.get("liquidity")))

    if old.get("is_honeypot") is False and new.get("is_honeypot") is True:
        changes.append(_change("critical", "honeypot", "Token flagged as honeypot!", False, True))

    old_top, new_top = safe_float(old.get("top_holder_percent")), safe_float(new.get("top_holder_percent"))
    if old_top is not None and new_top is not None:
        rise = new_top - old_top
        if rise > t.holder_concentration:
            changes.append(_change("warning", "top_holder", f"Top holder increased by {rise:.1f}%",
                                   old.get("top_holder_percent"), new.get("top_holder_percent")))
    return changes
