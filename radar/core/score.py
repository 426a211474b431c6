# radar/core/score.py
# Purpose: Weighted 0..100 safety score + advisory flags. Higher is safer.
# Total over any input: None / non-mapping input scores every factor 0,
# an empty mapping scores every factor from its neutral baseline.
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from radar.settings import SCORE_THRESHOLDS, SCORE_WEIGHTS
from radar.utils.num import safe_float

DAY = 24 * 60 * 60


def _clamp(score: float) -> int:
    return int(max(0, min(100, score)))


def _num(data: Mapping, key: str) -> Optional[float]:
    return safe_float(data.get(key))


def liquidity_score(data: Mapping) -> int:
    score = 50
    if data.get("liquidity_locked") is True:
        score += 30
    elif data.get("liquidity_locked") is False:
        score -= 30

    # lock_duration is in seconds
    lock = _num(data, "lock_duration")
    if lock:
        days = lock / DAY
        if days > 365:
            score += 20
        elif days > 180:
            score += 15
        elif days > 90:
            score += 10
        elif days > 30:
            score += 5

    if data.get("lp_burned") is True:
        score += 20

    liq = _num(data, "liquidity")
    if liq:
        if liq > 100_000:
            score += 10
        elif liq > 50_000:
            score += 5
        elif liq < 5_000:
            score -= 20
        elif liq < 10_000:
            score -= 10
    return _clamp(score)


def ownership_score(data: Mapping) -> int:
    renounced = data.get("ownership_renounced")
    if renounced is True:
        return 100
    if renounced is not False:
        return 50
    score = 30
    if data.get("can_mint") is True:
        score -= 20
    if data.get("can_pause") is True:
        score -= 10
    if data.get("can_blacklist") is True:
        score -= 15
    return _clamp(score)


def honeypot_score(data: Mapping) -> int:
    hp = data.get("is_honeypot")
    if hp is True:
        return 0
    if hp is not False:
        return 50
    return {"high": 30, "medium": 60, "low": 90}.get(data.get("honeypot_risk"), 100)


def holder_score(data: Mapping) -> int:
    score = 50
    top10 = _num(data, "top10_holders_percent")
    if top10 is not None:
        for limit, value in ((20, 100), (30, 85), (40, 70), (50, 55), (60, 40), (70, 25)):
            if top10 < limit:
                score = value
                break
        else:
            score = 10

    top = _num(data, "top_holder_percent")
    if top is not None:
        if top > 50:
            score -= 30
        elif top > 30:
            score -= 20
        elif top > 20:
            score -= 10

    holders = _num(data, "holder_count")
    if holders is not None:
        if holders > 10_000:
            score += 10
        elif holders > 1_000:
            score += 5
        elif holders < 50:
            score -= 25
        elif holders < 100:
            score -= 15
    return _clamp(score)


def tax_score(data: Mapping) -> int:
    total = (_num(data, "buy_tax") or 0.0) + (_num(data, "sell_tax") or 0.0)
    if total == 0:
        score = 100
    elif total <= 5:
        score = 90
    elif total <= 10:
        score = 75
    elif total <= 15:
        score = 60
    elif total <= 20:
        score = 40
    elif total <= 30:
        score = 20
    else:
        score = 0
    if data.get("can_modify_tax") is True:
        score -= 20
    return _clamp(score)


def verification_score(data: Mapping) -> int:
    score = 50
    if data.get("is_verified") is True:
        score = 80
        if data.get("is_audited") is True:
            score += 20
    elif data.get("is_verified") is False:
        score = 20
    if data.get("is_proxy") is True:
        score -= 15
    return _clamp(score)


def activity_score(data: Mapping) -> int:
    score = 50
    volume = _num(data, "volume_24h")
    if volume is not None:
        if volume > 1_000_000:
            score += 20
        elif volume > 100_000:
            score += 15
        elif volume > 10_000:
            score += 10
        elif volume < 1_000:
            score -= 10

    txs = _num(data, "tx_count_24h")
    if txs is not None:
        if txs > 1000:
            score += 15
        elif txs > 100:
            score += 10
        elif txs > 10:
            score += 5
        elif txs < 5:
            score -= 15

    if data.get("has_suspicious_activity") is True:
        score -= 30
    snipers = _num(data, "sniper_count")
    if snipers is not None and snipers > 5:
        score -= 15
    return _clamp(score)


FACTORS = {
    "liquidity_lock": liquidity_score,
    "ownership_renounced": ownership_score,
    "honeypot_check": honeypot_score,
    "holder_distribution": holder_score,
    "tax_rate": tax_score,
    "contract_verified": verification_score,
    "trading_activity": activity_score,
}


def get_risk_level(score) -> str:
    s = safe_float(score, 0.0)
    if s >= SCORE_THRESHOLDS["safe"]:
        return "safe"
    if s >= SCORE_THRESHOLDS["warning"]:
        return "warning"
    return "danger"


def generate_flags(data: Any) -> List[Dict[str, str]]:
    """Advisory annotations; they never feed back into the number."""
    if not isinstance(data, Mapping):
        return []
    flags: List[Dict[str, str]] = []

    def add(kind: str, message: str):
        flags.append({"type": kind, "message": message})

    buy, sell = _num(data, "buy_tax"), _num(data, "sell_tax")
    top = _num(data, "top_holder_percent")
    top10 = _num(data, "top10_holders_percent")

    if data.get("is_honeypot") is True:
        add("critical", "Honeypot detected")
    if (buy or 0) > 20 or (sell or 0) > 20:
        add("critical", "Extremely high taxes")
    if top is not None and top > 50:
        add("critical", "Single wallet holds >50%")

    if data.get("ownership_renounced") is False:
        add("warning", "Ownership not renounced")
    if data.get("liquidity_locked") is False:
        add("warning", "Liquidity not locked")
    if data.get("can_mint") is True:
        add("warning", "Mintable token")
    if data.get("can_pause") is True:
        add("warning", "Trading can be paused")
    if data.get("can_blacklist") is True:
        add("warning", "Blacklist function exists")
    if data.get("is_proxy") is True:
        add("warning", "Proxy contract (upgradeable)")
    if top10 is not None and top10 > 50:
        add("warning", "Top 10 hold >50%")

    if data.get("is_verified") is True:
        add("info", "Contract verified")
    if data.get("is_audited") is True:
        add("info", "Audited")
    if data.get("lp_burned") is True:
        add("info", "LP burned")
    if data.get("ownership_renounced") is True:
        add("info", "Ownership renounced")
    return flags


def calculate_safety_score(data: Any) -> Dict[str, Any]:
    """Return {score, breakdown, risk_level, flags} for any input."""
    if isinstance(data, Mapping):
        breakdown = {name: fn(data) for name, fn in FACTORS.items()}
    else:
        breakdown = {name: 0 for name in FACTORS}

    total = sum(breakdown[name] * SCORE_WEIGHTS[name] for name in FACTORS)
    # round half up, so 98.5 -> 99 (Python's round() is banker's rounding)
    score = _clamp(int(total + 0.5))
    return {
        "score": score,
        "breakdown": breakdown,
        "risk_level": get_risk_level(score),
        "flags": generate_flags(data),
    }
