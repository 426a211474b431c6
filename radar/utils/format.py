# radar/utils/format.py
# Purpose: Display helpers shared by the CLI, badges and alert text.
from radar.utils.num import safe_float

BADGE_COLORS = {
    "safe": "#22c55e",
    "warning": "#eab308",
    "danger": "#ef4444",
    "error": "#6b7280",
    "loading": "#3b82f6",
}


def format_number(num) -> str:
    v = safe_float(num)
    if v is None:
        return "N/A"
    if v >= 1e9:
        return f"{v / 1e9:.2f}B"
    if v >= 1e6:
        return f"{v / 1e6:.2f}M"
    if v >= 1e3:
        return f"{v / 1e3:.2f}K"
    return f"{v:.2f}"


def format_percent(value, is_decimal: bool = False) -> str:
    v = safe_float(value)
    if v is None:
        return "N/A"
    return f"{v * 100 if is_decimal else v:.2f}%"


def truncate_address(address, start: int = 6, end: int = 4) -> str:
    if not address:
        return ""
    if len(address) <= start + end:
        return address
    return f"{address[:start]}...{address[-end:]}"


def score_label(score) -> str:
    v = safe_float(score)
    if v is None:
        return "Unknown"
    if v >= 80:
        return "Safe"
    if v >= 50:
        return "Caution"
    return "Danger"
