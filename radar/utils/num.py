# radar/utils/num.py
import math
from typing import Optional


def safe_float(x, default: Optional[float] = None) -> Optional[float]:
    """float(x) for real numbers / numeric strings; `default` for anything else (bools included)."""
    if x is None or isinstance(x, bool):
        return default
    try:
        v = float(x)
    except (TypeError, ValueError):
        return default
    if math.isnan(v) or math.isinf(v):
        return default
    return v


def safe_int(x, default: Optional[int] = None) -> Optional[int]:
    v = safe_float(x)
    return default if v is None else int(v)
