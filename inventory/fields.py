"""Coercion of editor input into the values sent to the API.

Form inputs arrive as strings. Anything that does not parse to a
non-negative number counts as "unset" and is simply not sent.
"""

import math
from typing import Any, Optional

__all__ = ["parse_price", "parse_stock", "clean_text", "clean_id"]


def parse_price(value: Any) -> Optional[float]:
    """'500' -> 500.0; '', None, 'abc' and negatives -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return price


def parse_stock(value: Any) -> Optional[int]:
    """'3' -> 3, '3.9' -> 3; '', None, 'abc' and negatives -> None."""
    price = parse_price(value)
    if price is None:
        return None
    return int(price)


def clean_text(value: Any) -> Optional[str]:
    """Trimmed text, or None when blank."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def clean_id(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)
