"""
Formatting helpers for the text summaries returned alongside structured data.
"""

from typing import Optional


def format_pair(pair: str) -> str:
    """btc_jpy -> BTC/JPY"""
    return (pair or "").upper().replace("_", "/", 1)


def format_number(value: float, max_decimals: int = 3) -> str:
    """Thousands separators, up to `max_decimals` fraction digits, no trailing zeros."""
    text = f"{value:,.{max_decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_price(price: Optional[float], is_jpy: bool) -> str:
    if price is None:
        return "N/A"
    if is_jpy:
        return f"¥{format_number(price)}"
    return format_number(price)


def format_change(change_pct: Optional[float]) -> str:
    """Signed percentage with 2 decimals; empty string when unknown."""
    if change_pct is None:
        return ""
    sign = "+" if change_pct >= 0 else ""
    return f"{sign}{change_pct:.2f}%"


def format_volume(volume: Optional[float], base_currency: str) -> str:
    if volume is None:
        return "N/A"
    if volume >= 1000:
        return f"{volume / 1000:.2f}K {base_currency}"
    return f"{volume:.4f} {base_currency}"


def format_trade_volume(total: float) -> str:
    """Sub-unit totals get 6 decimals, everything else 4."""
    return f"{total:.4f}" if total >= 1 else f"{total:.6f}"
