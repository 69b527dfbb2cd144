from __future__ import annotations


def cents_to_amount(cents: int | None) -> str:
    """1234 -> "12.34" (no grouping, no symbol)."""
    cents = cents or 0
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole}.{frac:02d}"


def format_money(cents: int | None, prefix: str = "") -> str:
    """1234567 -> "12,345.67" with an optional currency prefix."""
    cents = cents or 0
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{prefix}{whole:,}.{frac:02d}"
