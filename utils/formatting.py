"""
Formatting utilities.
"""

from typing import Optional


def format_currency(amount: Optional[float], currency: str = "EUR") -> str:
    """
    Format an amount as currency.

    Args:
        amount: The amount in whole units (e.g., euros, not cents).
        currency: Currency code (default EUR).

    Returns:
        Formatted currency string, or "n/a" when there is no amount.
    """
    if not amount:
        return "n/a"
    symbols = {
        "EUR": "€",
        "GBP": "£",
        "USD": "$",
    }
    symbol = symbols.get(currency, currency + " ")
    return f"{symbol}{int(round(amount)):,}"


def format_area(area: Optional[float], area_type: str = "build") -> str:
    """Format an area in square metres with its type, e.g. "180 m² (build)"."""
    if not area:
        return "n/a"
    return f"{int(round(area))} m² ({area_type})"
