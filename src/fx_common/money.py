"""Decimal arithmetic utilities for balances and exchange rates.

All amounts and rates are decimal.Decimal. No float anywhere in the core.
"""

from decimal import ROUND_HALF_UP, Decimal

RECIPROCAL_PLACES = 5
_RECIPROCAL_QUANTUM = Decimal(1).scaleb(-RECIPROCAL_PLACES)  # 0.00001


def reciprocal_rate(rate: Decimal) -> Decimal:
    """round(1 / rate, 5), half-up. 1104 -> 0.00091, 180.8 -> 0.00553."""
    if rate <= 0:
        raise ValueError(f"Rate must be positive, got {rate}")
    return (Decimal(1) / rate).quantize(_RECIPROCAL_QUANTUM, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal, currency: str) -> str:
    """Display string: Decimal('11040') + 'ARS' -> '11,040.00 ARS'."""
    quantized = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{quantized:,.2f} {currency}"
