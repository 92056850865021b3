"""Domain models for fx_rates."""

from dataclasses import dataclass, field
from decimal import Decimal

# base currency -> counter currency -> rate
RateTable = dict[str, dict[str, Decimal]]


@dataclass
class RateRow:
    """Every quoted rate for one base currency. An empty `rates` is a registered, unquoted currency."""

    base_currency: str
    rates: dict[str, Decimal] = field(default_factory=dict)
