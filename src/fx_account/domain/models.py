"""Domain models for fx_account — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass
class Account:
    """One of the service's internal accounts. Exactly one per currency."""

    id: int
    currency: str
    balance: Decimal
