"""Domain models for fx_exchange — request, result and protocol stages."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class ExchangeStage(str, Enum):
    """Exchange state machine. Every failure exits straight to LOGGED."""

    RATE_LOOKUP = "RATE_LOOKUP"
    FUNDS_CHECK = "FUNDS_CHECK"
    DEBIT_CLIENT = "DEBIT_CLIENT"
    CREDIT_CLIENT = "CREDIT_CLIENT"
    SETTLE_INTERNAL = "SETTLE_INTERNAL"
    LOGGED = "LOGGED"


# Observation strings recorded on declined exchanges. Kept verbatim: clients match on them.
OBS_INSUFFICIENT_FUNDS = "Not enough funds on counter currency account"
OBS_DEBIT_FAILED = "Could not withdraw from clients' account"
OBS_CREDIT_FAILED = "Could not transfer to clients' account"
OBS_COMPENSATION_FAILED = "Compensation failed: client base account left debited"


@dataclass(frozen=True)
class ExchangeRequest:
    base_currency: str
    counter_currency: str
    base_account_id: str     # client account debited with base_amount
    counter_account_id: str  # client account credited with counter_amount
    base_amount: Decimal


@dataclass(frozen=True)
class ExchangeResult:
    """One exchange attempt. Immutable; appended to the log exactly once."""

    id: str
    timestamp: datetime
    ok: bool
    request: ExchangeRequest
    exchange_rate: Decimal | None  # None when no rate could be looked up
    counter_amount: Decimal        # 0 unless ok
    obs: str | None = None
