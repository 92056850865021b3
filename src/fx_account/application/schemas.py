"""Pydantic schemas for fx_account API."""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.fx_account.domain.models import Account
from src.fx_common.money import format_amount

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class SetBalanceRequest(BaseModel):
    # Administrative override: negative balances are accepted here and only here
    balance: Decimal = Field(..., description="New absolute balance")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    id: int
    currency: str
    balance: Decimal
    balance_display: str

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            currency=account.currency,
            balance=account.balance,
            balance_display=format_amount(account.balance, account.currency),
        )


class AccountListResponse(BaseModel):
    items: list[AccountResponse]
