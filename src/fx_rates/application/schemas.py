"""Pydantic schemas for fx_rates API."""

from decimal import Decimal

from pydantic import BaseModel, Field, RootModel, field_validator

from src.fx_rates.domain.models import RateRow


class SetRateRequest(BaseModel):
    base_currency: str = Field(..., min_length=3, max_length=3, alias="baseCurrency")
    counter_currency: str = Field(..., min_length=3, max_length=3, alias="counterCurrency")
    rate: Decimal = Field(..., gt=0)

    model_config = {"populate_by_name": True}

    @field_validator("base_currency", "counter_currency")
    @classmethod
    def _upper(cls, value: str) -> str:
        if not value.isalpha():
            raise ValueError("currency code must be alphabetic")
        return value.upper()


class RateRowResponse(BaseModel):
    base_currency: str
    rates: dict[str, Decimal]

    @classmethod
    def from_domain(cls, row: RateRow) -> "RateRowResponse":
        return cls(base_currency=row.base_currency, rates=dict(row.rates))


class RateTableResponse(RootModel[dict[str, dict[str, Decimal]]]):
    """base -> counter -> rate; rates serialize as exact decimal strings."""


class SetRateResponse(BaseModel):
    base: RateRowResponse
    counter: RateRowResponse
