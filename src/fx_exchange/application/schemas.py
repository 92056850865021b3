"""Pydantic schemas for fx_exchange API."""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.fx_exchange.domain.models import ExchangeRequest, ExchangeResult


class ExchangeRequestBody(BaseModel):
    """Accepts both snake_case and the camelCase field names existing clients send."""

    model_config = {"populate_by_name": True}

    base_currency: str = Field(..., min_length=3, max_length=3, alias="baseCurrency")
    counter_currency: str = Field(..., min_length=3, max_length=3, alias="counterCurrency")
    base_account_id: str = Field(..., min_length=1, max_length=64, alias="baseAccountId")
    counter_account_id: str = Field(..., min_length=1, max_length=64, alias="counterAccountId")
    base_amount: Decimal = Field(..., gt=0, alias="baseAmount")

    @field_validator("base_currency", "counter_currency")
    @classmethod
    def _upper(cls, value: str) -> str:
        if not value.isalpha():
            raise ValueError("currency code must be alphabetic")
        return value.upper()

    @field_validator("base_account_id", "counter_account_id", mode="before")
    @classmethod
    def _account_id_as_str(cls, value: object) -> object:
        # Clients send numeric account ids as JSON numbers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def to_domain(self) -> ExchangeRequest:
        return ExchangeRequest(
            base_currency=self.base_currency,
            counter_currency=self.counter_currency,
            base_account_id=self.base_account_id,
            counter_account_id=self.counter_account_id,
            base_amount=self.base_amount,
        )


class ExchangeRequestItem(BaseModel):
    base_currency: str
    counter_currency: str
    base_account_id: str
    counter_account_id: str
    base_amount: Decimal


class ExchangeResultItem(BaseModel):
    id: str
    timestamp: str  # ISO8601 string
    ok: bool
    request: ExchangeRequestItem
    exchange_rate: Decimal | None
    counter_amount: Decimal
    obs: str | None

    @classmethod
    def from_domain(cls, result: ExchangeResult) -> "ExchangeResultItem":
        req = result.request
        return cls(
            id=result.id,
            timestamp=result.timestamp.isoformat(),
            ok=result.ok,
            request=ExchangeRequestItem(
                base_currency=req.base_currency,
                counter_currency=req.counter_currency,
                base_account_id=req.base_account_id,
                counter_account_id=req.counter_account_id,
                base_amount=req.base_amount,
            ),
            exchange_rate=result.exchange_rate,
            counter_amount=result.counter_amount,
            obs=result.obs,
        )


class ExchangeLogResponse(BaseModel):
    items: list[ExchangeResultItem]
