"""Bootstrap seeding — populate an empty store from JSON files on disk.

Files in SEED_DIR:
  accounts.json  [{"id": 1, "currency": "ARS", "balance": "120000000"}, ...]
  rates.json     {"EUR": {"ARS": "1104"}, "ARS": {"EUR": "0.00091"}, ...}
  log.json       optional, list of exchange results, either in this service's
                 snake_case shape or the camelCase one older exports use
                 ({"ts": ..., "exchangeRate": ..., "counterAmount": ...,
                 "request": {"baseCurrency": ...} or {"from", "to", "amount"}})

Seeding runs once at startup and only when accounts, currencies and the
exchange log are all empty. Everything is inserted in one transaction.
Amounts are written as JSON strings so they parse to exact Decimals.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter

from src.fx_account.domain.models import Account
from src.fx_account.domain.repository import AccountRepositoryProtocol
from src.fx_account.infrastructure.persistence import AccountRepository
from src.fx_common.database import SessionFactory, store_guard
from src.fx_common.datetime_utils import ensure_utc
from src.fx_common.errors import DuplicateCurrencyAccountError, InvalidRateError
from src.fx_common.money import reciprocal_rate
from src.fx_exchange.domain.models import ExchangeRequest, ExchangeResult
from src.fx_exchange.domain.repository import ExchangeLogRepositoryProtocol
from src.fx_exchange.infrastructure.persistence import ExchangeLogRepository
from src.fx_rates.domain.models import RateTable
from src.fx_rates.domain.repository import RateRepositoryProtocol
from src.fx_rates.infrastructure.persistence import RateRepository

logger = logging.getLogger(__name__)

ACCOUNTS_FILE = "accounts.json"
RATES_FILE = "rates.json"
LOG_FILE = "log.json"

_ACCOUNTS = TypeAdapter(list[Account])
_RATES = TypeAdapter(RateTable)


class SeedLogRequest(BaseModel):
    model_config = {"coerce_numbers_to_str": True}

    base_currency: str = Field(
        validation_alias=AliasChoices("base_currency", "baseCurrency", "from")
    )
    counter_currency: str = Field(
        validation_alias=AliasChoices("counter_currency", "counterCurrency", "to")
    )
    # Generated history carries no client accounts
    base_account_id: str = Field(
        "", validation_alias=AliasChoices("base_account_id", "baseAccountId")
    )
    counter_account_id: str = Field(
        "", validation_alias=AliasChoices("counter_account_id", "counterAccountId")
    )
    base_amount: Decimal = Field(
        validation_alias=AliasChoices("base_amount", "baseAmount", "amount")
    )


class SeedLogEntry(BaseModel):
    id: str
    timestamp: datetime = Field(validation_alias=AliasChoices("timestamp", "ts"))
    ok: bool
    request: SeedLogRequest
    exchange_rate: Decimal | None = Field(
        None, validation_alias=AliasChoices("exchange_rate", "exchangeRate")
    )
    counter_amount: Decimal = Field(
        Decimal(0), validation_alias=AliasChoices("counter_amount", "counterAmount")
    )
    obs: str | None = None

    def to_domain(self) -> ExchangeResult:
        req = self.request
        return ExchangeResult(
            id=self.id,
            timestamp=ensure_utc(self.timestamp),
            ok=self.ok,
            request=ExchangeRequest(
                base_currency=req.base_currency.upper(),
                counter_currency=req.counter_currency.upper(),
                base_account_id=req.base_account_id,
                counter_account_id=req.counter_account_id,
                base_amount=req.base_amount,
            ),
            exchange_rate=self.exchange_rate,
            counter_amount=self.counter_amount,
            obs=self.obs,
        )


_LOG = TypeAdapter(list[SeedLogEntry])


@dataclass
class SeedData:
    accounts: list[Account]
    rates: RateTable
    log: list[ExchangeResult] = field(default_factory=list)

    def currencies(self) -> set[str]:
        codes = {a.currency for a in self.accounts}
        for base, quotes in self.rates.items():
            codes.add(base)
            codes.update(quotes)
        return codes

    def pair_count(self) -> int:
        return sum(len(quotes) for quotes in self.rates.values())


def validate_seed_data(data: SeedData) -> None:
    """Reject duplicate currency accounts and non-positive or self rates; warn on non-reciprocal pairs."""
    seen: dict[str, list[int]] = {}
    for account in data.accounts:
        seen.setdefault(account.currency, []).append(account.id)
    for currency, ids in sorted(seen.items()):
        if len(ids) > 1:
            raise DuplicateCurrencyAccountError(currency, ids)

    for base, quotes in data.rates.items():
        for counter, rate in quotes.items():
            if counter == base:
                raise InvalidRateError(f"{base} cannot be quoted against itself")
            if rate <= 0:
                raise InvalidRateError(f"{base}→{counter} must be positive, got {rate}")
            back = data.rates.get(counter, {}).get(base)
            if back is None:
                logger.warning("Seed rate %s→%s has no reciprocal entry", base, counter)
            elif back != reciprocal_rate(rate) and rate != reciprocal_rate(back):
                logger.warning(
                    "Seed rates %s→%s=%s and %s→%s=%s are not reciprocal",
                    base, counter, rate, counter, base, back,
                )


def load_seed_data(seed_dir: Path) -> SeedData:
    accounts = _ACCOUNTS.validate_json((seed_dir / ACCOUNTS_FILE).read_bytes())
    rates = _RATES.validate_json((seed_dir / RATES_FILE).read_bytes())
    log_path = seed_dir / LOG_FILE
    entries = _LOG.validate_json(log_path.read_bytes()) if log_path.exists() else []
    log = sorted((e.to_domain() for e in entries), key=lambda r: r.timestamp)
    data = SeedData(accounts=accounts, rates=rates, log=log)
    validate_seed_data(data)
    return data


async def seed_if_empty(
    session_factory: SessionFactory,
    seed_dir: Path,
    account_repo: AccountRepositoryProtocol | None = None,
    rate_repo: RateRepositoryProtocol | None = None,
    log_repo: ExchangeLogRepositoryProtocol | None = None,
) -> bool:
    """Seed the store from seed_dir if it is empty. Returns True when data was inserted."""
    account_repo = account_repo or AccountRepository()
    rate_repo = rate_repo or RateRepository()
    log_repo = log_repo or ExchangeLogRepository()

    async with store_guard(), session_factory() as db, db.begin():
        populated = (
            await account_repo.list_accounts(db)
            or await rate_repo.list_currencies(db)
            or await log_repo.count(db)
        )
        if populated:
            logger.info("Store already populated, skipping seed")
            return False

        logger.info("No data in store, seeding from %s", seed_dir)
        data = load_seed_data(seed_dir)
        for code in sorted(data.currencies()):
            await rate_repo.insert_currency(db, code)
        for account in data.accounts:
            await account_repo.insert_account(db, account)
        for base, quotes in data.rates.items():
            for counter, rate in quotes.items():
                await rate_repo.upsert_rate(db, base, counter, rate)
        for entry in data.log:
            await log_repo.append(db, entry)

    logger.info(
        "Seeded %d accounts, %d rate pairs, %d log entries",
        len(data.accounts), data.pair_count(), len(data.log),
    )
    return True
