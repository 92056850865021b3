"""RateStore — exchange rates with the reciprocal invariant.

Invariant: whenever A→B is stored as r, B→A is stored as round(1/r, 5).
Both directions are written in one PostgreSQL transaction, so readers never
see one side updated without the other. Cache keys for both rows and the
full table are invalidated after the commit.
"""

import logging
from decimal import Decimal

from pydantic import TypeAdapter

from config.settings import settings
from src.fx_common.cache import CacheAside
from src.fx_common.database import SessionFactory, store_guard
from src.fx_common.errors import (
    CurrencyUnknownError,
    InternalError,
    InvalidRateError,
    RateNotFoundError,
)
from src.fx_common.money import reciprocal_rate
from src.fx_rates.domain.models import RateRow, RateTable
from src.fx_rates.domain.repository import RateRepositoryProtocol
from src.fx_rates.infrastructure.persistence import RateRepository

logger = logging.getLogger(__name__)

_RATE_ROW = TypeAdapter(RateRow)
_RATE_TABLE = TypeAdapter(RateTable)


class RateStore:
    def __init__(
        self,
        session_factory: SessionFactory,
        cache: CacheAside,
        repo: RateRepositoryProtocol | None = None,
        ttl: int = settings.RATE_CACHE_TTL_SECONDS,
    ) -> None:
        self._session_factory = session_factory
        self._cache = cache
        self._repo: RateRepositoryProtocol = repo or RateRepository()
        self._ttl = ttl

    async def get_rate(self, base_currency: str) -> RateRow:
        async def load() -> RateRow | None:
            async with store_guard(), self._session_factory() as db:
                return await self._repo.get_rate_row(db, base_currency)

        row = await self._cache.read(
            self._cache.key("row", base_currency), load, _RATE_ROW, self._ttl
        )
        if row is None:
            raise RateNotFoundError(base_currency)
        return row

    async def get_all_rates(self) -> RateTable:
        async def load() -> RateTable:
            async with store_guard(), self._session_factory() as db:
                return await self._repo.get_rate_table(db)

        table = await self._cache.read(self._cache.key("all"), load, _RATE_TABLE, self._ttl)
        return table or {}

    async def set_rate(
        self, base_currency: str, counter_currency: str, rate: Decimal
    ) -> tuple[RateRow, RateRow]:
        """Set base→counter and its reciprocal. Returns (base row, counter row)."""
        if base_currency == counter_currency:
            raise InvalidRateError(f"{base_currency} cannot be quoted against itself")
        if rate <= 0:
            raise InvalidRateError(f"rate must be positive, got {rate}")
        reciprocal = reciprocal_rate(rate)
        if reciprocal == 0:
            raise InvalidRateError(
                f"reciprocal of {rate} rounds to zero at 5 decimal places"
            )

        async with store_guard(), self._session_factory() as db, db.begin():
            known = set(await self._repo.list_currencies(db))
            for currency in (base_currency, counter_currency):
                if currency not in known:
                    raise CurrencyUnknownError(currency)
            # Fixed (base, counter) order: set_rate(A, B) and set_rate(B, A) lock rows alike
            for row_base, row_counter, row_rate in sorted([
                (base_currency, counter_currency, rate),
                (counter_currency, base_currency, reciprocal),
            ]):
                await self._repo.upsert_rate(db, row_base, row_counter, row_rate)
            base_row = await self._repo.get_rate_row(db, base_currency)
            counter_row = await self._repo.get_rate_row(db, counter_currency)

        await self._cache.invalidate_committed(
            self._cache.key("all"),
            self._cache.key("row", base_currency),
            self._cache.key("row", counter_currency),
            ttl=self._ttl,
        )
        logger.info(
            "Rate set: %s→%s=%s, %s→%s=%s",
            base_currency, counter_currency, rate,
            counter_currency, base_currency, reciprocal,
        )
        if base_row is None or counter_row is None:
            raise InternalError("Rate row missing right after upsert; this should never happen")
        return base_row, counter_row
