"""Repository Protocol for exchange rates and the currency registry."""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fx_rates.domain.models import RateRow, RateTable


class RateRepositoryProtocol(Protocol):
    async def list_currencies(self, db: AsyncSession) -> list[str]: ...

    async def get_rate_row(self, db: AsyncSession, base_currency: str) -> RateRow | None: ...

    async def get_rate_table(self, db: AsyncSession) -> RateTable: ...

    async def upsert_rate(
        self, db: AsyncSession, base_currency: str, counter_currency: str, rate: Decimal
    ) -> None: ...

    async def insert_currency(self, db: AsyncSession, code: str) -> None: ...
