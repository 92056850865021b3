"""RateRepository — concrete implementation of RateRepositoryProtocol.

A currency exists once it has a row in `currencies`; pairs live in
`exchange_rates`, one row per direction. The reciprocal pair is written by
the caller inside the same transaction.
"""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fx_rates.domain.models import RateRow, RateTable

_LIST_CURRENCIES_SQL = text("""
    SELECT code FROM currencies ORDER BY code
""")

_GET_RATE_ROW_SQL = text("""
    SELECT c.code AS base_currency, r.counter_currency, r.rate
    FROM currencies c
    LEFT JOIN exchange_rates r ON r.base_currency = c.code
    WHERE c.code = :base_currency
    ORDER BY r.counter_currency
""")

_GET_RATE_TABLE_SQL = text("""
    SELECT c.code AS base_currency, r.counter_currency, r.rate
    FROM currencies c
    LEFT JOIN exchange_rates r ON r.base_currency = c.code
    ORDER BY c.code, r.counter_currency
""")

_UPSERT_RATE_SQL = text("""
    INSERT INTO exchange_rates (base_currency, counter_currency, rate)
    VALUES (:base_currency, :counter_currency, :rate)
    ON CONFLICT (base_currency, counter_currency) DO UPDATE
        SET rate = EXCLUDED.rate,
            updated_at = NOW()
""")

_INSERT_CURRENCY_SQL = text("""
    INSERT INTO currencies (code) VALUES (:code)
    ON CONFLICT (code) DO NOTHING
""")


def _rows_to_table(rows: list) -> RateTable:  # type: ignore[type-arg]
    table: RateTable = {}
    for row in rows:
        quotes = table.setdefault(row.base_currency, {})
        if row.counter_currency is not None:
            quotes[row.counter_currency] = Decimal(row.rate)
    return table


class RateRepository:
    async def list_currencies(self, db: AsyncSession) -> list[str]:
        result = await db.execute(_LIST_CURRENCIES_SQL)
        return [row.code for row in result.fetchall()]

    async def get_rate_row(self, db: AsyncSession, base_currency: str) -> RateRow | None:
        result = await db.execute(_GET_RATE_ROW_SQL, {"base_currency": base_currency})
        table = _rows_to_table(result.fetchall())
        if base_currency not in table:
            return None
        return RateRow(base_currency=base_currency, rates=table[base_currency])

    async def get_rate_table(self, db: AsyncSession) -> RateTable:
        result = await db.execute(_GET_RATE_TABLE_SQL)
        return _rows_to_table(result.fetchall())

    async def upsert_rate(
        self, db: AsyncSession, base_currency: str, counter_currency: str, rate: Decimal
    ) -> None:
        await db.execute(
            _UPSERT_RATE_SQL,
            {
                "base_currency": base_currency,
                "counter_currency": counter_currency,
                "rate": rate,
            },
        )

    async def insert_currency(self, db: AsyncSession, code: str) -> None:
        await db.execute(_INSERT_CURRENCY_SQL, {"code": code})
