"""ExchangeLogRepository — append-only exchange_log table.

`seq` (BIGSERIAL) gives insertion order; `id` is the public snowflake id.
UPDATE and DELETE are rejected by database triggers (see migration 004).
"""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fx_exchange.domain.models import ExchangeRequest, ExchangeResult

_INSERT_LOG_SQL = text("""
    INSERT INTO exchange_log
        (id, ts, ok, base_currency, counter_currency,
         base_account_id, counter_account_id, base_amount,
         exchange_rate, counter_amount, obs)
    VALUES
        (:id, :ts, :ok, :base_currency, :counter_currency,
         :base_account_id, :counter_account_id, :base_amount,
         :exchange_rate, :counter_amount, :obs)
""")

_LIST_LOG_SQL = text("""
    SELECT id, ts, ok, base_currency, counter_currency,
           base_account_id, counter_account_id, base_amount,
           exchange_rate, counter_amount, obs
    FROM exchange_log
    ORDER BY seq
""")

_COUNT_LOG_SQL = text("SELECT COUNT(*) FROM exchange_log")


def _row_to_result(row: object) -> ExchangeResult:
    request = ExchangeRequest(
        base_currency=row.base_currency,  # type: ignore[attr-defined]
        counter_currency=row.counter_currency,  # type: ignore[attr-defined]
        base_account_id=row.base_account_id,  # type: ignore[attr-defined]
        counter_account_id=row.counter_account_id,  # type: ignore[attr-defined]
        base_amount=Decimal(row.base_amount),  # type: ignore[attr-defined]
    )
    rate = row.exchange_rate  # type: ignore[attr-defined]
    return ExchangeResult(
        id=row.id,  # type: ignore[attr-defined]
        timestamp=row.ts,  # type: ignore[attr-defined]
        ok=row.ok,  # type: ignore[attr-defined]
        request=request,
        exchange_rate=Decimal(rate) if rate is not None else None,
        counter_amount=Decimal(row.counter_amount),  # type: ignore[attr-defined]
        obs=row.obs,  # type: ignore[attr-defined]
    )


class ExchangeLogRepository:
    async def append(self, db: AsyncSession, result: ExchangeResult) -> None:
        await db.execute(
            _INSERT_LOG_SQL,
            {
                "id": result.id,
                "ts": result.timestamp,
                "ok": result.ok,
                "base_currency": result.request.base_currency,
                "counter_currency": result.request.counter_currency,
                "base_account_id": result.request.base_account_id,
                "counter_account_id": result.request.counter_account_id,
                "base_amount": result.request.base_amount,
                "exchange_rate": result.exchange_rate,
                "counter_amount": result.counter_amount,
                "obs": result.obs,
            },
        )

    async def list_all(self, db: AsyncSession) -> list[ExchangeResult]:
        result = await db.execute(_LIST_LOG_SQL)
        return [_row_to_result(row) for row in result.fetchall()]

    async def count(self, db: AsyncSession) -> int:
        result = await db.execute(_COUNT_LOG_SQL)
        return int(result.scalar_one())
