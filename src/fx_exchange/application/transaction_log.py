"""TransactionLog — append-only record of every exchange attempt."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.fx_common.database import SessionFactory, store_guard
from src.fx_exchange.domain.models import ExchangeResult
from src.fx_exchange.domain.repository import ExchangeLogRepositoryProtocol
from src.fx_exchange.infrastructure.persistence import ExchangeLogRepository


class TransactionLog:
    def __init__(
        self,
        session_factory: SessionFactory,
        repo: ExchangeLogRepositoryProtocol | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._repo: ExchangeLogRepositoryProtocol = repo or ExchangeLogRepository()

    async def append(self, result: ExchangeResult) -> None:
        async with store_guard(), self._session_factory() as db, db.begin():
            await self._repo.append(db, result)

    async def append_in(self, db: AsyncSession, result: ExchangeResult) -> None:
        """Append inside a transaction the caller owns (settlement writes the log with the balances)."""
        await self._repo.append(db, result)

    async def get_all(self) -> list[ExchangeResult]:
        """Every entry, oldest first."""
        async with store_guard(), self._session_factory() as db:
            return await self._repo.list_all(db)
