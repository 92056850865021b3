"""Repository Protocol for the append-only exchange log."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fx_exchange.domain.models import ExchangeResult


class ExchangeLogRepositoryProtocol(Protocol):
    async def append(self, db: AsyncSession, result: ExchangeResult) -> None: ...

    async def list_all(self, db: AsyncSession) -> list[ExchangeResult]: ...

    async def count(self, db: AsyncSession) -> int: ...
