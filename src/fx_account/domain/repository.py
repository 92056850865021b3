"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock or in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fx_account.domain.models import Account


class AccountRepositoryProtocol(Protocol):
    async def list_accounts(self, db: AsyncSession) -> list[Account]: ...

    async def get_account_by_id(
        self, db: AsyncSession, account_id: int
    ) -> Account | None: ...

    async def list_accounts_by_currency(
        self, db: AsyncSession, currency: str
    ) -> list[Account]: ...

    async def set_balance(
        self, db: AsyncSession, account_id: int, balance: Decimal
    ) -> Account | None: ...

    async def adjust_balance(
        self, db: AsyncSession, account_id: int, delta: Decimal
    ) -> Account | None: ...

    async def insert_account(self, db: AsyncSession, account: Account) -> None: ...

    async def find_duplicate_currencies(
        self, db: AsyncSession
    ) -> dict[str, list[int]]: ...
