"""AccountStore — internal currency accounts behind a cache-aside layer.

Reads go cache-first (Redis) and fall back to PostgreSQL on a miss.
Writes commit to PostgreSQL first, then invalidate every cache key the
account appears under (all / by id / by currency). A Redis failure at that
point is logged, not raised: the write already committed and the TTL bounds
the staleness. The exchange funds check therefore reads PostgreSQL directly.

Concurrency: balance adjustments are atomic SQL increments, so no update is
lost. On top of that, `lock()` hands out per-account asyncio locks; the
exchange coordinator holds them from its funds check until settlement so two
exchanges cannot both spend the same counter-currency funds. The locks are
process-local.
"""

import asyncio
import logging
from collections import Counter
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AsyncExitStack, asynccontextmanager
from decimal import Decimal

from pydantic import TypeAdapter
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fx_account.domain.models import Account
from src.fx_account.domain.repository import AccountRepositoryProtocol
from src.fx_account.infrastructure.persistence import AccountRepository
from src.fx_common.cache import CacheAside
from src.fx_common.database import SessionFactory, store_guard
from src.fx_common.errors import AccountNotFoundError, DuplicateCurrencyAccountError

logger = logging.getLogger(__name__)

_ACCOUNT = TypeAdapter(Account)
_ACCOUNT_LIST = TypeAdapter(list[Account])


class AccountStore:
    def __init__(
        self,
        session_factory: SessionFactory,
        cache: CacheAside,
        repo: AccountRepositoryProtocol | None = None,
        ttl: int = settings.ACCOUNT_CACHE_TTL_SECONDS,
    ) -> None:
        self._session_factory = session_factory
        self._cache = cache
        self._repo: AccountRepositoryProtocol = repo or AccountRepository()
        self._ttl = ttl
        # Locks live only while held or awaited, so unknown ids leave nothing behind
        self._locks: dict[int, asyncio.Lock] = {}
        self._lock_users: Counter[int] = Counter()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_accounts(self) -> list[Account]:
        accounts = await self._cache.read(
            self._cache.key("all"), self._load_all, _ACCOUNT_LIST, self._ttl
        )
        return accounts or []

    async def get_account_by_id(self, account_id: int) -> Account:
        async def load() -> Account | None:
            async with store_guard(), self._session_factory() as db:
                return await self._repo.get_account_by_id(db, account_id)

        account = await self._cache.read(
            self._cache.key("id", account_id), load, _ACCOUNT, self._ttl
        )
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def get_account_by_currency(self, currency: str) -> Account:
        """The single internal account for currency. Duplicates are a configuration error."""

        async def load() -> list[Account] | None:
            async with store_guard(), self._session_factory() as db:
                matches = await self._repo.list_accounts_by_currency(db, currency)
            return matches or None

        matches = await self._cache.read(
            self._cache.key("currency", currency), load, _ACCOUNT_LIST, self._ttl
        )
        if not matches:
            raise AccountNotFoundError(f"currency {currency}")
        if len(matches) > 1:
            raise DuplicateCurrencyAccountError(currency, [a.id for a in matches])
        return matches[0]

    async def load_account(self, account_id: int) -> Account:
        """Read straight from PostgreSQL. Used under the lock, where a cached balance may be stale."""
        async with store_guard(), self._session_factory() as db:
            account = await self._repo.get_account_by_id(db, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set_balance(self, account_id: int, balance: Decimal) -> Account:
        """Administrative overwrite. The only path allowed to drive a balance negative."""
        async with self.lock(account_id):
            async with store_guard(), self._session_factory() as db, db.begin():
                account = await self._repo.set_balance(db, account_id, balance)
            if account is None:
                raise AccountNotFoundError(account_id)
            await self._invalidate(account)
        logger.info("Balance overwritten: account=%s balance=%s", account_id, balance)
        return account

    async def adjust_balance(self, account_id: int, delta: Decimal) -> Account:
        (account,) = await self.apply_adjustments({account_id: delta})
        return account

    async def apply_adjustments(
        self,
        adjustments: dict[int, Decimal],
        in_transaction: Callable[[AsyncSession], Awaitable[None]] | None = None,
    ) -> list[Account]:
        """Apply every delta in one transaction; any missing account rolls back all of them.

        `in_transaction` runs inside the same transaction after the deltas, so a
        record written there commits or rolls back together with the balances.
        """
        updated: list[Account] = []
        async with store_guard(), self._session_factory() as db, db.begin():
            for account_id, delta in sorted(adjustments.items()):
                account = await self._repo.adjust_balance(db, account_id, delta)
                if account is None:
                    raise AccountNotFoundError(account_id)
                updated.append(account)
            if in_transaction is not None:
                await in_transaction(db)
        await self._invalidate(*updated)
        return updated

    @asynccontextmanager
    async def lock(self, *account_ids: int) -> AsyncIterator[None]:
        """Hold the per-account locks, acquired in id order to rule out deadlock. Not re-entrant."""
        ids = sorted(set(account_ids))
        for account_id in ids:
            self._lock_users[account_id] += 1
        try:
            async with AsyncExitStack() as stack:
                for account_id in ids:
                    lock = self._locks.setdefault(account_id, asyncio.Lock())
                    await stack.enter_async_context(lock)
                yield
        finally:
            for account_id in ids:
                self._lock_users[account_id] -= 1
                if not self._lock_users[account_id]:
                    del self._lock_users[account_id]
                    del self._locks[account_id]

    async def verify_single_account_per_currency(self) -> None:
        async with store_guard(), self._session_factory() as db:
            duplicates = await self._repo.find_duplicate_currencies(db)
        if duplicates:
            currency = min(duplicates)
            raise DuplicateCurrencyAccountError(currency, duplicates[currency])

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load_all(self) -> list[Account]:
        async with store_guard(), self._session_factory() as db:
            return await self._repo.list_accounts(db)

    async def _invalidate(self, *accounts: Account) -> None:
        keys = {self._cache.key("all")}
        for account in accounts:
            keys.add(self._cache.key("id", account.id))
            keys.add(self._cache.key("currency", account.currency))
        await self._cache.invalidate_committed(*sorted(keys), ttl=self._ttl)
