"""Shared test fixtures.

In-memory stand-ins for PostgreSQL repositories, Redis and the transfer rail,
so the stores and the coordinator run their real code paths without services.
"""

import os

# Must be set before src.* imports read settings
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import asyncio  # noqa: E402
from collections import defaultdict  # noqa: E402
from collections.abc import AsyncIterator, Callable  # noqa: E402
from contextlib import asynccontextmanager  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402

from src.container import Container  # noqa: E402
from src.fx_account.application.service import AccountStore  # noqa: E402
from src.fx_account.domain.models import Account  # noqa: E402
from src.fx_common.cache import CacheAside  # noqa: E402
from src.fx_exchange.application.coordinator import TransferCoordinator  # noqa: E402
from src.fx_exchange.application.transaction_log import TransactionLog  # noqa: E402
from src.fx_exchange.domain.models import ExchangeResult  # noqa: E402
from src.fx_rates.domain.models import RateRow, RateTable  # noqa: E402
from src.fx_rates.application.service import RateStore  # noqa: E402
from src.main import app  # noqa: E402

# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


class FakeRedis:
    """Dict-backed subset of redis.asyncio.Redis (decode_responses=True)."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.gets = 0
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise RedisConnectionError("redis is down")

    async def get(self, name: str) -> str | None:
        self._check()
        self.gets += 1
        return self.data.get(name)

    async def set(
        self, name: str, value: Any, ex: int | None = None, nx: bool = False
    ) -> bool | None:
        self._check()
        if nx and name in self.data:
            return None
        self.data[name] = value.decode() if isinstance(value, bytes) else str(value)
        if ex is not None:
            self.ttls[name] = ex
        return True

    async def delete(self, *names: str) -> int:
        self._check()
        removed = 0
        for name in names:
            if self.data.pop(name, None) is not None:
                removed += 1
            self.ttls.pop(name, None)
        return removed

    async def incr(self, name: str) -> int:
        self._check()
        value = int(self.data.get(name, "0")) + 1
        self.data[name] = str(value)
        return value

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self)


class FakePipeline:
    """Queues commands and replays them against FakeRedis on execute()."""

    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._queued: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc: object) -> bool:
        return False

    def set(self, *args: Any, **kwargs: Any) -> "FakePipeline":
        self._queued.append(("set", args, kwargs))
        return self

    def incr(self, *args: Any, **kwargs: Any) -> "FakePipeline":
        self._queued.append(("incr", args, kwargs))
        return self

    async def execute(self) -> list[Any]:
        self._redis._check()
        return [await getattr(self._redis, name)(*args, **kwargs) for name, args, kwargs in self._queued]


# ---------------------------------------------------------------------------
# Sessions and repositories
# ---------------------------------------------------------------------------


class FakeSession:
    def __init__(self) -> None:
        self.transactions = 0

    @asynccontextmanager
    async def begin(self) -> AsyncIterator["FakeSession"]:
        self.transactions += 1
        yield self

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc: object) -> bool:
        return False


class InMemoryAccountRepository:
    def __init__(self, accounts: list[Account] | None = None) -> None:
        self.accounts: dict[int, Account] = {a.id: a for a in accounts or []}
        self.reads = 0

    def _copy(self, account: Account) -> Account:
        return Account(id=account.id, currency=account.currency, balance=account.balance)

    async def list_accounts(self, db: Any) -> list[Account]:
        self.reads += 1
        return [self._copy(a) for _, a in sorted(self.accounts.items())]

    async def get_account_by_id(self, db: Any, account_id: int) -> Account | None:
        self.reads += 1
        account = self.accounts.get(account_id)
        return self._copy(account) if account else None

    async def list_accounts_by_currency(self, db: Any, currency: str) -> list[Account]:
        self.reads += 1
        return [self._copy(a) for _, a in sorted(self.accounts.items()) if a.currency == currency]

    async def set_balance(self, db: Any, account_id: int, balance: Decimal) -> Account | None:
        account = self.accounts.get(account_id)
        if account is None:
            return None
        account.balance = balance
        return self._copy(account)

    async def adjust_balance(self, db: Any, account_id: int, delta: Decimal) -> Account | None:
        account = self.accounts.get(account_id)
        if account is None:
            return None
        account.balance = account.balance + delta
        return self._copy(account)

    async def insert_account(self, db: Any, account: Account) -> None:
        self.accounts[account.id] = self._copy(account)

    async def find_duplicate_currencies(self, db: Any) -> dict[str, list[int]]:
        by_currency: dict[str, list[int]] = {}
        for account_id, account in sorted(self.accounts.items()):
            by_currency.setdefault(account.currency, []).append(account_id)
        return {c: ids for c, ids in by_currency.items() if len(ids) > 1}

    def balance(self, account_id: int) -> Decimal:
        return self.accounts[account_id].balance


class InMemoryRateRepository:
    def __init__(self, table: RateTable | None = None) -> None:
        self.table: RateTable = {base: dict(q) for base, q in (table or {}).items()}
        self.reads = 0

    async def list_currencies(self, db: Any) -> list[str]:
        return sorted(self.table)

    async def get_rate_row(self, db: Any, base_currency: str) -> RateRow | None:
        self.reads += 1
        if base_currency not in self.table:
            return None
        return RateRow(base_currency=base_currency, rates=dict(self.table[base_currency]))

    async def get_rate_table(self, db: Any) -> RateTable:
        self.reads += 1
        return {base: dict(q) for base, q in sorted(self.table.items())}

    async def upsert_rate(
        self, db: Any, base_currency: str, counter_currency: str, rate: Decimal
    ) -> None:
        self.table[base_currency][counter_currency] = rate

    async def insert_currency(self, db: Any, code: str) -> None:
        self.table.setdefault(code, {})


class InMemoryLogRepository:
    def __init__(self) -> None:
        self.entries: list[ExchangeResult] = []

    async def append(self, db: Any, result: ExchangeResult) -> None:
        self.entries.append(result)

    async def list_all(self, db: Any) -> list[ExchangeResult]:
        return list(self.entries)

    async def count(self, db: Any) -> int:
        return len(self.entries)


# ---------------------------------------------------------------------------
# Transfer rail
# ---------------------------------------------------------------------------


class ScriptedTransferExecutor:
    """Succeeds unless a token suffix (debit/credit/refund) is scripted to fail."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Decimal, str]] = []
        self.failing: set[str] = set()
        self.raising: dict[str, Exception] = {}
        self.hang: set[str] = set()
        self.net: defaultdict[str, Decimal] = defaultdict(Decimal)

    async def transfer(
        self, from_account: str, to_account: str, amount: Decimal, token: str
    ) -> bool:
        self.calls.append((from_account, to_account, amount, token))
        leg = token.rsplit(":", 1)[-1]
        if leg in self.hang:
            await asyncio.sleep(3600)
        if leg in self.raising:
            raise self.raising[leg]
        if leg in self.failing:
            return False
        self.net[from_account] -= amount
        self.net[to_account] += amount
        return True

    def legs(self) -> list[str]:
        return [token.rsplit(":", 1)[-1] for *_, token in self.calls]


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


def make_accounts() -> list[Account]:
    return [
        Account(id=1, currency="ARS", balance=Decimal("120000000")),
        Account(id=2, currency="BRL", balance=Decimal("60000")),
        Account(id=3, currency="EUR", balance=Decimal("50000")),
        Account(id=4, currency="USD", balance=Decimal("75000")),
    ]


def make_rate_table() -> RateTable:
    return {
        "ARS": {"BRL": Decimal("0.00553"), "EUR": Decimal("0.00091"), "USD": Decimal("0.00094")},
        "BRL": {"ARS": Decimal("180.8")},
        "EUR": {"ARS": Decimal("1104")},
        "USD": {"ARS": Decimal("1064")},
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def session_factory() -> Callable[[], FakeSession]:
    return FakeSession


@pytest.fixture
def account_repo() -> InMemoryAccountRepository:
    return InMemoryAccountRepository(make_accounts())


@pytest.fixture
def rate_repo() -> InMemoryRateRepository:
    return InMemoryRateRepository(make_rate_table())


@pytest.fixture
def log_repo() -> InMemoryLogRepository:
    return InMemoryLogRepository()


@pytest.fixture
def account_store(session_factory, fake_redis, account_repo) -> AccountStore:
    return AccountStore(session_factory, CacheAside(fake_redis, "accounts"), repo=account_repo, ttl=5)


@pytest.fixture
def rate_store(session_factory, fake_redis, rate_repo) -> RateStore:
    return RateStore(session_factory, CacheAside(fake_redis, "rates"), repo=rate_repo, ttl=60)


@pytest.fixture
def transaction_log(session_factory, log_repo) -> TransactionLog:
    return TransactionLog(session_factory, repo=log_repo)


@pytest.fixture
def transfers() -> ScriptedTransferExecutor:
    return ScriptedTransferExecutor()


@pytest.fixture
def coordinator(rate_store, account_store, transaction_log, transfers) -> TransferCoordinator:
    return TransferCoordinator(
        rate_store, account_store, transaction_log, transfers, transfer_timeout=0.05
    )


@pytest.fixture
def container(account_store, rate_store, transaction_log, coordinator) -> Container:
    return Container(
        accounts=account_store, rates=rate_store, log=transaction_log, coordinator=coordinator
    )


@pytest.fixture
async def client(container: Container) -> AsyncIterator[AsyncClient]:
    """Async HTTP client for testing FastAPI endpoints against the in-memory container."""
    app.state.container = container
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    del app.state.container
