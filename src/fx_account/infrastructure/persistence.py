"""AccountRepository — concrete implementation of AccountRepositoryProtocol.

Balance adjustments use an atomic PostgreSQL UPDATE ... SET balance = balance + :delta
RETURNING, so concurrent adjustments never lose an update.
A result of 0 rows means the account does not exist.

Transaction ownership: The CALLER (AccountStore) starts and commits the
transaction via `async with db.begin()`.
"""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fx_account.domain.models import Account

# ---------------------------------------------------------------------------
# SQL: reads
# ---------------------------------------------------------------------------

_LIST_ACCOUNTS_SQL = text("""
    SELECT id, currency, balance
    FROM accounts
    ORDER BY id
""")

_GET_ACCOUNT_SQL = text("""
    SELECT id, currency, balance
    FROM accounts
    WHERE id = :account_id
""")

_LIST_BY_CURRENCY_SQL = text("""
    SELECT id, currency, balance
    FROM accounts
    WHERE currency = :currency
    ORDER BY id
""")

_DUPLICATE_CURRENCIES_SQL = text("""
    SELECT currency, array_agg(id ORDER BY id) AS ids
    FROM accounts
    GROUP BY currency
    HAVING COUNT(*) > 1
""")

# ---------------------------------------------------------------------------
# SQL: mutations
# ---------------------------------------------------------------------------

_SET_BALANCE_SQL = text("""
    UPDATE accounts
    SET balance = :balance,
        updated_at = NOW()
    WHERE id = :account_id
    RETURNING id, currency, balance
""")

_ADJUST_BALANCE_SQL = text("""
    UPDATE accounts
    SET balance = balance + :delta,
        updated_at = NOW()
    WHERE id = :account_id
    RETURNING id, currency, balance
""")

_INSERT_ACCOUNT_SQL = text("""
    INSERT INTO accounts (id, currency, balance)
    VALUES (:id, :currency, :balance)
""")


def _row_to_account(row: object) -> Account:
    return Account(
        id=int(row.id),  # type: ignore[attr-defined]
        currency=row.currency,  # type: ignore[attr-defined]
        balance=Decimal(row.balance),  # type: ignore[attr-defined]
    )


class AccountRepository:
    """Concrete repository — every mutation is a single atomic statement."""

    async def list_accounts(self, db: AsyncSession) -> list[Account]:
        result = await db.execute(_LIST_ACCOUNTS_SQL)
        return [_row_to_account(row) for row in result.fetchall()]

    async def get_account_by_id(
        self, db: AsyncSession, account_id: int
    ) -> Account | None:
        result = await db.execute(_GET_ACCOUNT_SQL, {"account_id": account_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def list_accounts_by_currency(
        self, db: AsyncSession, currency: str
    ) -> list[Account]:
        result = await db.execute(_LIST_BY_CURRENCY_SQL, {"currency": currency})
        return [_row_to_account(row) for row in result.fetchall()]

    async def set_balance(
        self, db: AsyncSession, account_id: int, balance: Decimal
    ) -> Account | None:
        result = await db.execute(
            _SET_BALANCE_SQL, {"account_id": account_id, "balance": balance}
        )
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def adjust_balance(
        self, db: AsyncSession, account_id: int, delta: Decimal
    ) -> Account | None:
        result = await db.execute(
            _ADJUST_BALANCE_SQL, {"account_id": account_id, "delta": delta}
        )
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def insert_account(self, db: AsyncSession, account: Account) -> None:
        await db.execute(
            _INSERT_ACCOUNT_SQL,
            {"id": account.id, "currency": account.currency, "balance": account.balance},
        )

    async def find_duplicate_currencies(
        self, db: AsyncSession
    ) -> dict[str, list[int]]:
        result = await db.execute(_DUPLICATE_CURRENCIES_SQL)
        return {row.currency: list(row.ids) for row in result.fetchall()}
