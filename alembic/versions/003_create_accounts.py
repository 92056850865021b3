"""003: create accounts table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # No UNIQUE (currency): duplicates are reported by the application at startup
    # instead of failing the seed insert half-way.
    op.execute("""
        CREATE TABLE accounts (
            id          BIGINT      PRIMARY KEY,
            currency    VARCHAR(8)  NOT NULL REFERENCES currencies (code),
            balance     NUMERIC     NOT NULL DEFAULT 0,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_accounts_currency ON accounts (currency);")
    op.execute("""
        CREATE TRIGGER trg_accounts_updated_at
            BEFORE UPDATE ON accounts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE accounts IS 'Internal service accounts, one per currency';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS accounts CASCADE;")
