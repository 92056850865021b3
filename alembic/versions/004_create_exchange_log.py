"""004: create exchange_log table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE exchange_log (
            seq                 BIGSERIAL    PRIMARY KEY,
            id                  VARCHAR(32)  NOT NULL,
            ts                  TIMESTAMPTZ  NOT NULL,
            ok                  BOOLEAN      NOT NULL,
            base_currency       VARCHAR(8)   NOT NULL,
            counter_currency    VARCHAR(8)   NOT NULL,
            base_account_id     VARCHAR(64)  NOT NULL,
            counter_account_id  VARCHAR(64)  NOT NULL,
            base_amount         NUMERIC      NOT NULL,
            exchange_rate       NUMERIC,
            counter_amount      NUMERIC      NOT NULL DEFAULT 0,
            obs                 VARCHAR(500),
            CONSTRAINT uq_exchange_log_id UNIQUE (id),
            CONSTRAINT ck_exchange_log_obs CHECK (ok OR obs IS NOT NULL)
        );
    """)
    op.execute("CREATE INDEX idx_exchange_log_ts ON exchange_log (ts);")
    op.execute("""
        CREATE TRIGGER trg_exchange_log_append_only
            BEFORE UPDATE OR DELETE ON exchange_log
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE exchange_log IS 'Exchange attempts, append-only: never updated or deleted';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS exchange_log CASCADE;")
