"""002: create currencies and exchange_rates tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE currencies (
            code        VARCHAR(8)  PRIMARY KEY,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("""
        CREATE TABLE exchange_rates (
            base_currency     VARCHAR(8)  NOT NULL REFERENCES currencies (code),
            counter_currency  VARCHAR(8)  NOT NULL REFERENCES currencies (code),
            rate              NUMERIC     NOT NULL,
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_exchange_rates PRIMARY KEY (base_currency, counter_currency),
            CONSTRAINT ck_exchange_rates_rate_gt_0 CHECK (rate > 0),
            CONSTRAINT ck_exchange_rates_distinct CHECK (base_currency <> counter_currency)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_exchange_rates_updated_at
            BEFORE UPDATE ON exchange_rates
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute(
        "COMMENT ON TABLE exchange_rates IS "
        "'Bid rates, one row per direction; B→A = round(1/(A→B), 5)';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS exchange_rates CASCADE;")
    op.execute("DROP TABLE IF EXISTS currencies CASCADE;")
