"""index transactions for candidate lookup by time and bank reference

Revision ID: 0002_transaction_lookup_indexes
Revises: 0001_initial_schema
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_transaction_lookup_indexes"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index("ix_transactions_user_txn_time", "transactions", ["user_id", "txn_time"])
    op.create_index("ix_transactions_user_reference_number", "transactions", ["user_id", "reference_number"])


def downgrade() -> None:
    op.drop_index("ix_transactions_user_reference_number", table_name="transactions")
    op.drop_index("ix_transactions_user_txn_time", table_name="transactions")
