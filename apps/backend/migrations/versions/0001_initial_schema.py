"""Initial schema for fintrack reconciliation."""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _owned_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
    ]


def _entity_columns() -> list[sa.Column]:
    return [
        sa.Column("source", sa.String(length=50), nullable=True),
        sa.Column("source_identifier", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    transaction_type_enum = sa.Enum("debit", "credit", name="transaction_type_enum")
    data_type_enum = sa.Enum(
        "transactions",
        "stocks",
        "mutual_funds",
        "fixed_deposits",
        "emis",
        "bank_accounts",
        "long_term",
        name="sync_data_type_enum",
    )
    run_status_enum = sa.Enum("success", "partial", "failed", name="sync_run_status_enum")

    op.create_table(
        "bank_accounts",
        *_owned_columns(),
        sa.Column("bank_name", sa.String(length=100), nullable=True),
        sa.Column("account_number", sa.String(length=64), nullable=False, index=True),
        sa.Column("account_type", sa.String(length=30), nullable=True),
        sa.Column("account_name", sa.String(length=255), nullable=True),
        sa.Column("balance", sa.Numeric(18, 2), nullable=True),
        *_entity_columns(),
    )

    op.create_table(
        "transactions",
        *_owned_columns(),
        sa.Column("account_number", sa.String(length=64), nullable=False, index=True),
        sa.Column("bank_name", sa.String(length=100), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("txn_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("transaction_type", transaction_type_enum, nullable=True),
        sa.Column("merchant", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("reference_number", sa.String(length=100), nullable=True),
        sa.Column("duplicate_score", sa.Integer(), nullable=False, server_default="0"),
        *_entity_columns(),
    )
    op.create_index("ix_transactions_user_duplicate_score", "transactions", ["user_id", "duplicate_score"])

    op.create_table(
        "stocks",
        *_owned_columns(),
        sa.Column("symbol", sa.String(length=50), nullable=False),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        sa.Column("platform", sa.String(length=50), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 6), nullable=True),
        sa.Column("average_price", sa.Numeric(18, 2), nullable=True),
        sa.Column("invested_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("current_value", sa.Numeric(18, 2), nullable=True),
        sa.Column("current_price", sa.Numeric(18, 2), nullable=True),
        *_entity_columns(),
    )

    op.create_table(
        "mutual_funds",
        *_owned_columns(),
        sa.Column("fund_name", sa.String(length=255), nullable=False),
        sa.Column("folio_number", sa.String(length=50), nullable=False),
        sa.Column("amc", sa.String(length=100), nullable=True),
        sa.Column("units", sa.Numeric(18, 4), nullable=True),
        sa.Column("nav", sa.Numeric(18, 4), nullable=True),
        sa.Column("invested_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("current_value", sa.Numeric(18, 2), nullable=True),
        sa.Column("plan_type", sa.String(length=20), nullable=True),
        sa.Column("option_type", sa.String(length=20), nullable=True),
        *_entity_columns(),
    )

    op.create_table(
        "fixed_deposits",
        *_owned_columns(),
        sa.Column("bank_name", sa.String(length=100), nullable=False),
        sa.Column("fd_number", sa.String(length=64), nullable=True),
        sa.Column("principal_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("interest_rate", sa.Numeric(6, 3), nullable=True),
        sa.Column("tenure_months", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("maturity_date", sa.Date(), nullable=False),
        sa.Column("maturity_value", sa.Numeric(18, 2), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=True),
        *_entity_columns(),
    )

    op.create_table(
        "emis",
        *_owned_columns(),
        sa.Column("loan_name", sa.String(length=255), nullable=False),
        sa.Column("loan_type", sa.String(length=30), nullable=True),
        sa.Column("bank_name", sa.String(length=100), nullable=True),
        sa.Column("principal_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("interest_rate", sa.Numeric(6, 3), nullable=True),
        sa.Column("tenure_months", sa.Integer(), nullable=True),
        sa.Column("emi_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=True),
        *_entity_columns(),
    )

    op.create_table(
        "long_term_funds",
        *_owned_columns(),
        sa.Column("fund_type", sa.String(length=30), nullable=False),
        sa.Column("account_number", sa.String(length=64), nullable=False),
        sa.Column("organization_name", sa.String(length=255), nullable=True),
        sa.Column("current_value", sa.Numeric(18, 2), nullable=True),
        *_entity_columns(),
    )

    op.create_table(
        "sync_ledger_entries",
        *_owned_columns(),
        sa.Column("data_type", data_type_enum, nullable=False),
        sa.Column("source", sa.String(length=50), nullable=False),
        sa.Column("source_identifier", sa.String(length=255), nullable=False),
        sa.Column("source_file_hash", sa.String(length=64), nullable=True),
        sa.Column("last_known_date", sa.Date(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "user_id",
            "data_type",
            "source",
            "source_identifier",
            name="uq_sync_ledger_user_type_source_identifier",
        ),
    )

    op.create_table(
        "sync_runs",
        *_owned_columns(),
        sa.Column(
            "data_type",
            postgresql.ENUM(name="sync_data_type_enum", create_type=False),
            nullable=False,
        ),
        sa.Column("source", sa.String(length=50), nullable=False),
        sa.Column("status", run_status_enum, nullable=False),
        sa.Column("records_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_updated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_sync_runs_user_created_at", "sync_runs", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_sync_runs_user_created_at", table_name="sync_runs")
    op.drop_table("sync_runs")
    op.drop_table("sync_ledger_entries")
    op.drop_table("long_term_funds")
    op.drop_table("emis")
    op.drop_table("fixed_deposits")
    op.drop_table("mutual_funds")
    op.drop_table("stocks")
    op.drop_index("ix_transactions_user_duplicate_score", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("bank_accounts")

    op.execute("DROP TYPE IF EXISTS sync_run_status_enum")
    op.execute("DROP TYPE IF EXISTS sync_data_type_enum")
    op.execute("DROP TYPE IF EXISTS transaction_type_enum")
