"""initial schema

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None

CURRENCIES = ("USD", "EUR", "GBP", "CAD", "MXN", "JPY", "AUD")


def _currency(nullable: bool = False) -> sa.Column:
    return sa.Column(
        "currency_code",
        sa.Enum(*CURRENCIES, name="currencycode"),
        nullable=nullable,
        server_default=None if nullable else "USD",
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "checking",
                "savings",
                "credit",
                "cash",
                "investment",
                "other",
                name="accounttype",
            ),
            nullable=False,
        ),
        sa.Column(
            "account_class", sa.Enum("asset", "liability", name="accountclass")
        ),
        _currency(),
        *_timestamps(),
    )
    op.create_index("ix_accounts_user", "accounts", ["user_id"])

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="categorytype"), nullable=False
        ),
        sa.Column("icon", sa.String(length=40)),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id", "type", "name", name="uq_category_user_type_name"
        ),
    )

    op.create_table(
        "recurring_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=120)),
        sa.Column("merchant", sa.String(length=200)),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="categorytype"), nullable=False
        ),
        sa.Column("category_id", sa.Integer()),
        sa.Column("account_id", sa.Integer()),
        _currency(nullable=True),
        sa.Column(
            "cadence",
            sa.Enum(
                "daily",
                "weekly",
                "biweekly",
                "monthly",
                "quarterly",
                "yearly",
                name="cadence",
            ),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("next_run", sa.Date(), nullable=False),
        sa.Column("last_run", sa.Date()),
        sa.Column("end_date", sa.Date()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text()),
        sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
        *_timestamps(),
        sa.CheckConstraint("amount_cents >= 0", name="ck_recurring_amount_positive"),
    )
    op.create_index(
        "ix_recurring_user_active_next",
        "recurring_transactions",
        ["user_id", "active", "next_run"],
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", "transfer", name="transactionkind")
        ),
        sa.Column(
            "transaction_kind",
            sa.Enum("income", "expense", "transfer", name="transactionkind"),
        ),
        _currency(),
        sa.Column("category_id", sa.Integer()),
        sa.Column("account_id", sa.Integer()),
        sa.Column("from_account_id", sa.Integer()),
        sa.Column("to_account_id", sa.Integer()),
        sa.Column("merchant", sa.String(length=200)),
        sa.Column("notes", sa.Text()),
        sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column(
            "recurring_id",
            sa.Integer(),
            sa.ForeignKey(
                "recurring_transactions.id",
                name="fk_transactions_recurring_id_recurring_transactions",
                ondelete="SET NULL",
            ),
        ),
        sa.Column("occurrence_date", sa.Date()),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id",
            "recurring_id",
            "occurrence_date",
            name="uq_txn_recurring_occurrence",
        ),
        sa.CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_currency_date",
        "transactions",
        ["user_id", "currency_code", "date"],
    )

    op.create_table(
        "transaction_splits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "transaction_id",
            sa.Integer(),
            sa.ForeignKey(
                "transactions.id",
                name="fk_transaction_splits_transaction_id_transactions",
                ondelete="CASCADE",
            ),
            nullable=False,
        ),
        sa.Column("category_id", sa.Integer()),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("note", sa.String(length=200)),
        *_timestamps(),
        sa.CheckConstraint("amount_cents >= 0", name="ck_split_amount_positive"),
    )
    op.create_index(
        "ix_transaction_splits_transaction", "transaction_splits", ["transaction_id"]
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("month", sa.Date(), nullable=False),
        sa.Column("limit_cents", sa.Integer(), nullable=False),
        _currency(),
        *_timestamps(),
        sa.CheckConstraint("limit_cents >= 0", name="ck_budget_limit_positive"),
        sa.UniqueConstraint(
            "user_id",
            "category_id",
            "month",
            "currency_code",
            name="uq_budget_user_category_month",
        ),
    )

    op.create_table(
        "overall_budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("month", sa.Date(), nullable=False),
        sa.Column("limit_cents", sa.Integer(), nullable=False),
        _currency(),
        *_timestamps(),
        sa.CheckConstraint(
            "limit_cents >= 0", name="ck_overall_budget_limit_positive"
        ),
        sa.UniqueConstraint(
            "user_id", "month", "currency_code", name="uq_overall_budget_user_month"
        ),
    )

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("target_cents", sa.Integer(), nullable=False),
        sa.Column("current_cents", sa.Integer(), nullable=False, server_default="0"),
        _currency(),
        sa.Column("due_date", sa.Date()),
        *_timestamps(),
        sa.CheckConstraint("target_cents >= 0", name="ck_goal_target_positive"),
    )

    op.create_table(
        "subscription_candidates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("merchant", sa.String(length=200), nullable=False),
        sa.Column("avg_amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "interval_guess",
            sa.Enum("weekly", "monthly", "unknown", name="intervalguess"),
            nullable=False,
            server_default="unknown",
        ),
        sa.Column("next_due_date", sa.Date()),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint(
            "confidence >= 0 AND confidence <= 1",
            name="ck_candidate_confidence_range",
        ),
    )


def downgrade():
    op.drop_table("subscription_candidates")
    op.drop_table("goals")
    op.drop_table("overall_budgets")
    op.drop_table("budgets")
    op.drop_index("ix_transaction_splits_transaction", table_name="transaction_splits")
    op.drop_table("transaction_splits")
    op.drop_index("ix_transactions_user_currency_date", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_recurring_user_active_next", table_name="recurring_transactions")
    op.drop_table("recurring_transactions")
    op.drop_table("categories")
    op.drop_index("ix_accounts_user", table_name="accounts")
    op.drop_table("accounts")
