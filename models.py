from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class TransactionKind(str, Enum):
    income = "income"
    expense = "expense"
    transfer = "transfer"


def resolve_kind(explicit: object, legacy: object) -> TransactionKind:
    """Collapse the explicit and legacy direction fields into one kind.

    The explicit value wins when it is usable; rows with neither are legacy
    expenses.
    """
    for value in (explicit, legacy):
        if value is None or value == "":
            continue
        try:
            return TransactionKind(value)
        except ValueError:
            continue
    return TransactionKind.expense


class CategoryType(str, Enum):
    income = "income"
    expense = "expense"


class CurrencyCode(str, Enum):
    usd = "USD"
    eur = "EUR"
    gbp = "GBP"
    cad = "CAD"
    mxn = "MXN"
    jpy = "JPY"
    aud = "AUD"


def _values_enum(enum_cls: type[Enum], name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


CURRENCY_CODE_ENUM = _values_enum(CurrencyCode, "currencycode")
TRANSACTION_KIND_ENUM = _values_enum(TransactionKind, "transactionkind")


class AccountType(str, Enum):
    checking = "checking"
    savings = "savings"
    credit = "credit"
    cash = "cash"
    investment = "investment"
    other = "other"


class AccountClass(str, Enum):
    asset = "asset"
    liability = "liability"


class Cadence(str, Enum):
    daily = "daily"
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


class IntervalGuess(str, Enum):
    weekly = "weekly"
    monthly = "monthly"
    unknown = "unknown"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType), nullable=False, default=AccountType.checking
    )
    account_class: Mapped[Optional[AccountClass]] = mapped_column(SAEnum(AccountClass))
    currency_code: Mapped[CurrencyCode] = mapped_column(
        CURRENCY_CODE_ENUM, nullable=False, default=CurrencyCode.usd
    )

    __table_args__ = (Index("ix_accounts_user", "user_id"),)


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[CategoryType] = mapped_column(SAEnum(CategoryType), nullable=False)
    icon: Mapped[Optional[str]] = mapped_column(String(40))

    __table_args__ = (
        UniqueConstraint("user_id", "type", "name", name="uq_category_user_type_name"),
    )


class Transaction(Base, TimestampMixin):
    """A ledger row as the store keeps it.

    ``type`` is the legacy direction column and ``transaction_kind`` the
    explicit one; readers go through :attr:`kind`, which prefers the explicit
    column. Account and category ids are plain integers so that deleting an
    account or category leaves the reference dangling instead of cascading.
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[Optional[TransactionKind]] = mapped_column(TRANSACTION_KIND_ENUM)
    transaction_kind: Mapped[Optional[TransactionKind]] = mapped_column(
        TRANSACTION_KIND_ENUM
    )
    currency_code: Mapped[CurrencyCode] = mapped_column(
        CURRENCY_CODE_ENUM, nullable=False, default=CurrencyCode.usd
    )
    category_id: Mapped[Optional[int]] = mapped_column(Integer)
    account_id: Mapped[Optional[int]] = mapped_column(Integer)
    from_account_id: Mapped[Optional[int]] = mapped_column(Integer)
    to_account_id: Mapped[Optional[int]] = mapped_column(Integer)
    merchant: Mapped[Optional[str]] = mapped_column(String(200))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    recurring_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("recurring_transactions.id", ondelete="SET NULL")
    )
    occurrence_date: Mapped[Optional[date]] = mapped_column(Date)

    splits: Mapped[list["TransactionSplit"]] = relationship(
        "TransactionSplit",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionSplit.id",
    )
    recurring: Mapped[Optional["RecurringTransaction"]] = relationship(
        "RecurringTransaction", back_populates="transactions"
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "recurring_id",
            "occurrence_date",
            name="uq_txn_recurring_occurrence",
        ),
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_currency_date", "user_id", "currency_code", "date"),
        CheckConstraint("amount_cents >= 0", name="ck_transactions_amount_positive"),
    )

    @property
    def kind(self) -> TransactionKind:
        return resolve_kind(self.transaction_kind, self.type)


class TransactionSplit(Base, TimestampMixin):
    __tablename__ = "transaction_splits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[Optional[int]] = mapped_column(Integer)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(String(200))

    transaction: Mapped["Transaction"] = relationship(
        "Transaction", back_populates="splits"
    )

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_split_amount_positive"),
        Index("ix_transaction_splits_transaction", "transaction_id"),
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    category_id: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[date] = mapped_column(Date, nullable=False)
    limit_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency_code: Mapped[CurrencyCode] = mapped_column(
        CURRENCY_CODE_ENUM, nullable=False, default=CurrencyCode.usd
    )

    __table_args__ = (
        CheckConstraint("limit_cents >= 0", name="ck_budget_limit_positive"),
        UniqueConstraint(
            "user_id",
            "category_id",
            "month",
            "currency_code",
            name="uq_budget_user_category_month",
        ),
    )


class OverallBudget(Base, TimestampMixin):
    __tablename__ = "overall_budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    month: Mapped[date] = mapped_column(Date, nullable=False)
    limit_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency_code: Mapped[CurrencyCode] = mapped_column(
        CURRENCY_CODE_ENUM, nullable=False, default=CurrencyCode.usd
    )

    __table_args__ = (
        CheckConstraint("limit_cents >= 0", name="ck_overall_budget_limit_positive"),
        UniqueConstraint(
            "user_id", "month", "currency_code", name="uq_overall_budget_user_month"
        ),
    )


class Goal(Base, TimestampMixin):
    __tablename__ = "goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    target_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency_code: Mapped[CurrencyCode] = mapped_column(
        CURRENCY_CODE_ENUM, nullable=False, default=CurrencyCode.usd
    )
    due_date: Mapped[Optional[date]] = mapped_column(Date)

    __table_args__ = (
        CheckConstraint("target_cents >= 0", name="ck_goal_target_positive"),
    )


class RecurringTransaction(Base, TimestampMixin):
    __tablename__ = "recurring_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[Optional[str]] = mapped_column(String(120))
    merchant: Mapped[Optional[str]] = mapped_column(String(200))
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[CategoryType] = mapped_column(SAEnum(CategoryType), nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(Integer)
    account_id: Mapped[Optional[int]] = mapped_column(Integer)
    currency_code: Mapped[Optional[CurrencyCode]] = mapped_column(CURRENCY_CODE_ENUM)
    cadence: Mapped[Cadence] = mapped_column(SAEnum(Cadence), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    next_run: Mapped[date] = mapped_column(Date, nullable=False)
    last_run: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="recurring"
    )

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_recurring_amount_positive"),
        Index("ix_recurring_user_active_next", "user_id", "active", "next_run"),
    )


class SubscriptionCandidate(Base, TimestampMixin):
    __tablename__ = "subscription_candidates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    merchant: Mapped[str] = mapped_column(String(200), nullable=False)
    avg_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    interval_guess: Mapped[IntervalGuess] = mapped_column(
        SAEnum(IntervalGuess), nullable=False, default=IntervalGuess.unknown
    )
    next_due_date: Mapped[Optional[date]] = mapped_column(Date)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    __table_args__ = (
        CheckConstraint(
            "confidence >= 0 AND confidence <= 1", name="ck_candidate_confidence_range"
        ),
    )
