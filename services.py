from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from aggregation import (
    build_cashflow_series,
    build_merchant_totals,
    build_net_trend_series,
    build_weekday_totals,
    category_totals,
    sum_income_expense,
    top_entries,
)
from balances import (
    build_account_balances,
    build_account_summary,
    build_net_worth_trend,
)
from budgets import budget_progress, goal_progress, overall_budget_progress
from config import get_settings
from insights import (
    detect_category_anomalies,
    find_potential_duplicates,
    month_forecast,
    safe_to_spend,
    upcoming_recurring_net,
)
from ledger import UNCATEGORIZED, kind_conflicts, ledger_key
from models import (
    Account,
    Budget,
    Category,
    CategoryType,
    CurrencyCode,
    Goal,
    OverallBudget,
    RecurringTransaction,
    SubscriptionCandidate,
    Transaction,
    TransactionKind,
    TransactionSplit,
)
from money import format_currency
from periods import Period, month_end, month_start, previous_month
from projections import base_monthly_cents, baseline_rates, savings_projection
from recurrence import (
    MaterializeResult,
    RecurringEngine,
    local_today,
    monthly_equivalent_cents,
)
from schemas import (
    AccountIn,
    BudgetIn,
    CandidateConvertIn,
    CategoryIn,
    GoalIn,
    OverallBudgetIn,
    RecurringRuleIn,
    TransactionIn,
)
from subscriptions import (
    RankedCandidate,
    cadence_from_interval,
    default_next_due_date,
    find_matching_rule,
    interval_label,
    rank_candidates,
    snooze_date_from_interval,
)

logger = logging.getLogger(__name__)

UNKNOWN_ACCOUNT = "Unknown"
UNCATEGORIZED_LABEL = "Uncategorized"


class DuplicateRecurringRule(ValueError):
    pass


def get_current_user_id() -> int:
    return 1


def parse_currency(value: Optional[str]) -> Optional[CurrencyCode]:
    if not value:
        return None
    try:
        return CurrencyCode(value.strip().upper())
    except ValueError as exc:
        raise ValueError(f"Unsupported currency: {value}") from exc


def _category_names(session: Session, user_id: int) -> dict[int, str]:
    rows = session.execute(
        select(Category.id, Category.name).where(Category.user_id == user_id)
    )
    return {row.id: row.name for row in rows}


def _category_label(names: dict[int, str], category_id) -> str:
    if category_id == UNCATEGORIZED or category_id is None:
        return UNCATEGORIZED_LABEL
    return names.get(category_id, UNCATEGORIZED_LABEL)


class AccountService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self, currency: Optional[CurrencyCode] = None) -> list[Account]:
        stmt = select(Account).where(Account.user_id == self.user_id)
        if currency is not None:
            stmt = stmt.where(Account.currency_code == currency)
        return self.session.scalars(stmt.order_by(Account.name)).all()

    def names(self) -> dict[int, str]:
        rows = self.session.execute(
            select(Account.id, Account.name).where(Account.user_id == self.user_id)
        )
        return {row.id: row.name for row in rows}

    def get(self, account_id: int) -> Account:
        account = self.session.get(Account, account_id)
        if not account or account.user_id != self.user_id:
            raise ValueError("Account not found")
        return account

    def create(self, data: AccountIn) -> Account:
        account = Account(
            user_id=self.user_id,
            name=data.name.strip(),
            type=data.type,
            account_class=data.account_class,
            currency_code=data.currency_code,
        )
        self.session.add(account)
        self.session.commit()
        self.session.refresh(account)
        return account

    def delete(self, account_id: int) -> None:
        # Transactions keep the dangling id and render as "Unknown".
        account = self.get(account_id)
        self.session.delete(account)
        self.session.commit()


class CategoryService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self, type: Optional[CategoryType] = None) -> list[Category]:
        stmt = select(Category).where(Category.user_id == self.user_id)
        if type is not None:
            stmt = stmt.where(Category.type == type)
        return self.session.scalars(stmt.order_by(Category.type, Category.name)).all()

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise ValueError("Category not found")
        return category

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        existing = self.session.scalar(
            select(Category).where(
                Category.user_id == self.user_id,
                Category.type == data.type,
                Category.name == name,
            )
        )
        if existing:
            raise ValueError("Category already exists")
        category = Category(
            user_id=self.user_id, name=name, type=data.type, icon=data.icon
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        self.session.delete(category)
        self.session.commit()


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def _check_account(self, account_id: int, currency: CurrencyCode) -> None:
        account = AccountService(self.session, self.user_id).get(account_id)
        if account.currency_code != currency:
            raise ValueError("Account currency mismatch")

    def _check_category(self, category_id: int, kind: TransactionKind) -> None:
        category = CategoryService(self.session, self.user_id).get(category_id)
        if category.type.value != kind.value:
            raise ValueError("Category type mismatch")

    def _build(self, data: TransactionIn) -> Transaction:
        if data.kind == TransactionKind.transfer:
            self._check_account(data.from_account_id, data.currency_code)
            self._check_account(data.to_account_id, data.currency_code)
        else:
            self._check_account(data.account_id, data.currency_code)
            if data.category_id is not None:
                self._check_category(data.category_id, data.kind)
            for split in data.splits:
                self._check_category(split.category_id, data.kind)

        txn = Transaction(
            user_id=self.user_id,
            date=data.date,
            amount_cents=data.amount_cents,
            type=data.kind,
            transaction_kind=data.kind,
            currency_code=data.currency_code,
            category_id=data.category_id,
            account_id=data.account_id,
            from_account_id=data.from_account_id,
            to_account_id=data.to_account_id,
            merchant=data.merchant.strip() if data.merchant else None,
            notes=data.notes,
            tags=list(data.tags),
        )
        txn.splits = [
            TransactionSplit(
                category_id=split.category_id,
                amount_cents=split.amount_cents,
                note=split.note,
            )
            for split in data.splits
        ]
        return txn

    def create(self, data: TransactionIn) -> Transaction:
        txn = self._build(data)
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def bulk_create(self, items: list[TransactionIn]) -> tuple[int, int]:
        """Insert ``items``, skipping rows whose ledger key already exists."""
        if not items:
            return 0, 0
        start = min(item.date for item in items)
        end = max(item.date for item in items)
        seen = {ledger_key(txn) for txn in self.between(start, end)}

        inserted = 0
        skipped = 0
        for item in items:
            key = ledger_key(item)
            if key in seen:
                skipped += 1
                continue
            seen.add(key)
            self.session.add(self._build(item))
            inserted += 1
        self.session.commit()
        logger.info(
            f"bulk_create: user_id={self.user_id} inserted={inserted} skipped={skipped}"
        )
        return inserted, skipped

    def get(self, transaction_id: int) -> Transaction:
        stmt = (
            select(Transaction)
            .options(selectinload(Transaction.splits))
            .where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise ValueError("Transaction not found")
        return txn

    def _select(self, currency: Optional[CurrencyCode] = None):
        stmt = (
            select(Transaction)
            .options(selectinload(Transaction.splits))
            .where(Transaction.user_id == self.user_id)
        )
        if currency is not None:
            stmt = stmt.where(Transaction.currency_code == currency)
        return stmt

    def list(
        self,
        period: Period,
        currency: Optional[CurrencyCode] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        stmt = (
            self._select(currency)
            .where(Transaction.date.between(period.start, period.end))
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return self.session.scalars(stmt).all()

    def between(
        self, start: date, end: date, currency: Optional[CurrencyCode] = None
    ) -> list[Transaction]:
        stmt = (
            self._select(currency)
            .where(Transaction.date.between(start, end))
            .order_by(Transaction.date, Transaction.id)
        )
        return self.session.scalars(stmt).all()

    def all_for_period(
        self, period: Period, currency: Optional[CurrencyCode] = None
    ) -> list[Transaction]:
        return self.between(period.start, period.end, currency)

    def all(self) -> list[Transaction]:
        stmt = self._select().order_by(Transaction.date, Transaction.id)
        return self.session.scalars(stmt).all()

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()


class BudgetService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_for_month(
        self, month: date, currency: Optional[CurrencyCode] = None
    ) -> list[Budget]:
        stmt = select(Budget).where(
            Budget.user_id == self.user_id, Budget.month == month_start(month)
        )
        if currency is not None:
            stmt = stmt.where(Budget.currency_code == currency)
        return self.session.scalars(stmt.order_by(Budget.category_id)).all()

    def upsert(self, data: BudgetIn) -> Budget:
        CategoryService(self.session, self.user_id).get(data.category_id)
        budget = self.session.scalar(
            select(Budget).where(
                Budget.user_id == self.user_id,
                Budget.category_id == data.category_id,
                Budget.month == data.month,
                Budget.currency_code == data.currency_code,
            )
        )
        if budget is None:
            budget = Budget(
                user_id=self.user_id,
                category_id=data.category_id,
                month=data.month,
                currency_code=data.currency_code,
                limit_cents=data.limit_cents,
            )
            self.session.add(budget)
        else:
            budget.limit_cents = data.limit_cents
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def overall_for_month(
        self, month: date, currency: CurrencyCode
    ) -> Optional[OverallBudget]:
        return self.session.scalar(
            select(OverallBudget).where(
                OverallBudget.user_id == self.user_id,
                OverallBudget.month == month_start(month),
                OverallBudget.currency_code == currency,
            )
        )

    def upsert_overall(self, data: OverallBudgetIn) -> OverallBudget:
        budget = self.overall_for_month(data.month, data.currency_code)
        if budget is None:
            budget = OverallBudget(
                user_id=self.user_id,
                month=data.month,
                currency_code=data.currency_code,
                limit_cents=data.limit_cents,
            )
            self.session.add(budget)
        else:
            budget.limit_cents = data.limit_cents
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def delete(self, budget_id: int) -> None:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.user_id != self.user_id:
            raise ValueError("Budget not found")
        self.session.delete(budget)
        self.session.commit()

    def limit_for_month(self, month: date, currency: CurrencyCode) -> int:
        """Overall cap when set, else the sum of the category budgets."""
        overall = self.overall_for_month(month, currency)
        if overall is not None and overall.limit_cents:
            return overall.limit_cents
        return sum(budget.limit_cents for budget in self.list_for_month(month, currency))

    def progress_for_month(
        self,
        month: date,
        currency: Optional[CurrencyCode] = None,
        account_id: Optional[int] = None,
    ) -> dict[str, object]:
        currency = currency or CurrencyCode(get_settings().default_currency)
        start = month_start(month)
        previous = previous_month(start)
        transactions = TransactionService(self.session, self.user_id)

        rows = budget_progress(
            self.list_for_month(start, currency),
            transactions.between(start, month_end(start), currency),
            previous_budgets=self.list_for_month(previous, currency),
            previous_transactions=transactions.between(
                previous, month_end(previous), currency
            ),
            account_id=account_id,
        )
        names = _category_names(self.session, self.user_id)

        overall = None
        overall_budget = self.overall_for_month(start, currency)
        if overall_budget is not None:
            overall = asdict(
                overall_budget_progress(
                    overall_budget.limit_cents,
                    transactions.between(start, month_end(start), currency),
                    account_id=account_id,
                )
            )

        return {
            "month": start.strftime("%Y-%m"),
            "currency": currency.value,
            "budgets": [
                {**asdict(row), "category": _category_label(names, row.category_id)}
                for row in rows
            ],
            "overall": overall,
        }


class GoalService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self) -> list[Goal]:
        stmt = select(Goal).where(Goal.user_id == self.user_id).order_by(Goal.id)
        return self.session.scalars(stmt).all()

    def get(self, goal_id: int) -> Goal:
        goal = self.session.get(Goal, goal_id)
        if not goal or goal.user_id != self.user_id:
            raise ValueError("Goal not found")
        return goal

    def create(self, data: GoalIn) -> Goal:
        goal = Goal(user_id=self.user_id, **data.model_dump())
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def add_progress(self, goal_id: int, amount_cents: int) -> Goal:
        goal = self.get(goal_id)
        goal.current_cents = max(0, goal.current_cents + amount_cents)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def delete(self, goal_id: int) -> None:
        goal = self.get(goal_id)
        self.session.delete(goal)
        self.session.commit()

    def with_progress(self) -> list[dict[str, object]]:
        return [
            {
                "id": goal.id,
                "name": goal.name,
                "target_cents": goal.target_cents,
                "current_cents": goal.current_cents,
                "currency_code": goal.currency_code.value,
                "due_date": goal.due_date.isoformat() if goal.due_date else None,
                **asdict(goal_progress(goal)),
            }
            for goal in self.list_all()
        ]


class RecurringService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, rule_id: int) -> RecurringTransaction:
        rule = self.session.get(RecurringTransaction, rule_id)
        if not rule or rule.user_id != self.user_id:
            raise ValueError("Rule not found")
        return rule

    def list(self, active_only: bool = False) -> list[RecurringTransaction]:
        stmt = select(RecurringTransaction).where(
            RecurringTransaction.user_id == self.user_id
        )
        if active_only:
            stmt = stmt.where(RecurringTransaction.active.is_(True))
        return self.session.scalars(
            stmt.order_by(RecurringTransaction.next_run, RecurringTransaction.id)
        ).all()

    def create(self, data: RecurringRuleIn) -> RecurringTransaction:
        if data.category_id is not None:
            category = CategoryService(self.session, self.user_id).get(data.category_id)
            if category.type != data.type:
                raise ValueError("Category type mismatch")
        values = data.model_dump()
        if data.account_id is not None:
            account = AccountService(self.session, self.user_id).get(data.account_id)
            if data.currency_code is None:
                values["currency_code"] = account.currency_code
            elif data.currency_code != account.currency_code:
                raise ValueError("Account currency mismatch")
        rule = RecurringTransaction(user_id=self.user_id, **values)
        self.session.add(rule)
        self.session.commit()
        self.session.refresh(rule)
        return rule

    def toggle(self, rule_id: int, active: bool) -> RecurringTransaction:
        rule = self.get(rule_id)
        rule.active = active
        self.session.commit()
        return rule

    def delete(self, rule_id: int) -> None:
        rule = self.get(rule_id)
        self.session.delete(rule)
        self.session.commit()

    def materialize(self, today: Optional[date] = None) -> Optional[MaterializeResult]:
        try:
            result = RecurringEngine(self.session).materialize(self.user_id, today)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        if result is not None:
            logger.info(
                f"materialize: user_id={self.user_id} "
                f"inserted={result.inserted} updated={result.updated}"
            )
        return result

    def materialize_all(self, today: Optional[date] = None) -> int:
        """Materialize due rules of every user; returns the rows inserted."""
        today = today or local_today()
        user_ids = self.session.scalars(
            select(RecurringTransaction.user_id)
            .where(
                RecurringTransaction.active.is_(True),
                RecurringTransaction.next_run <= today,
            )
            .distinct()
        ).all()
        inserted = 0
        for user_id in user_ids:
            result = RecurringService(self.session, user_id).materialize(today)
            if result is not None:
                inserted += result.inserted
        return inserted

    def get_statistics(self) -> dict[str, object]:
        names = _category_names(self.session, self.user_id)
        total_income = 0
        total_expenses = 0
        expense_by_category: dict[str, int] = {}
        income_by_category: dict[str, int] = {}

        for rule in self.list(active_only=True):
            monthly = monthly_equivalent_cents(rule)
            label = _category_label(names, rule.category_id)
            if rule.type == CategoryType.income:
                total_income += monthly
                income_by_category[label] = income_by_category.get(label, 0) + monthly
            else:
                total_expenses += monthly
                expense_by_category[label] = expense_by_category.get(label, 0) + monthly

        def build_breakdown(by_category: dict[str, int], total: int) -> list[dict]:
            if total == 0:
                return []
            return [
                {"name": name, "amount_cents": amount, "percent": amount / total * 100}
                for name, amount in top_entries(by_category, limit=len(by_category))
            ]

        return {
            "total_monthly_income": total_income,
            "total_monthly_expenses": total_expenses,
            "net_monthly": total_income - total_expenses,
            "expense_breakdown": build_breakdown(expense_by_category, total_expenses),
            "income_breakdown": build_breakdown(income_by_category, total_income),
        }


class SubscriptionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, candidate_id: int) -> SubscriptionCandidate:
        candidate = self.session.get(SubscriptionCandidate, candidate_id)
        if not candidate or candidate.user_id != self.user_id:
            raise ValueError("Subscription candidate not found")
        return candidate

    def list_ranked(self) -> tuple[list[RankedCandidate], int]:
        candidates = self.session.scalars(
            select(SubscriptionCandidate).where(
                SubscriptionCandidate.user_id == self.user_id
            )
        ).all()
        return rank_candidates(candidates)

    def describe(self, today: Optional[date] = None) -> dict[str, object]:
        ranked, total = self.list_ranked()
        return {
            "total_monthly_cents": total,
            "items": [
                {
                    "id": item.candidate.id,
                    "merchant": item.candidate.merchant,
                    "avg_amount_cents": item.candidate.avg_amount_cents,
                    "interval": interval_label(item.candidate.interval_guess),
                    "confidence": item.candidate.confidence,
                    "monthly_cents": item.monthly_cents,
                    "next_due_date": default_next_due_date(
                        item.candidate, today
                    ).isoformat(),
                }
                for item in ranked
            ],
        }

    def convert(
        self,
        candidate_id: int,
        data: Optional[CandidateConvertIn] = None,
        today: Optional[date] = None,
    ) -> RecurringTransaction:
        data = data or CandidateConvertIn()
        candidate = self.get(candidate_id)
        rules = RecurringService(self.session, self.user_id).list()
        if find_matching_rule(candidate.merchant, rules) is not None:
            raise DuplicateRecurringRule(
                f"A recurring rule already exists for {candidate.merchant}"
            )

        currency = None
        if data.account_id is not None:
            currency = AccountService(self.session, self.user_id).get(
                data.account_id
            ).currency_code
        if data.category_id is not None:
            category = CategoryService(self.session, self.user_id).get(data.category_id)
            if category.type != CategoryType.expense:
                raise ValueError("Category type mismatch")

        due = data.next_due_date or default_next_due_date(candidate, today)
        rule = RecurringTransaction(
            user_id=self.user_id,
            name=candidate.merchant,
            merchant=candidate.merchant,
            amount_cents=candidate.avg_amount_cents,
            type=CategoryType.expense,
            category_id=data.category_id,
            account_id=data.account_id,
            currency_code=currency,
            cadence=data.cadence or cadence_from_interval(candidate.interval_guess),
            start_date=due,
            next_run=due,
            active=True,
            tags=[],
        )
        self.session.add(rule)
        self.session.delete(candidate)
        self.session.commit()
        self.session.refresh(rule)
        logger.info(
            f"subscription_converted: user_id={self.user_id} rule_id={rule.id}"
        )
        return rule

    def snooze(
        self, candidate_id: int, base_date: Optional[date] = None
    ) -> SubscriptionCandidate:
        candidate = self.get(candidate_id)
        candidate.next_due_date = snooze_date_from_interval(
            candidate.interval_guess, base_date
        )
        self.session.commit()
        return candidate

    def ignore(self, candidate_id: int) -> None:
        candidate = self.get(candidate_id)
        self.session.delete(candidate)
        self.session.commit()


class DashboardService:
    """Read-side views: fetch rows for a window, then run the engines."""

    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.transactions = TransactionService(session, self.user_id)

    def _currency(self, currency: Optional[CurrencyCode]) -> CurrencyCode:
        return currency or CurrencyCode(get_settings().default_currency)

    def summary(
        self, period: Period, currency: Optional[CurrencyCode] = None
    ) -> dict[str, object]:
        currency = self._currency(currency)
        totals = sum_income_expense(self.transactions.all_for_period(period, currency))
        return {
            "period": period.slug,
            "start": period.start.isoformat(),
            "end": period.end.isoformat(),
            "currency": currency.value,
            "income_cents": totals.income,
            "expense_cents": totals.expense,
            "net_cents": totals.net,
            "formatted": {
                "income": format_currency(totals.income, currency),
                "expense": format_currency(totals.expense, currency),
                "net": format_currency(totals.net, currency),
            },
        }

    def category_totals(
        self, period: Period, currency: Optional[CurrencyCode] = None
    ) -> list[dict[str, object]]:
        totals = category_totals(
            self.transactions.all_for_period(period, self._currency(currency))
        )
        names = _category_names(self.session, self.user_id)
        return [
            {
                "category_id": None if key == UNCATEGORIZED else key,
                "category": _category_label(names, key),
                "amount_cents": amount,
            }
            for key, amount in top_entries(totals, limit=len(totals))
        ]

    def cashflow(
        self, period: Period, currency: Optional[CurrencyCode] = None, scale: int = 1
    ) -> list[dict[str, object]]:
        txns = self.transactions.all_for_period(period, self._currency(currency))
        return [asdict(point) for point in build_cashflow_series(txns, scale)]

    def net_trend(
        self, period: Period, currency: Optional[CurrencyCode] = None, scale: int = 1
    ) -> list[dict[str, object]]:
        txns = self.transactions.all_for_period(period, self._currency(currency))
        return [asdict(point) for point in build_net_trend_series(txns, scale)]

    def merchants(
        self, period: Period, currency: Optional[CurrencyCode] = None, limit: int = 10
    ) -> list[dict[str, object]]:
        txns = self.transactions.all_for_period(period, self._currency(currency))
        return [
            {"merchant": merchant, "amount_cents": amount}
            for merchant, amount in top_entries(build_merchant_totals(txns), limit)
        ]

    def weekdays(
        self, period: Period, currency: Optional[CurrencyCode] = None
    ) -> dict[str, int]:
        txns = self.transactions.all_for_period(period, self._currency(currency))
        return build_weekday_totals(txns)

    def balances(self, currency: Optional[CurrencyCode] = None) -> dict[str, object]:
        accounts = AccountService(self.session, self.user_id).list_all()
        balances = build_account_balances(accounts, self.transactions.all(), currency)
        summary = build_account_summary(accounts, balances, currency)
        by_id = {account.id: account for account in accounts}
        return {
            "currency": currency.value if currency else None,
            "accounts": [
                {
                    "id": account_id,
                    "name": by_id[account_id].name,
                    "currency_code": by_id[account_id].currency_code.value,
                    "balance_cents": balance,
                }
                for account_id, balance in balances.items()
            ],
            "summary": asdict(summary),
        }

    def net_worth(
        self,
        start: date,
        end: date,
        currency: Optional[CurrencyCode] = None,
    ) -> list[dict[str, object]]:
        accounts = AccountService(self.session, self.user_id).list_all()
        trend = build_net_worth_trend(
            accounts, self.transactions.all(), start, end, self._currency(currency)
        )
        return [asdict(point) for point in trend]

    def insights(
        self, currency: Optional[CurrencyCode] = None, today: Optional[date] = None
    ) -> dict[str, object]:
        currency = self._currency(currency)
        today = today or local_today()
        first = month_start(today)
        last = month_end(today)

        analysis = self.transactions.between(today - timedelta(days=60), last, currency)
        month_txns = [txn for txn in analysis if first <= txn.date <= last]
        month_totals = sum_income_expense(month_txns)

        default_currency = CurrencyCode(get_settings().default_currency)
        rules = [
            rule
            for rule in RecurringService(self.session, self.user_id).list(active_only=True)
            if (rule.currency_code or default_currency) == currency
        ]
        upcoming = upcoming_recurring_net(rules, today, last)

        accounts = AccountService(self.session, self.user_id).list_all()
        balances = build_account_balances(accounts, self.transactions.all(), currency)
        net_worth = build_account_summary(accounts, balances, currency).total
        budget_limit = BudgetService(self.session, self.user_id).limit_for_month(
            first, currency
        )

        names = _category_names(self.session, self.user_id)
        return {
            "currency": currency.value,
            "month_totals": asdict(month_totals),
            "upcoming_recurring_net": upcoming,
            "forecast": asdict(month_forecast(month_totals, today, upcoming)),
            "safe_to_spend": asdict(
                safe_to_spend(
                    net_worth, upcoming, month_totals.expense, budget_limit, today
                )
            ),
            "anomalies": [
                {**asdict(item), "category": _category_label(names, item.category_id)}
                for item in detect_category_anomalies(analysis, today)
            ],
            "duplicates": [
                {
                    **asdict(item),
                    "date": item.date.isoformat(),
                    "match_date": item.match_date.isoformat(),
                }
                for item in find_potential_duplicates(
                    analysis, since=today - timedelta(days=30)
                )
            ],
            "top_categories": [
                {"category": _category_label(names, key), "amount_cents": amount}
                for key, amount in top_entries(category_totals(month_txns))
            ],
            "top_merchants": [
                {"merchant": merchant, "amount_cents": amount}
                for merchant, amount in top_entries(build_merchant_totals(month_txns))
            ],
            "kind_conflicts": len(kind_conflicts(analysis)),
        }

    def projection(
        self,
        period: Period,
        percent: float = 10,
        cadence: str = "monthly",
        horizon_months: int = 12,
        currency: Optional[CurrencyCode] = None,
        base: str = "income",
        custom_cents: int = 0,
    ) -> dict[str, object]:
        """Savings projection from the average income or net of ``period``."""
        currency = self._currency(currency)
        rates = baseline_rates(
            self.transactions.all_for_period(period, currency), period.start, period.end
        )
        monthly = base_monthly_cents(rates, base, custom_cents)
        projection = savings_projection(monthly, percent, cadence, horizon_months)
        return {
            "period": period.slug,
            "start": period.start.isoformat(),
            "end": period.end.isoformat(),
            "currency": currency.value,
            "baseline": asdict(rates),
            "base_monthly_cents": monthly,
            "projection": asdict(projection),
        }
