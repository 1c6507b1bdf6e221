from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Optional

from aggregation import category_totals
from ledger import normalize_transactions
from models import TransactionKind

BUDGET_ALERT_RATIO = 0.8


@dataclass(frozen=True)
class BudgetProgress:
    category_id: Optional[int]
    limit_cents: int
    spent_cents: int
    carryover_cents: int
    effective_limit_cents: int
    remaining_cents: int
    ratio: float
    alert: bool


@dataclass(frozen=True)
class GoalProgress:
    ratio: float
    percent: float
    reached: bool


def _ratio(spent: int, limit: int) -> float:
    if limit <= 0:
        return 0.0 if spent <= 0 else float(spent)
    return spent / limit


def _for_account(
    transactions: Iterable[Any], account_id: Optional[int]
) -> list[Any]:
    txns = list(normalize_transactions(transactions))
    if account_id is None:
        return txns
    return [txn for txn in txns if txn.account_id == account_id]


def _progress(
    category_id: Optional[int], limit: int, spent: int, carryover: int = 0
) -> BudgetProgress:
    effective = limit + carryover
    ratio = _ratio(spent, effective)
    return BudgetProgress(
        category_id=category_id,
        limit_cents=limit,
        spent_cents=spent,
        carryover_cents=carryover,
        effective_limit_cents=effective,
        remaining_cents=effective - spent,
        ratio=ratio,
        alert=ratio >= BUDGET_ALERT_RATIO,
    )


def budget_progress(
    budgets: Iterable[Any],
    transactions: Iterable[Any],
    previous_budgets: Iterable[Any] = (),
    previous_transactions: Iterable[Any] = (),
    account_id: Optional[int] = None,
) -> list[BudgetProgress]:
    """Burn-down of each category budget for one month.

    Spend comes from expense split lines, so a split transaction counts
    against every category it touches. Unspent room of last month's budget
    for the same category carries over; overspending never does.
    """
    spent = category_totals(_for_account(transactions, account_id))
    previous_spent = category_totals(_for_account(previous_transactions, account_id))
    previous_limits = {
        budget.category_id: int(budget.limit_cents) for budget in previous_budgets
    }

    result: list[BudgetProgress] = []
    for budget in budgets:
        carryover = 0
        if budget.category_id in previous_limits:
            carryover = max(
                0,
                previous_limits[budget.category_id]
                - previous_spent.get(budget.category_id, 0),
            )
        result.append(
            _progress(
                budget.category_id,
                int(budget.limit_cents),
                spent.get(budget.category_id, 0),
                carryover,
            )
        )
    return result


def overall_budget_progress(
    limit_cents: int, transactions: Iterable[Any], account_id: Optional[int] = None
) -> BudgetProgress:
    spent = sum(
        txn.amount_cents
        for txn in _for_account(transactions, account_id)
        if txn.kind == TransactionKind.expense
    )
    return _progress(None, int(limit_cents), spent)


def goal_progress(goal: Any) -> GoalProgress:
    target = int(goal.target_cents or 0)
    current = int(goal.current_cents or 0)
    ratio = current / target if target > 0 else 0.0
    return GoalProgress(
        ratio=ratio,
        percent=min(100.0, ratio * 100),
        reached=target > 0 and current >= target,
    )
