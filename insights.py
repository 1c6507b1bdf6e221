"""Heuristic insights derived from the ledger.

All functions here are read-only views over already-fetched rows; the
caller decides which window of transactions to hand in.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional, Union

from aggregation import Totals, category_totals
from ledger import normalize_transactions
from models import CategoryType, TransactionKind
from recurrence import days_in_month

ANOMALY_MIN_CENTS = 5000
ANOMALY_FACTOR = 1.6
# Reported ratio for a category with recent spend but no history.
NO_BASELINE_RATIO = 999.0

RECENT_DAYS = 7
BASELINE_START_DAYS = 37
BASELINE_END_DAYS = 8
BASELINE_LENGTH_DAYS = 30


@dataclass(frozen=True)
class CategoryAnomaly:
    category_id: Union[int, str]
    recent_cents: int
    baseline_weekly_cents: float
    ratio: float


@dataclass(frozen=True)
class PotentialDuplicate:
    merchant: str
    amount_cents: int
    date: date
    match_date: date
    days_apart: int


@dataclass(frozen=True)
class MonthForecast:
    net_to_date: int
    daily_net: float
    projected_net: float


@dataclass(frozen=True)
class SafeToSpend:
    safe_this_month: float
    safe_per_day: float
    pace_ratio: float


def _between(transactions: Iterable[Any], start: date, end: date) -> list[Any]:
    return [
        txn
        for txn in normalize_transactions(transactions)
        if txn.date is not None and start <= txn.date <= end
    ]


def detect_category_anomalies(
    transactions: Iterable[Any], today: date, limit: int = 5
) -> list[CategoryAnomaly]:
    txns = list(normalize_transactions(transactions))
    recent = category_totals(
        _between(txns, today - timedelta(days=RECENT_DAYS), today)
    )
    baseline = category_totals(
        _between(
            txns,
            today - timedelta(days=BASELINE_START_DAYS),
            today - timedelta(days=BASELINE_END_DAYS),
        )
    )

    anomalies: list[CategoryAnomaly] = []
    for category_id, recent_total in recent.items():
        baseline_total = baseline.get(category_id, 0)
        weekly = baseline_total / BASELINE_LENGTH_DAYS * 7 if baseline_total else 0.0
        if weekly:
            ratio = recent_total / weekly
        else:
            ratio = NO_BASELINE_RATIO if recent_total > 0 else 0.0
        if recent_total < max(ANOMALY_MIN_CENTS, weekly * ANOMALY_FACTOR):
            continue
        anomalies.append(
            CategoryAnomaly(
                category_id=category_id,
                recent_cents=recent_total,
                baseline_weekly_cents=weekly,
                ratio=ratio,
            )
        )
    anomalies.sort(key=lambda item: item.ratio, reverse=True)
    return anomalies[:limit]


def find_potential_duplicates(
    transactions: Iterable[Any],
    since: Optional[date] = None,
    max_days_apart: int = 2,
    limit: int = 5,
) -> list[PotentialDuplicate]:
    """Expense pairs with the same merchant and amount a few days apart."""
    groups: dict[tuple[str, int], list[Any]] = {}
    for txn in normalize_transactions(transactions):
        if txn.kind != TransactionKind.expense or not txn.merchant:
            continue
        if txn.date is None or (since is not None and txn.date < since):
            continue
        key = (txn.merchant.lower(), txn.amount_cents)
        groups.setdefault(key, []).append(txn)

    found: list[PotentialDuplicate] = []
    for items in groups.values():
        items.sort(key=lambda txn: txn.date)
        for previous, current in zip(items, items[1:]):
            days_apart = abs((current.date - previous.date).days)
            if days_apart > max_days_apart:
                continue
            found.append(
                PotentialDuplicate(
                    merchant=current.merchant,
                    amount_cents=current.amount_cents,
                    date=previous.date,
                    match_date=current.date,
                    days_apart=days_apart,
                )
            )
    return found[:limit]


def upcoming_recurring_net(rules: Iterable[Any], today: date, through: date) -> int:
    net = 0
    for rule in rules:
        if not rule.active or rule.next_run is None:
            continue
        if not today <= rule.next_run <= through:
            continue
        if rule.type in (CategoryType.income, "income"):
            net += rule.amount_cents
        else:
            net -= rule.amount_cents
    return net


def _elapsed_days(today: date) -> int:
    return today.day


def _remaining_days(today: date) -> int:
    return days_in_month(today.year, today.month) - today.day + 1


def month_forecast(
    month_totals: Totals, today: date, upcoming_net: int = 0
) -> MonthForecast:
    elapsed = _elapsed_days(today)
    total_days = days_in_month(today.year, today.month)
    daily_net = month_totals.net / elapsed
    return MonthForecast(
        net_to_date=month_totals.net,
        daily_net=daily_net,
        projected_net=month_totals.net
        + daily_net * (total_days - elapsed)
        + upcoming_net,
    )


def safe_to_spend(
    net_worth: int,
    upcoming_net: int,
    month_expense: int,
    budget_limit: int,
    today: date,
) -> SafeToSpend:
    """What can still be spent this month without breaking the budget pace.

    The budget is assumed to be consumed linearly over the month; spending
    ahead of that pace is subtracted from what is available. Without a budget
    the pace limit is zero and the whole month's expense counts as overspend.
    """
    total_days = days_in_month(today.year, today.month)
    pace_limit = budget_limit * (_elapsed_days(today) / total_days) if budget_limit else 0
    overspend = max(0, month_expense - pace_limit)
    safe_this_month = net_worth + upcoming_net - overspend
    return SafeToSpend(
        safe_this_month=safe_this_month,
        safe_per_day=safe_this_month / _remaining_days(today),
        pace_ratio=month_expense / pace_limit if pace_limit else 0.0,
    )
