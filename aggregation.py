from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Union

from ledger import (
    UNCATEGORIZED,
    date_key,
    date_sort_key,
    flatten_splits,
    normalize_transactions,
)
from models import TransactionKind
from money import round_div

# Indexed by day of week with Sunday first.
WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
WEEKDAY_ORDER = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

CategoryKey = Union[int, str]


@dataclass(frozen=True)
class Totals:
    income: int
    expense: int
    net: int


@dataclass(frozen=True)
class CashflowPoint:
    date: str
    income: Union[int, float]
    expense: Union[int, float]


@dataclass(frozen=True)
class NetTrendPoint:
    date: str
    net: int


def _scaled(cents: int, scale: int) -> Union[int, float]:
    return cents if scale == 1 else cents / scale


def sum_income_expense(transactions: Iterable[Any]) -> Totals:
    income = 0
    expense = 0
    for txn in normalize_transactions(transactions):
        if txn.kind == TransactionKind.transfer:
            continue
        if txn.kind == TransactionKind.income:
            income += txn.amount_cents
        else:
            expense += txn.amount_cents
    return Totals(income=income, expense=expense, net=income - expense)


def category_totals(transactions: Iterable[Any]) -> dict[CategoryKey, int]:
    totals: dict[CategoryKey, int] = {}
    for txn in transactions:
        for line in flatten_splits(txn):
            if line.kind != TransactionKind.expense:
                continue
            key = line.category_id if line.category_id is not None else UNCATEGORIZED
            totals[key] = totals.get(key, 0) + line.amount_cents
    return totals


def build_cashflow_series(
    transactions: Iterable[Any], scale: int = 1
) -> list[CashflowPoint]:
    by_date: dict[str, list[int]] = {}
    for txn in normalize_transactions(transactions):
        if txn.kind == TransactionKind.transfer:
            continue
        entry = by_date.setdefault(date_key(txn.date), [0, 0])
        if txn.kind == TransactionKind.income:
            entry[0] += txn.amount_cents
        else:
            entry[1] += txn.amount_cents

    return [
        CashflowPoint(
            date=key, income=_scaled(income, scale), expense=_scaled(expense, scale)
        )
        for key, (income, expense) in sorted(
            by_date.items(), key=lambda item: date_sort_key(item[0])
        )
    ]


def build_net_trend_series(
    transactions: Iterable[Any], scale: int = 1
) -> list[NetTrendPoint]:
    daily: dict[str, int] = {}
    for txn in normalize_transactions(transactions):
        if txn.kind == TransactionKind.transfer:
            continue
        value = txn.amount_cents if txn.kind == TransactionKind.income else -txn.amount_cents
        key = date_key(txn.date)
        daily[key] = daily.get(key, 0) + value

    return [
        NetTrendPoint(date=key, net=round_div(net, scale))
        for key, net in sorted(daily.items(), key=lambda item: date_sort_key(item[0]))
    ]


def build_merchant_totals(transactions: Iterable[Any]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for txn in normalize_transactions(transactions):
        if txn.kind != TransactionKind.expense or not txn.merchant:
            continue
        totals[txn.merchant] = totals.get(txn.merchant, 0) + txn.amount_cents
    return totals


def build_weekday_totals(transactions: Iterable[Any]) -> dict[str, int]:
    totals = {label: 0 for label in WEEKDAY_ORDER}
    for txn in normalize_transactions(transactions):
        if txn.date is None:
            day = "Mon"
        else:
            day = WEEKDAY_LABELS[txn.date.isoweekday() % 7]
        for line in flatten_splits(txn):
            if line.kind == TransactionKind.expense:
                totals[day] += line.amount_cents
    return totals


def top_entries(totals: dict[Any, int], limit: int = 5) -> list[tuple[Any, int]]:
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)[:limit]
