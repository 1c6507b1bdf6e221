"""Account balances and net-worth replay.

Balances are rebuilt from the ledger every time; nothing is cached. An
expense on a credit account drives its balance negative, which is why a
liability total is already signed and net worth is a plain sum.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional

from ledger import normalize_transactions
from models import AccountClass, TransactionKind
from money import cents_to_units
from schemas import AccountRecord, LedgerTransaction


@dataclass(frozen=True)
class AccountSummary:
    assets: int
    liabilities: int
    total: int


@dataclass(frozen=True)
class NetWorthPoint:
    date: str
    balance: int


def _currency_matches(value: Optional[str], currency_code: Optional[str]) -> bool:
    if not currency_code or not value:
        return True
    return value == str(getattr(currency_code, "value", currency_code)).upper()


def _included_accounts(
    accounts: Iterable[Any], currency_code: Optional[str]
) -> list[AccountRecord]:
    included = []
    for raw in accounts:
        account = AccountRecord.from_record(raw)
        if account.id is None:
            continue
        if not _currency_matches(account.currency_code, currency_code):
            continue
        included.append(account)
    return included


def transaction_deltas(txn: LedgerTransaction) -> list[tuple[Optional[int], int]]:
    """Signed per-account movements caused by one transaction."""
    if txn.kind == TransactionKind.transfer:
        return [
            (txn.from_account_id, -txn.amount_cents),
            (txn.to_account_id, txn.amount_cents),
        ]
    sign = 1 if txn.kind == TransactionKind.income else -1
    return [(txn.account_id, sign * txn.amount_cents)]


def _apply(balances: dict[int, int], txn: LedgerTransaction) -> None:
    for account_id, delta in transaction_deltas(txn):
        # Unknown ids are other currencies or deleted accounts.
        if account_id is None or account_id not in balances:
            continue
        balances[account_id] += delta


def build_account_balances(
    accounts: Iterable[Any],
    transactions: Iterable[Any],
    currency_code: Optional[str] = None,
) -> dict[int, int]:
    balances = {
        account.id: 0 for account in _included_accounts(accounts, currency_code)
    }
    for txn in normalize_transactions(transactions):
        if not _currency_matches(txn.currency_code, currency_code):
            continue
        _apply(balances, txn)
    return balances


def build_account_summary(
    accounts: Iterable[Any],
    balances: dict[int, int],
    currency_code: Optional[str] = None,
) -> AccountSummary:
    assets = 0
    liabilities = 0
    for account in _included_accounts(accounts, currency_code):
        balance = balances.get(account.id, 0)
        if account.account_class == AccountClass.liability:
            liabilities += balance
        else:
            assets += balance
    return AccountSummary(
        assets=assets, liabilities=liabilities, total=assets + liabilities
    )


def _label(day: date, label_format: Optional[str]) -> str:
    if label_format:
        return day.strftime(label_format)
    return f"{day:%b} {day.day}"


def build_net_worth_trend(
    accounts: Iterable[Any],
    transactions: Iterable[Any],
    start_date: date,
    end_date: date,
    currency_code: Optional[str] = None,
    label_format: Optional[str] = None,
) -> list[NetWorthPoint]:
    balances = {
        account.id: 0 for account in _included_accounts(accounts, currency_code)
    }

    by_date: dict[date, list[LedgerTransaction]] = {}
    for txn in normalize_transactions(transactions):
        if not _currency_matches(txn.currency_code, currency_code):
            continue
        if txn.date is None:
            continue
        if txn.date < start_date:
            _apply(balances, txn)
        elif txn.date <= end_date:
            by_date.setdefault(txn.date, []).append(txn)

    points: list[NetWorthPoint] = []
    cursor = start_date
    while cursor <= end_date:
        for txn in by_date.get(cursor, ()):
            _apply(balances, txn)
        total = sum(balances.values())
        points.append(
            NetWorthPoint(date=_label(cursor, label_format), balance=cents_to_units(total))
        )
        cursor += timedelta(days=1)
    return points
