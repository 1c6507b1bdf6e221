"""Ledger line model.

Every aggregation in the application works on *lines*: one per category
allocation of a transaction. A transaction without splits is a single
implicit split, so callers never have to care whether splits exist.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional, Union

from models import TransactionKind, resolve_kind
from schemas import LedgerTransaction

INVALID_DATE = "Invalid Date"
UNCATEGORIZED = "uncategorized"


@dataclass(frozen=True)
class TransactionLine:
    kind: TransactionKind
    category_id: Optional[int]
    amount_cents: int
    transaction_id: Optional[int] = None
    split_id: Optional[int] = None


def _read(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def get_kind(transaction: Any) -> TransactionKind:
    """Effective kind of a row; ``transaction_kind`` beats the legacy ``type``."""
    return resolve_kind(
        _read(transaction, "transaction_kind"),
        _read(transaction, "kind") or _read(transaction, "type"),
    )


def kind_conflicts(records: Iterable[Any]) -> list[Any]:
    """Rows whose explicit and legacy kind fields disagree."""
    conflicts = []
    for record in records:
        explicit = _read(record, "transaction_kind")
        legacy = _read(record, "type")
        if explicit is None or legacy is None:
            continue
        if resolve_kind(explicit, None) != resolve_kind(legacy, None):
            conflicts.append(record)
    return conflicts


def normalize_transaction(record: Any) -> LedgerTransaction:
    return LedgerTransaction.from_record(record)


def normalize_transactions(records: Iterable[Any]) -> Iterator[LedgerTransaction]:
    for record in records:
        yield LedgerTransaction.from_record(record)


def flatten_splits(transaction: Any) -> Iterator[TransactionLine]:
    txn = normalize_transaction(transaction)
    if txn.kind == TransactionKind.transfer:
        return
    if not txn.splits:
        yield TransactionLine(
            kind=txn.kind,
            category_id=txn.category_id,
            amount_cents=txn.amount_cents,
            transaction_id=txn.id,
        )
        return
    for split in txn.splits:
        yield TransactionLine(
            kind=txn.kind,
            category_id=split.category_id,
            amount_cents=split.amount_cents,
            transaction_id=txn.id,
            split_id=split.id,
        )


def date_key(value: Optional[date]) -> str:
    return value.isoformat() if value is not None else INVALID_DATE


def date_sort_key(value: Union[str, date, None]) -> tuple[int, str]:
    """Sort key placing every invalid date after all valid ones."""
    if isinstance(value, date):
        return (0, value.isoformat())
    if value is None or value == INVALID_DATE:
        return (1, "")
    return (0, value)


def transaction_key(
    *,
    date_value: Union[str, date],
    amount_cents: int,
    kind: Union[str, TransactionKind],
    account_id: Optional[int] = None,
    category_id: Optional[int] = None,
    merchant: Optional[str] = None,
) -> str:
    """Composite key used to spot rows that were already imported."""
    day = date_value.isoformat() if isinstance(date_value, date) else date_value
    kind_value = getattr(kind, "value", kind)
    return "|".join(
        [
            str(day),
            str(amount_cents),
            str(kind_value),
            "" if account_id is None else str(account_id),
            "" if category_id is None else str(category_id),
            (merchant or "").strip().lower(),
        ]
    )


def ledger_key(transaction: Any) -> str:
    txn = normalize_transaction(transaction)
    return transaction_key(
        date_value=date_key(txn.date),
        amount_cents=txn.amount_cents,
        kind=txn.kind,
        account_id=txn.account_id,
        category_id=txn.category_id,
        merchant=txn.merchant,
    )
