import datetime as dt
from collections.abc import Mapping
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models import (
    AccountClass,
    AccountType,
    Cadence,
    CategoryType,
    CurrencyCode,
    TransactionKind,
    resolve_kind,
)
from money import coerce_cents


def parse_record_date(value: object) -> Optional[dt.date]:
    """Parse a stored date; anything unreadable becomes ``None``."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _currency_value(value: object) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(getattr(value, "value", value)).upper()


class RecordModel(BaseModel):
    """Read-side record built from an ORM row, another record or a mapping."""

    model_config = ConfigDict(frozen=True)

    source_fields: ClassVar[tuple[str, ...]] = ()

    @classmethod
    def from_record(cls, record: Any):
        if isinstance(record, cls):
            return record
        if isinstance(record, Mapping):
            data = dict(record)
        else:
            names = (*cls.model_fields, *cls.source_fields)
            data = {
                name: getattr(record, name)
                for name in names
                if hasattr(record, name)
            }
        return cls.model_validate(data)


class SplitRecord(RecordModel):
    id: Optional[int] = None
    category_id: Optional[int] = None
    amount_cents: int = 0
    note: Optional[str] = None

    @field_validator("amount_cents", mode="before")
    @classmethod
    def _coerce_amount(cls, value: object) -> int:
        return coerce_cents(value)


class LedgerTransaction(RecordModel):
    """A transaction with a single ``kind`` discriminant.

    Built from rows that may carry both the legacy ``type`` and the explicit
    ``transaction_kind``; the explicit field wins.
    """

    source_fields: ClassVar[tuple[str, ...]] = ("transaction_kind", "type")

    id: Optional[int] = None
    user_id: Optional[int] = None
    date: Optional[dt.date] = None
    kind: TransactionKind = TransactionKind.expense
    amount_cents: int = 0
    currency_code: Optional[str] = None
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    from_account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    merchant: Optional[str] = None
    notes: Optional[str] = None
    tags: tuple[str, ...] = ()
    splits: tuple[SplitRecord, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _collapse_kind(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        data["kind"] = resolve_kind(
            data.get("transaction_kind"), data.get("kind") or data.get("type")
        )
        data["date"] = parse_record_date(data.get("date"))
        data["currency_code"] = _currency_value(data.get("currency_code"))
        data["splits"] = tuple(
            SplitRecord.from_record(split) for split in (data.get("splits") or ())
        )
        data["tags"] = tuple(data.get("tags") or ())
        return data

    @field_validator("amount_cents", mode="before")
    @classmethod
    def _coerce_amount(cls, value: object) -> int:
        return coerce_cents(value)


class AccountRecord(RecordModel):
    id: Optional[int] = None
    name: Optional[str] = None
    type: Optional[AccountType] = None
    account_class: AccountClass = AccountClass.asset
    currency_code: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _default_class(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        if not data.get("account_class"):
            is_credit = data.get("type") in (AccountType.credit, "credit")
            data["account_class"] = (
                AccountClass.liability if is_credit else AccountClass.asset
            )
        data["currency_code"] = _currency_value(data.get("currency_code"))
        return data


class AccountIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: AccountType = AccountType.checking
    account_class: Optional[AccountClass] = None
    currency_code: CurrencyCode = CurrencyCode.usd


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType
    icon: Optional[str] = Field(default=None, max_length=40)


class SplitIn(BaseModel):
    category_id: int
    amount_cents: int = Field(..., ge=0)
    note: Optional[str] = Field(default=None, max_length=200)


class TransactionIn(BaseModel):
    date: dt.date
    kind: TransactionKind
    amount_cents: int = Field(..., ge=0)
    currency_code: CurrencyCode = CurrencyCode.usd
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    from_account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    merchant: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    splits: list[SplitIn] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: list[str]) -> list[str]:
        seen: set[str] = set()
        result: list[str] = []
        for raw in tags:
            name = raw.strip()
            if not name or name.lower() in seen:
                continue
            seen.add(name.lower())
            result.append(name)
        return result

    @model_validator(mode="after")
    def _check_accounts(self) -> "TransactionIn":
        if self.kind == TransactionKind.transfer:
            if self.from_account_id is None or self.to_account_id is None:
                raise ValueError("A transfer needs a source and a destination account")
            if self.from_account_id == self.to_account_id:
                raise ValueError("Transfer accounts must be different")
            if self.account_id is not None:
                raise ValueError("Transfers use from/to accounts only")
            if self.category_id is not None:
                raise ValueError("Transfers cannot carry a category")
            if self.splits:
                raise ValueError("Transfers cannot be split")
            return self

        if self.account_id is None:
            raise ValueError("An account is required")
        if self.from_account_id is not None or self.to_account_id is not None:
            raise ValueError("Only transfers can set from/to accounts")
        if sum(split.amount_cents for split in self.splits) > self.amount_cents:
            raise ValueError("Splits exceed the transaction amount")
        return self


def _first_of_month(value: dt.date) -> dt.date:
    return value.replace(day=1)


class BudgetIn(BaseModel):
    category_id: int
    month: dt.date
    limit_cents: int = Field(..., ge=0)
    currency_code: CurrencyCode = CurrencyCode.usd

    @field_validator("month")
    @classmethod
    def _normalize_month(cls, value: dt.date) -> dt.date:
        return _first_of_month(value)


class OverallBudgetIn(BaseModel):
    month: dt.date
    limit_cents: int = Field(..., ge=0)
    currency_code: CurrencyCode = CurrencyCode.usd

    @field_validator("month")
    @classmethod
    def _normalize_month(cls, value: dt.date) -> dt.date:
        return _first_of_month(value)


class GoalIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    target_cents: int = Field(..., ge=0)
    current_cents: int = Field(default=0, ge=0)
    currency_code: CurrencyCode = CurrencyCode.usd
    due_date: Optional[dt.date] = None


class RecurringRuleIn(BaseModel):
    name: Optional[str] = Field(default=None, max_length=120)
    merchant: Optional[str] = Field(default=None, max_length=200)
    type: CategoryType
    amount_cents: int = Field(..., ge=0)
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    currency_code: Optional[CurrencyCode] = None
    cadence: Cadence
    start_date: dt.date
    next_run: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    active: bool = True
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_dates(self) -> "RecurringRuleIn":
        if self.next_run is None:
            self.next_run = self.start_date
        if self.next_run < self.start_date:
            raise ValueError("Next run cannot be before the start date")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date must be on or after the start date")
        if self.end_date is not None and self.next_run > self.end_date:
            raise ValueError("Next run cannot be after the end date")
        return self


class CandidateConvertIn(BaseModel):
    cadence: Optional[Cadence] = None
    next_due_date: Optional[dt.date] = None
    account_id: Optional[int] = None
    category_id: Optional[int] = None
