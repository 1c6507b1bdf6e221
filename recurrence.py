import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Union
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from models import (
    Cadence,
    CurrencyCode,
    RecurringTransaction,
    Transaction,
    TransactionKind,
)
from money import round_half_up

logger = logging.getLogger(__name__)

# Occurrences emitted per rule per call; a long-idle rule catches up over
# several calls.
MAX_ITERATIONS = 120

_MONTH_STEPS = {
    Cadence.monthly: 1,
    Cadence.quarterly: 3,
    Cadence.yearly: 12,
}

_DAY_STEPS = {
    Cadence.daily: 1,
    Cadence.weekly: 7,
    Cadence.biweekly: 14,
}

_MONTHLY_FACTORS = {
    Cadence.daily: Decimal("30.44"),
    Cadence.weekly: Decimal(52) / Decimal(12),
    Cadence.biweekly: Decimal(26) / Decimal(12),
    Cadence.monthly: Decimal(1),
    Cadence.quarterly: Decimal(1) / Decimal(3),
    Cadence.yearly: Decimal(1) / Decimal(12),
}


@dataclass(frozen=True)
class MaterializeResult:
    inserted: int
    updated: int


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def add_months(base: date, months: int) -> date:
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    day = min(base.day, days_in_month(year, month))
    return date(year, month, day)


def _as_cadence(cadence: Union[Cadence, str]) -> Cadence:
    try:
        return Cadence(cadence)
    except ValueError:
        return Cadence.monthly


def advance_date(value: Union[date, str], cadence: Union[Cadence, str]) -> date:
    base = value if isinstance(value, date) else date.fromisoformat(value)
    step = _as_cadence(cadence)
    if step in _DAY_STEPS:
        return base + timedelta(days=_DAY_STEPS[step])
    return add_months(base, _MONTH_STEPS[step])


def monthly_equivalent_cents(rule: RecurringTransaction) -> int:
    factor = _MONTHLY_FACTORS[_as_cadence(rule.cadence)]
    return round_half_up(Decimal(rule.amount_cents) * factor)


class RecurringEngine:
    def __init__(self, session: Session) -> None:
        self.session = session

    def due_rules(self, user_id: int, today: date) -> list[RecurringTransaction]:
        stmt = (
            select(RecurringTransaction)
            .where(
                RecurringTransaction.user_id == user_id,
                RecurringTransaction.active.is_(True),
                RecurringTransaction.next_run <= today,
            )
            .order_by(RecurringTransaction.next_run, RecurringTransaction.id)
        )
        return list(self.session.scalars(stmt).all())

    def materialize(
        self, user_id: int, today: Optional[date] = None
    ) -> Optional[MaterializeResult]:
        today = today or local_today()
        rules = self.due_rules(user_id, today)
        if not rules:
            return None

        inserts: list[Transaction] = []
        updates: list[tuple[RecurringTransaction, date, date]] = []
        expired: list[RecurringTransaction] = []
        for rule in rules:
            occurrences = self._catch_up(rule, user_id, today)
            if not occurrences:
                if rule.end_date is not None and rule.next_run > rule.end_date:
                    expired.append(rule)
                continue
            inserts.extend(occurrences)
            last_run = occurrences[-1].date
            updates.append((rule, advance_date(last_run, rule.cadence), last_run))

        if inserts:
            self.session.add_all(inserts)
            self.session.flush()

        for rule, next_run, last_run in updates:
            rule.next_run = next_run
            rule.last_run = last_run
            rule.active = rule.end_date is None or next_run <= rule.end_date
        for rule in expired:
            rule.active = False
        if updates or expired:
            self.session.flush()

        return MaterializeResult(
            inserted=len(inserts), updated=len(updates) + len(expired)
        )

    def _catch_up(
        self, rule: RecurringTransaction, user_id: int, today: date
    ) -> list[Transaction]:
        occurrences: list[Transaction] = []
        current = rule.next_run
        while current <= today and len(occurrences) < MAX_ITERATIONS:
            if rule.end_date and current > rule.end_date:
                break
            occurrences.append(self._occurrence(rule, user_id, current))
            current = advance_date(current, rule.cadence)

        if len(occurrences) == MAX_ITERATIONS and current <= today:
            logger.debug(
                f"recurring_cap_reached: rule_id={rule.id} next_run={current.isoformat()}"
            )
        return occurrences

    def _occurrence(
        self, rule: RecurringTransaction, user_id: int, occurrence_date: date
    ) -> Transaction:
        kind = TransactionKind(getattr(rule.type, "value", rule.type))
        currency = rule.currency_code or CurrencyCode(get_settings().default_currency)
        return Transaction(
            user_id=user_id,
            date=occurrence_date,
            amount_cents=rule.amount_cents,
            type=kind,
            transaction_kind=kind,
            category_id=rule.category_id,
            account_id=rule.account_id,
            currency_code=currency,
            merchant=rule.merchant,
            notes=rule.notes,
            tags=list(rule.tags or []),
            recurring_id=rule.id,
            occurrence_date=occurrence_date,
        )


def materialize_recurring_transactions(
    session: Session, user_id: int, today: Optional[date] = None
) -> Optional[MaterializeResult]:
    return RecurringEngine(session).materialize(user_id, today)
