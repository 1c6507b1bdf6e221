from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Union

from aggregation import sum_income_expense
from money import round_half_up


class SavingsCadence(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class ProjectionBase(str, Enum):
    income = "income"
    net = "net"
    custom = "custom"


_PERIOD_LABELS = {
    SavingsCadence.daily: "Day",
    SavingsCadence.weekly: "Week",
    SavingsCadence.monthly: "Month",
    SavingsCadence.yearly: "Year",
}


@dataclass(frozen=True)
class BaselineRates:
    day_count: int
    income_per_day: float
    net_per_day: float
    income_per_month: float
    net_per_month: float
    income_per_year: float
    net_per_year: float


@dataclass(frozen=True)
class ProjectionPoint:
    label: str
    total: int


@dataclass(frozen=True)
class SavingsProjection:
    contribution_per_period: float
    period_count: int
    total: float
    points: list[ProjectionPoint]


def baseline_rates(
    transactions: Iterable[Any], start: date, end: date
) -> BaselineRates:
    """Average income and net over ``start``..``end`` (both inclusive)."""
    totals = sum_income_expense(transactions)
    day_count = max(1, (end - start).days + 1)
    income_per_day = totals.income / day_count
    net_per_day = totals.net / day_count
    return BaselineRates(
        day_count=day_count,
        income_per_day=income_per_day,
        net_per_day=net_per_day,
        income_per_month=income_per_day * 30,
        net_per_month=net_per_day * 30,
        income_per_year=income_per_day * 365,
        net_per_year=net_per_day * 365,
    )


def base_monthly_cents(
    rates: BaselineRates,
    base: Union[ProjectionBase, str] = ProjectionBase.income,
    custom_cents: int = 0,
) -> float:
    """Monthly amount the savings percentage is taken from."""
    base = ProjectionBase(base)
    if base == ProjectionBase.custom:
        return float(max(0, custom_cents))
    if base == ProjectionBase.net:
        return max(0.0, rates.net_per_month)
    return rates.income_per_month


def _per_period(base_monthly: float, cadence: SavingsCadence) -> float:
    if cadence == SavingsCadence.daily:
        return base_monthly / 30
    if cadence == SavingsCadence.weekly:
        return base_monthly / 4
    if cadence == SavingsCadence.yearly:
        return base_monthly * 12
    return base_monthly


def _period_count(horizon_months: int, cadence: SavingsCadence) -> int:
    if cadence == SavingsCadence.daily:
        return horizon_months * 30
    if cadence == SavingsCadence.weekly:
        return horizon_months * 4
    if cadence == SavingsCadence.yearly:
        return max(1, round_half_up(horizon_months / 12))
    return horizon_months


def savings_projection(
    base_monthly_cents: float,
    percent: float,
    cadence: Union[SavingsCadence, str] = SavingsCadence.monthly,
    horizon_months: int = 12,
) -> SavingsProjection:
    """Cumulative savings when ``percent`` of a monthly base is set aside.

    Point totals are whole currency units.
    """
    try:
        cadence = SavingsCadence(cadence)
    except ValueError:
        cadence = SavingsCadence.monthly
    contribution = _per_period(max(0.0, base_monthly_cents), cadence) * percent / 100
    count = max(0, _period_count(horizon_months, cadence))
    label = _PERIOD_LABELS[cadence]
    points = [
        ProjectionPoint(
            label=f"{label} {step}",
            total=round_half_up(contribution * step / 100),
        )
        for step in range(1, max(1, count) + 1)
    ]
    return SavingsProjection(
        contribution_per_period=contribution,
        period_count=count,
        total=contribution * count,
        points=points,
    )
