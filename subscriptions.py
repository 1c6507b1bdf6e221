from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional, Union

from rapidfuzz.distance import Levenshtein

from models import Cadence, IntervalGuess
from money import round_half_up
from recurrence import add_months, local_today

_MONTHLY_MULTIPLIERS = {
    IntervalGuess.weekly: Decimal(52) / Decimal(12),
    IntervalGuess.monthly: Decimal(1),
    IntervalGuess.unknown: Decimal(1),
}

_LABELS = {
    IntervalGuess.weekly: "Weekly",
    IntervalGuess.monthly: "Monthly",
}

# Merchant names this close (edit distance) are treated as the same payee.
MERCHANT_MATCH_DISTANCE = 1


@dataclass(frozen=True)
class RankedCandidate:
    candidate: Any
    monthly_cents: int


def _interval(value: Union[IntervalGuess, str, None]) -> IntervalGuess:
    try:
        return IntervalGuess(value)
    except ValueError:
        return IntervalGuess.unknown


def _one_interval_ahead(interval: IntervalGuess, base: date) -> date:
    if interval == IntervalGuess.weekly:
        return base + timedelta(weeks=1)
    return add_months(base, 1)


def estimate_monthly_cents(candidate: Any) -> int:
    multiplier = _MONTHLY_MULTIPLIERS[_interval(candidate.interval_guess)]
    return round_half_up(Decimal(candidate.avg_amount_cents) * multiplier)


def interval_label(interval: Union[IntervalGuess, str, None]) -> str:
    return _LABELS.get(_interval(interval), "Unknown")


def schedule_text_from_interval(interval: Union[IntervalGuess, str, None]) -> str:
    if _interval(interval) == IntervalGuess.weekly:
        return "weekly"
    return "monthly"


def cadence_from_interval(interval: Union[IntervalGuess, str, None]) -> Cadence:
    return Cadence(schedule_text_from_interval(interval))


def default_next_due_date(candidate: Any, today: Optional[date] = None) -> date:
    if candidate.next_due_date:
        return candidate.next_due_date
    return _one_interval_ahead(
        _interval(candidate.interval_guess), today or local_today()
    )


def snooze_date_from_interval(
    interval: Union[IntervalGuess, str, None], base_date: Optional[date] = None
) -> date:
    return _one_interval_ahead(_interval(interval), base_date or local_today())


def rank_candidates(candidates: Iterable[Any]) -> tuple[list[RankedCandidate], int]:
    ranked = [
        RankedCandidate(candidate=candidate, monthly_cents=estimate_monthly_cents(candidate))
        for candidate in candidates
    ]
    ranked.sort(key=lambda item: item.monthly_cents, reverse=True)
    return ranked, sum(item.monthly_cents for item in ranked)


def _normalized(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def find_matching_rule(merchant: str, rules: Iterable[Any]) -> Optional[Any]:
    """Closest active rule whose merchant (or name) matches ``merchant``."""
    target = _normalized(merchant)
    if not target:
        return None
    best = None
    best_distance: Optional[int] = None
    for rule in rules:
        if not rule.active:
            continue
        for label in (rule.merchant, rule.name):
            candidate = _normalized(label)
            if not candidate:
                continue
            distance = int(Levenshtein.distance(target, candidate))
            if distance > MERCHANT_MATCH_DISTANCE:
                continue
            if best_distance is None or distance < best_distance:
                best = rule
                best_distance = distance
    return best
