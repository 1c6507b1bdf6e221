from datetime import date
from types import SimpleNamespace

from models import Cadence, IntervalGuess
from subscriptions import (
    cadence_from_interval,
    default_next_due_date,
    estimate_monthly_cents,
    find_matching_rule,
    interval_label,
    rank_candidates,
    schedule_text_from_interval,
    snooze_date_from_interval,
)


def _candidate(merchant="Streamly", amount=1200, interval=IntervalGuess.weekly, due=None):
    return SimpleNamespace(
        merchant=merchant,
        avg_amount_cents=amount,
        interval_guess=interval,
        next_due_date=due,
    )


def _rule(merchant, name=None, active=True):
    return SimpleNamespace(merchant=merchant, name=name, active=active)


def test_weekly_candidate_monthly_estimate():
    assert estimate_monthly_cents(_candidate()) == 5200


def test_monthly_and_unknown_estimates_are_unchanged():
    assert estimate_monthly_cents(_candidate(amount=999, interval="monthly")) == 999
    assert estimate_monthly_cents(_candidate(amount=999, interval="unknown")) == 999
    assert estimate_monthly_cents(_candidate(amount=999, interval="yearly")) == 999


def test_labels_and_schedule_text():
    assert interval_label("weekly") == "Weekly"
    assert interval_label(IntervalGuess.monthly) == "Monthly"
    assert interval_label(None) == "Unknown"
    assert schedule_text_from_interval("weekly") == "weekly"
    assert schedule_text_from_interval("unknown") == "monthly"
    assert cadence_from_interval(IntervalGuess.weekly) == Cadence.weekly
    assert cadence_from_interval(IntervalGuess.unknown) == Cadence.monthly


def test_default_next_due_date():
    today = date(2025, 1, 31)
    assert default_next_due_date(_candidate(due=date(2025, 3, 3)), today) == date(2025, 3, 3)
    assert default_next_due_date(_candidate(), today) == date(2025, 2, 7)
    assert default_next_due_date(_candidate(interval="monthly"), today) == date(2025, 2, 28)


def test_snooze_date_from_interval():
    base = date(2025, 5, 10)
    assert snooze_date_from_interval("weekly", base) == date(2025, 5, 17)
    assert snooze_date_from_interval("monthly", base) == date(2025, 6, 10)
    assert snooze_date_from_interval("unknown", base) == date(2025, 6, 10)


def test_rank_candidates_most_expensive_first():
    ranked, total = rank_candidates(
        [
            _candidate("Gym", 3000, "monthly"),
            _candidate("Coffee club", 1200, "weekly"),
            _candidate("News", 500, "unknown"),
        ]
    )
    assert [item.candidate.merchant for item in ranked] == ["Coffee club", "Gym", "News"]
    assert total == 5200 + 3000 + 500


def test_find_matching_rule_tolerates_one_typo():
    rules = [_rule("Netflix"), _rule(None, name="Spotify"), _rule("Gym", active=False)]
    assert find_matching_rule(" netflx ", rules) is rules[0]
    assert find_matching_rule("SPOTIFY", rules) is rules[1]
    assert find_matching_rule("Gym", rules) is None
    assert find_matching_rule("Hulu", rules) is None
    assert find_matching_rule("", rules) is None
