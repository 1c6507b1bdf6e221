from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from aggregation import Totals
from insights import (
    NO_BASELINE_RATIO,
    detect_category_anomalies,
    find_potential_duplicates,
    month_forecast,
    safe_to_spend,
    upcoming_recurring_net,
)
from models import CategoryType

TODAY = date(2025, 6, 15)


def _expense(days_ago, amount, category_id=1, merchant=None):
    return {
        "date": TODAY - timedelta(days=days_ago),
        "type": "expense",
        "amount_cents": amount,
        "category_id": category_id,
        "merchant": merchant,
    }


def test_anomaly_against_weekly_baseline():
    transactions = [
        # 30-day baseline of 3000 ⇒ 700 per week.
        _expense(20, 3000, category_id=1),
        _expense(2, 6000, category_id=1),
        # Within the weekly baseline, not flagged.
        _expense(20, 30000, category_id=2),
        _expense(2, 6000, category_id=2),
    ]
    anomalies = detect_category_anomalies(transactions, TODAY)
    assert [item.category_id for item in anomalies] == [1]
    assert anomalies[0].recent_cents == 6000
    assert anomalies[0].baseline_weekly_cents == pytest.approx(700)
    assert anomalies[0].ratio == pytest.approx(6000 / 700)


def test_anomaly_without_baseline_and_minimum():
    transactions = [_expense(1, 5000, category_id=3), _expense(1, 4999, category_id=4)]
    anomalies = detect_category_anomalies(transactions, TODAY)
    assert [item.category_id for item in anomalies] == [3]
    assert anomalies[0].ratio == NO_BASELINE_RATIO


def test_potential_duplicates():
    transactions = [
        _expense(5, 1500, merchant="Cafe"),
        _expense(4, 1500, merchant="cafe"),
        _expense(1, 1500, merchant="Cafe"),
        _expense(4, 1600, merchant="Cafe"),
        _expense(40, 1500, merchant="Cafe"),
        {"date": TODAY, "type": "income", "amount_cents": 1500, "merchant": "Cafe"},
    ]
    duplicates = find_potential_duplicates(transactions, since=TODAY - timedelta(days=30))
    assert len(duplicates) == 1
    assert duplicates[0].date == TODAY - timedelta(days=5)
    assert duplicates[0].match_date == TODAY - timedelta(days=4)
    assert duplicates[0].days_apart == 1
    assert duplicates[0].amount_cents == 1500


def test_upcoming_recurring_net():
    rules = [
        SimpleNamespace(active=True, next_run=date(2025, 6, 20), type=CategoryType.income, amount_cents=300000),
        SimpleNamespace(active=True, next_run=date(2025, 6, 16), type=CategoryType.expense, amount_cents=120000),
        SimpleNamespace(active=False, next_run=date(2025, 6, 18), type=CategoryType.expense, amount_cents=999),
        SimpleNamespace(active=True, next_run=date(2025, 7, 1), type=CategoryType.expense, amount_cents=999),
        SimpleNamespace(active=True, next_run=date(2025, 6, 14), type=CategoryType.expense, amount_cents=999),
    ]
    assert upcoming_recurring_net(rules, TODAY, date(2025, 6, 30)) == 180000


def test_month_forecast():
    forecast = month_forecast(Totals(income=30000, expense=15000, net=15000), TODAY, -5000)
    assert forecast.net_to_date == 15000
    assert forecast.daily_net == 1000
    assert forecast.projected_net == 15000 + 1000 * 15 - 5000


def test_safe_to_spend_penalises_spending_ahead_of_pace():
    # Half of a 30-day month elapsed: pace limit is 50000 of 100000.
    result = safe_to_spend(
        net_worth=200000,
        upcoming_net=-20000,
        month_expense=60000,
        budget_limit=100000,
        today=TODAY,
    )
    assert result.safe_this_month == 200000 - 20000 - 10000
    assert result.safe_per_day == pytest.approx(170000 / 16)
    assert result.pace_ratio == pytest.approx(1.2)


def test_safe_to_spend_without_budget_counts_all_spending():
    # No budget means a pace limit of zero, so every cent spent is overspend.
    result = safe_to_spend(1000, 0, 500, 0, TODAY)
    assert result.pace_ratio == 0.0
    assert result.safe_this_month == 500
