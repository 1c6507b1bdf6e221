from datetime import date

from aggregation import (
    WEEKDAY_ORDER,
    build_cashflow_series,
    build_merchant_totals,
    build_net_trend_series,
    build_weekday_totals,
    category_totals,
    sum_income_expense,
    top_entries,
)
from ledger import INVALID_DATE, UNCATEGORIZED


def _ledger():
    return [
        {
            "id": 1,
            "date": "2025-03-01",
            "type": "income",
            "amount_cents": 20000,
            "account_id": 1,
            "category_id": 9,
        },
        {
            "id": 2,
            "date": "2025-03-02",
            "type": "expense",
            "amount_cents": 5000,
            "account_id": 1,
            "category_id": 1,
            "merchant": "Market",
            "splits": [
                {"id": 1, "category_id": 1, "amount_cents": 4000},
                {"id": 2, "category_id": 2, "amount_cents": 1000},
            ],
        },
        {
            "id": 3,
            "date": "2025-03-02",
            "transaction_kind": "expense",
            "amount_cents": 5000,
            "account_id": 1,
            "category_id": 3,
            "merchant": "Garage",
        },
        {
            "id": 4,
            "date": "2025-03-03",
            "transaction_kind": "transfer",
            "amount_cents": 3000,
            "from_account_id": 1,
            "to_account_id": 2,
        },
        {
            "id": 5,
            "date": "2025-03-04",
            "type": "expense",
            "transaction_kind": "transfer",
            "amount_cents": 3000,
            "from_account_id": 2,
            "to_account_id": 1,
        },
    ]


def test_mixed_ledger_totals_and_categories():
    totals = sum_income_expense(_ledger())
    assert (totals.income, totals.expense, totals.net) == (20000, 10000, 10000)
    assert category_totals(_ledger()) == {1: 4000, 2: 1000, 3: 5000}


def test_transfers_never_reach_series():
    series = build_cashflow_series(_ledger())
    assert [point.date for point in series] == ["2025-03-01", "2025-03-02"]
    assert series[1].expense == 10000
    assert series[0].income == 20000

    trend = build_net_trend_series(_ledger())
    assert [(point.date, point.net) for point in trend] == [
        ("2025-03-01", 20000),
        ("2025-03-02", -10000),
    ]


def test_series_scale():
    series = build_cashflow_series(_ledger(), scale=100)
    assert series[0].income == 200.0
    trend = build_net_trend_series(
        [{"date": "2025-01-01", "type": "income", "amount_cents": 150}], scale=100
    )
    assert trend[0].net == 2


def test_uncategorized_bucket():
    rows = [{"date": "2025-01-01", "type": "expense", "amount_cents": 700}]
    assert category_totals(rows) == {UNCATEGORIZED: 700}


def test_invalid_dates_are_bucketed_last():
    rows = [
        {"date": "garbage", "type": "expense", "amount_cents": 100},
        {"date": "2025-01-01", "type": "expense", "amount_cents": 200},
    ]
    series = build_cashflow_series(rows)
    assert [point.date for point in series] == ["2025-01-01", INVALID_DATE]


def test_merchant_totals_only_count_expenses_with_merchant():
    rows = _ledger() + [
        {"date": "2025-03-05", "type": "expense", "amount_cents": 250, "merchant": ""},
        {"date": "2025-03-05", "type": "income", "amount_cents": 250, "merchant": "Market"},
        {"date": "2025-03-06", "type": "expense", "amount_cents": 500, "merchant": "Market"},
    ]
    assert build_merchant_totals(rows) == {"Market": 5500, "Garage": 5000}


def test_weekday_totals():
    # 2025-03-02 is a Sunday, 2025-03-03 a Monday.
    rows = [
        {"date": date(2025, 3, 2), "type": "expense", "amount_cents": 1200},
        {"date": date(2025, 3, 3), "type": "expense", "amount_cents": 300},
        {"date": "bad", "type": "expense", "amount_cents": 50},
        {"date": date(2025, 3, 3), "type": "income", "amount_cents": 9999},
    ]
    totals = build_weekday_totals(rows)
    assert tuple(totals) == WEEKDAY_ORDER
    assert totals["Sun"] == 1200
    assert totals["Mon"] == 350
    assert totals["Tue"] == 0


def test_top_entries():
    assert top_entries({"a": 1, "b": 3, "c": 2}, limit=2) == [("b", 3), ("c", 2)]
