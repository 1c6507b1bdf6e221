from datetime import date

from balances import (
    build_account_balances,
    build_account_summary,
    build_net_worth_trend,
    transaction_deltas,
)
from ledger import normalize_transaction

ACCOUNTS = [
    {"id": 1, "name": "Checking", "type": "checking", "currency_code": "USD"},
    {"id": 2, "name": "Card", "type": "credit", "currency_code": "USD"},
    {"id": 3, "name": "Euro savings", "type": "savings", "currency_code": "EUR"},
]


def _transactions():
    return [
        {
            "date": "2025-01-01",
            "type": "income",
            "amount_cents": 100000,
            "account_id": 1,
            "currency_code": "USD",
        },
        {
            "date": "2025-01-02",
            "type": "expense",
            "amount_cents": 2500,
            "account_id": 2,
            "currency_code": "USD",
        },
        {
            "date": "2025-01-03",
            "transaction_kind": "transfer",
            "amount_cents": 2000,
            "from_account_id": 1,
            "to_account_id": 2,
            "currency_code": "USD",
        },
        {
            "date": "2025-01-03",
            "type": "income",
            "amount_cents": 5000,
            "account_id": 3,
            "currency_code": "EUR",
        },
        {
            "date": "2025-01-04",
            "type": "expense",
            "amount_cents": 999,
            "account_id": 42,
            "currency_code": "USD",
        },
    ]


def test_transfer_deltas_sum_to_zero():
    txn = normalize_transaction(
        {
            "transaction_kind": "transfer",
            "amount_cents": 750,
            "from_account_id": 1,
            "to_account_id": 2,
        }
    )
    deltas = transaction_deltas(txn)
    assert deltas == [(1, -750), (2, 750)]
    assert sum(delta for _, delta in deltas) == 0


def test_income_and_expense_move_one_account():
    income = normalize_transaction({"type": "income", "amount_cents": 10, "account_id": 5})
    expense = normalize_transaction({"type": "expense", "amount_cents": 10, "account_id": 5})
    assert transaction_deltas(income) == [(5, 10)]
    assert transaction_deltas(expense) == [(5, -10)]


def test_balances_filter_by_currency_and_drop_unknown_accounts():
    balances = build_account_balances(ACCOUNTS, _transactions(), "USD")
    assert balances == {1: 98000, 2: -500}

    everything = build_account_balances(ACCOUNTS, _transactions())
    assert everything == {1: 98000, 2: -500, 3: 5000}


def test_account_summary_partitions_by_class():
    balances = build_account_balances(ACCOUNTS, _transactions(), "USD")
    summary = build_account_summary(ACCOUNTS, balances, "USD")
    assert summary.assets == 98000
    assert summary.liabilities == -500
    assert summary.total == 97500


def test_net_worth_trend_replays_history_before_start():
    trend = build_net_worth_trend(
        ACCOUNTS, _transactions(), date(2025, 1, 2), date(2025, 1, 4), "USD"
    )
    assert [point.date for point in trend] == ["Jan 2", "Jan 3", "Jan 4"]
    assert [point.balance for point in trend] == [975, 975, 975]


def test_net_worth_trend_edges():
    assert build_net_worth_trend(ACCOUNTS, [], date(2025, 1, 2), date(2025, 1, 1)) == []
    empty = build_net_worth_trend(
        ACCOUNTS, [], date(2025, 1, 1), date(2025, 1, 2), label_format="%Y-%m-%d"
    )
    assert [(point.date, point.balance) for point in empty] == [
        ("2025-01-01", 0),
        ("2025-01-02", 0),
    ]
