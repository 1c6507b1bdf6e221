from types import SimpleNamespace

from budgets import (
    BUDGET_ALERT_RATIO,
    budget_progress,
    goal_progress,
    overall_budget_progress,
)


def _budget(category_id, limit):
    return SimpleNamespace(category_id=category_id, limit_cents=limit)


def _expense(category_id, amount, account_id=1, splits=None):
    return {
        "date": "2025-03-10",
        "type": "expense",
        "amount_cents": amount,
        "category_id": category_id,
        "account_id": account_id,
        "splits": splits or [],
    }


def test_budget_progress_counts_split_lines():
    transactions = [
        _expense(
            1,
            5000,
            splits=[
                {"category_id": 1, "amount_cents": 4000},
                {"category_id": 2, "amount_cents": 1000},
            ],
        ),
        {"date": "2025-03-11", "type": "income", "amount_cents": 9000, "category_id": 1},
    ]
    rows = budget_progress([_budget(1, 5000), _budget(2, 2000)], transactions)
    by_category = {row.category_id: row for row in rows}

    assert by_category[1].spent_cents == 4000
    assert by_category[1].remaining_cents == 1000
    assert by_category[1].ratio == 0.8
    assert by_category[1].alert is True
    assert by_category[2].spent_cents == 1000
    assert by_category[2].alert is False


def test_unspent_budget_carries_over_but_overspend_does_not():
    rows = budget_progress(
        [_budget(1, 10000), _budget(2, 10000)],
        [_expense(1, 2000)],
        previous_budgets=[_budget(1, 10000), _budget(2, 1000)],
        previous_transactions=[_expense(1, 7000), _expense(2, 3000)],
    )
    by_category = {row.category_id: row for row in rows}

    assert by_category[1].carryover_cents == 3000
    assert by_category[1].effective_limit_cents == 13000
    assert by_category[1].remaining_cents == 11000
    assert by_category[2].carryover_cents == 0
    assert by_category[2].effective_limit_cents == 10000


def test_budget_progress_account_filter():
    rows = budget_progress(
        [_budget(1, 10000)],
        [_expense(1, 2000, account_id=1), _expense(1, 3000, account_id=2)],
        account_id=2,
    )
    assert rows[0].spent_cents == 3000


def test_overall_budget_uses_whole_expense_amounts():
    progress = overall_budget_progress(
        10000,
        [
            _expense(1, 6000),
            _expense(2, 3000),
            {"date": "2025-03-01", "transaction_kind": "transfer", "amount_cents": 5000},
        ],
    )
    assert progress.spent_cents == 9000
    assert progress.ratio == 0.9
    assert progress.ratio >= BUDGET_ALERT_RATIO
    assert progress.alert is True


def test_goal_progress():
    halfway = goal_progress(SimpleNamespace(target_cents=10000, current_cents=5000))
    assert (halfway.ratio, halfway.percent, halfway.reached) == (0.5, 50.0, False)

    beyond = goal_progress(SimpleNamespace(target_cents=10000, current_cents=15000))
    assert beyond.percent == 100.0
    assert beyond.reached is True

    empty = goal_progress(SimpleNamespace(target_cents=0, current_cents=100))
    assert (empty.ratio, empty.reached) == (0.0, False)
