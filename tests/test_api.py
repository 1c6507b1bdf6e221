from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from models import IntervalGuess, SubscriptionCandidate, Transaction
from recurrence import local_today


@pytest.fixture
def api():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app), TestingSession
    finally:
        app.dependency_overrides.clear()


def _setup_ledger(client: TestClient) -> dict[str, int]:
    ids = {}
    for name, kind in (("Checking", "checking"), ("Savings", "savings")):
        resp = client.post("/api/accounts", json={"name": name, "type": kind})
        assert resp.status_code == 201
        ids[name] = resp.json()["id"]
    for name, kind in (("Salary", "income"), ("Food", "expense"), ("Fun", "expense")):
        resp = client.post("/api/categories", json={"name": name, "type": kind})
        assert resp.status_code == 201
        ids[name] = resp.json()["id"]

    payloads = [
        {
            "date": "2025-03-01",
            "kind": "income",
            "amount_cents": 20000,
            "account_id": ids["Checking"],
            "category_id": ids["Salary"],
        },
        {
            "date": "2025-03-02",
            "kind": "expense",
            "amount_cents": 5000,
            "account_id": ids["Checking"],
            "category_id": ids["Food"],
            "merchant": "Market",
            "splits": [
                {"category_id": ids["Food"], "amount_cents": 4000},
                {"category_id": ids["Fun"], "amount_cents": 1000},
            ],
        },
        {
            "date": "2025-03-03",
            "kind": "transfer",
            "amount_cents": 3000,
            "from_account_id": ids["Checking"],
            "to_account_id": ids["Savings"],
        },
    ]
    for payload in payloads:
        resp = client.post("/api/transactions", json=payload)
        assert resp.status_code == 201, resp.text
    return ids


MARCH = "period=custom&start=2025-03-01&end=2025-03-31&currency=USD"


def test_dashboard_endpoints(api):
    client, _ = api
    _setup_ledger(client)

    summary = client.get(f"/api/summary?{MARCH}").json()
    assert (summary["income_cents"], summary["expense_cents"], summary["net_cents"]) == (
        20000,
        5000,
        15000,
    )
    assert summary["formatted"]["net"] == "$150.00"

    categories = client.get(f"/api/category-totals?{MARCH}").json()
    assert [(row["category"], row["amount_cents"]) for row in categories] == [
        ("Food", 4000),
        ("Fun", 1000),
    ]

    cashflow = client.get(f"/api/cashflow?{MARCH}&scale=100").json()
    assert cashflow == [
        {"date": "2025-03-01", "income": 200.0, "expense": 0.0},
        {"date": "2025-03-02", "income": 0.0, "expense": 50.0},
    ]

    trend = client.get(f"/api/net-trend?{MARCH}").json()
    assert [point["net"] for point in trend] == [20000, -5000]

    merchants = client.get(f"/api/merchants?{MARCH}").json()
    assert merchants == [{"merchant": "Market", "amount_cents": 5000}]

    weekdays = client.get(f"/api/weekdays?{MARCH}").json()
    assert weekdays["Sun"] == 5000


def test_balances_and_net_worth(api):
    client, _ = api
    ids = _setup_ledger(client)

    balances = client.get("/api/accounts/balances?currency=USD").json()
    by_id = {row["id"]: row["balance_cents"] for row in balances["accounts"]}
    assert by_id == {ids["Checking"]: 12000, ids["Savings"]: 3000}
    assert balances["summary"]["total"] == 15000

    trend = client.get(
        "/api/net-worth?start=2025-03-01&end=2025-03-03&currency=USD"
    ).json()
    assert [point["balance"] for point in trend] == [200, 150, 150]


def test_transactions_listing_and_deleted_account(api):
    client, _ = api
    ids = _setup_ledger(client)
    assert client.delete(f"/api/accounts/{ids['Savings']}").status_code == 204

    items = client.get(f"/api/transactions?{MARCH}").json()["items"]
    transfer = next(item for item in items if item["kind"] == "transfer")
    assert transfer["to_account"] == "Unknown"
    assert transfer["from_account"] == "Checking"

    balances = client.get("/api/accounts/balances").json()
    assert [row["id"] for row in balances["accounts"]] == [ids["Checking"]]


def test_validation_errors(api):
    client, _ = api
    ids = _setup_ledger(client)

    resp = client.post(
        "/api/transactions",
        json={
            "date": "2025-03-05",
            "kind": "transfer",
            "amount_cents": 100,
            "from_account_id": ids["Checking"],
            "to_account_id": ids["Checking"],
        },
    )
    assert resp.status_code == 400

    resp = client.post(
        "/api/transactions",
        json={
            "date": "2025-03-05",
            "kind": "expense",
            "amount_cents": 100,
            "account_id": ids["Checking"],
            "category_id": ids["Salary"],
        },
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Category type mismatch"

    assert client.get("/api/summary?currency=XYZ").status_code == 400
    assert client.get(f"/api/cashflow?{MARCH}&scale=0").status_code == 400
    assert client.get("/api/summary?period=custom&start=2025-03-01").status_code == 400
    assert client.post("/api/categories", json={"name": "Food", "type": "expense"}).status_code == 400
    assert client.delete("/api/transactions/999").status_code == 404


def test_batch_skips_known_rows(api):
    client, _ = api
    ids = _setup_ledger(client)
    resp = client.post(
        "/api/transactions/batch",
        json={
            "items": [
                {
                    "date": "2025-03-01",
                    "kind": "income",
                    "amount_cents": 20000,
                    "account_id": ids["Checking"],
                    "category_id": ids["Salary"],
                },
                {
                    "date": "2025-03-09",
                    "kind": "expense",
                    "amount_cents": 700,
                    "account_id": ids["Checking"],
                    "merchant": "Bakery",
                },
                {
                    "date": "2025-03-09",
                    "kind": "expense",
                    "amount_cents": 700,
                    "account_id": ids["Checking"],
                    "merchant": "bakery ",
                },
            ]
        },
    )
    assert resp.json() == {"inserted": 1, "skipped": 2}


def test_recurring_materialize_endpoint(api):
    client, TestingSession = api
    ids = _setup_ledger(client)
    resp = client.post(
        "/api/recurring",
        json={
            "name": "Gym",
            "merchant": "Gym",
            "type": "expense",
            "amount_cents": 4500,
            "account_id": ids["Checking"],
            "cadence": "monthly",
            "start_date": local_today().isoformat(),
        },
    )
    assert resp.status_code == 201

    assert client.post("/api/recurring/materialize").json() == {
        "inserted": 1,
        "updated": 1,
    }
    assert client.post("/api/recurring/materialize").json() == {
        "inserted": 0,
        "updated": 0,
    }

    with TestingSession() as session:
        generated = session.scalars(
            select(Transaction).where(Transaction.recurring_id.is_not(None))
        ).all()
        assert len(generated) == 1

    listing = client.get("/api/recurring").json()
    assert listing["statistics"]["total_monthly_expenses"] == 4500

    rule_id = resp.json()["id"]
    toggled = client.post(f"/api/recurring/{rule_id}/toggle", json={"active": False})
    assert toggled.json()["active"] is False
    assert client.delete(f"/api/recurring/{rule_id}").status_code == 204


def test_subscription_flow(api):
    client, TestingSession = api
    with TestingSession() as session:
        session.add_all(
            [
                SubscriptionCandidate(
                    user_id=1,
                    merchant="Streamly",
                    avg_amount_cents=1200,
                    interval_guess=IntervalGuess.weekly,
                    confidence=0.9,
                ),
                SubscriptionCandidate(
                    user_id=1,
                    merchant="streamly ",
                    avg_amount_cents=1200,
                    interval_guess=IntervalGuess.monthly,
                    confidence=0.4,
                ),
                SubscriptionCandidate(
                    user_id=1,
                    merchant="Newsly",
                    avg_amount_cents=800,
                    interval_guess=IntervalGuess.monthly,
                    confidence=0.7,
                ),
            ]
        )
        session.commit()

    listing = client.get("/api/subscriptions").json()
    assert listing["total_monthly_cents"] == 5200 + 1200 + 800
    assert listing["items"][0]["merchant"] == "Streamly"
    first, second, third = (item["id"] for item in listing["items"])

    converted = client.post(
        f"/api/subscriptions/{first}/convert",
        json={"next_due_date": "2025-07-01"},
    )
    assert converted.status_code == 201
    assert converted.json()["cadence"] == "weekly"
    assert converted.json()["next_run"] == "2025-07-01"

    duplicate = client.post(f"/api/subscriptions/{second}/convert")
    assert duplicate.status_code == 409

    snoozed = client.post(
        f"/api/subscriptions/{third}/snooze", json={"base_date": "2025-05-10"}
    )
    assert snoozed.json()["next_due_date"] == "2025-06-10"

    assert client.delete(f"/api/subscriptions/{third}").status_code == 204
    assert client.delete(f"/api/subscriptions/{third}").status_code == 404


def test_budgets_and_goals(api):
    client, _ = api
    ids = _setup_ledger(client)

    resp = client.post(
        "/api/budgets",
        json={"category_id": ids["Food"], "month": "2025-03-17", "limit_cents": 5000},
    )
    assert resp.status_code == 201
    assert resp.json()["month"] == "2025-03-01"
    client.post("/api/budgets/overall", json={"month": "2025-03-01", "limit_cents": 8000})

    progress = client.get("/api/budgets?month=2025-03&currency=USD").json()
    food = progress["budgets"][0]
    assert food["category"] == "Food"
    assert food["spent_cents"] == 4000
    assert food["alert"] is True
    assert progress["overall"]["spent_cents"] == 5000

    assert client.get("/api/budgets?month=March").status_code == 400

    goal = client.post(
        "/api/goals", json={"name": "Trip", "target_cents": 10000, "current_cents": 2500}
    ).json()
    client.post(f"/api/goals/{goal['id']}/progress", json={"amount_cents": 2500})
    goals = client.get("/api/goals").json()
    assert goals[0]["percent"] == 50.0
    assert goals[0]["reached"] is False


def test_insights_endpoint(api):
    client, _ = api
    _setup_ledger(client)
    resp = client.get("/api/insights?currency=USD")
    assert resp.status_code == 200
    body = resp.json()
    assert body["currency"] == "USD"
    assert set(body) >= {"forecast", "safe_to_spend", "anomalies", "duplicates"}


def test_recurring_rule_posts_in_account_currency(api):
    client, TestingSession = api
    account = client.post(
        "/api/accounts", json={"name": "Girokonto", "currency_code": "EUR"}
    ).json()

    mismatch = client.post(
        "/api/recurring",
        json={
            "name": "Streaming",
            "type": "expense",
            "amount_cents": 1000,
            "account_id": account["id"],
            "currency_code": "USD",
            "cadence": "monthly",
            "start_date": "2025-01-10",
        },
    )
    assert mismatch.status_code == 400
    assert mismatch.json()["detail"] == "Account currency mismatch"

    rule = client.post(
        "/api/recurring",
        json={
            "name": "Streaming",
            "type": "expense",
            "amount_cents": 1000,
            "account_id": account["id"],
            "cadence": "monthly",
            "start_date": "2025-01-10",
            "end_date": "2025-02-20",
        },
    ).json()
    assert rule["currency_code"] == "EUR"

    assert client.post("/api/recurring/materialize").json()["inserted"] == 2
    with TestingSession() as session:
        currencies = session.scalars(select(Transaction.currency_code)).all()
        assert [code.value for code in currencies] == ["EUR", "EUR"]

    balances = client.get("/api/accounts/balances?currency=EUR").json()
    assert balances["accounts"][0]["balance_cents"] == -2000


def test_recurring_rule_cannot_start_after_its_end_date(api):
    client, _ = api
    resp = client.post(
        "/api/recurring",
        json={
            "name": "Lapsed",
            "type": "expense",
            "amount_cents": 500,
            "cadence": "monthly",
            "start_date": "2025-01-01",
            "next_run": "2025-03-01",
            "end_date": "2025-02-01",
        },
    )
    assert resp.status_code == 400


def test_projection_from_period_baseline(api):
    client, _ = api
    _setup_ledger(client)

    # 30 days with 20000 income and 5000 expense.
    body = client.get(
        "/api/projections?period=custom&start=2025-03-01&end=2025-03-30"
        "&currency=USD&base=net&percent=10&cadence=monthly&horizon=12"
    ).json()
    assert body["baseline"]["day_count"] == 30
    assert body["base_monthly_cents"] == pytest.approx(15000)
    projection = body["projection"]
    assert projection["period_count"] == 12
    assert projection["contribution_per_period"] == pytest.approx(1500)
    assert projection["points"][-1] == {"label": "Month 12", "total": 180}

    custom = client.get(
        "/api/projections?base=custom&custom_cents=100000&percent=10"
        "&cadence=weekly&horizon=1"
    ).json()
    assert custom["projection"]["period_count"] == 4
    assert custom["projection"]["contribution_per_period"] == pytest.approx(2500)

    assert client.get("/api/projections?base=salary").status_code == 400
    assert client.get("/api/projections?percent=lots").status_code == 400
