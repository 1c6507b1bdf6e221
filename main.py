import logging
from datetime import date, timedelta
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config import get_settings
from database import get_db
from models import Account, Category, CurrencyCode, RecurringTransaction, Transaction
from periods import Period, parse_month, resolve_period
from recurrence import local_today, monthly_equivalent_cents
from scheduler import SchedulerManager
from schemas import (
    AccountIn,
    BudgetIn,
    CandidateConvertIn,
    CategoryIn,
    GoalIn,
    OverallBudgetIn,
    RecurringRuleIn,
    TransactionIn,
)
from services import (
    UNCATEGORIZED_LABEL,
    UNKNOWN_ACCOUNT,
    AccountService,
    BudgetService,
    CategoryService,
    DashboardService,
    DuplicateRecurringRule,
    GoalService,
    RecurringService,
    SubscriptionService,
    TransactionService,
    parse_currency,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Tracker")

scheduler_manager: Optional[SchedulerManager] = None


@app.on_event("startup")
def startup_event():
    global scheduler_manager
    if not get_settings().scheduler_enabled:
        logger.info("Scheduler disabled")
        return
    scheduler_manager = SchedulerManager()
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    if scheduler_manager is not None:
        scheduler_manager.stop()


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


class ToggleIn(BaseModel):
    active: bool


class GoalProgressIn(BaseModel):
    amount_cents: int


class SnoozeIn(BaseModel):
    base_date: Optional[date] = None


class TransactionBatchIn(BaseModel):
    items: list[TransactionIn] = Field(default_factory=list)


def period_from_request(request: Request) -> Period:
    period_slug = request.query_params.get("period")
    start = request.query_params.get("start")
    end = request.query_params.get("end")
    try:
        return resolve_period(period_slug, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def currency_from_request(request: Request) -> Optional[CurrencyCode]:
    try:
        return parse_currency(request.query_params.get("currency"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def scale_from_request(request: Request) -> int:
    raw = request.query_params.get("scale", "1")
    try:
        scale = int(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid scale") from exc
    if scale < 1:
        raise HTTPException(status_code=400, detail="Scale must be at least 1")
    return scale


def optional_int(request: Request, name: str) -> Optional[int]:
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name}") from exc


def optional_date(request: Request, name: str) -> Optional[date]:
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name}") from exc


def account_out(account: Account) -> dict:
    return {
        "id": account.id,
        "name": account.name,
        "type": account.type.value,
        "account_class": account.account_class.value if account.account_class else None,
        "currency_code": account.currency_code.value,
    }


def category_out(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "type": category.type.value,
        "icon": category.icon,
    }


def transaction_out(
    txn: Transaction,
    accounts: Optional[dict[int, str]] = None,
    categories: Optional[dict[int, str]] = None,
) -> dict:
    accounts = accounts or {}
    categories = categories or {}

    def account_name(account_id: Optional[int]) -> Optional[str]:
        if account_id is None:
            return None
        return accounts.get(account_id, UNKNOWN_ACCOUNT)

    return {
        "id": txn.id,
        "date": txn.date.isoformat(),
        "kind": txn.kind.value,
        "amount_cents": txn.amount_cents,
        "currency_code": txn.currency_code.value,
        "category_id": txn.category_id,
        "category": (
            categories.get(txn.category_id, UNCATEGORIZED_LABEL)
            if txn.category_id is not None
            else None
        ),
        "account_id": txn.account_id,
        "account": account_name(txn.account_id),
        "from_account_id": txn.from_account_id,
        "from_account": account_name(txn.from_account_id),
        "to_account_id": txn.to_account_id,
        "to_account": account_name(txn.to_account_id),
        "merchant": txn.merchant,
        "notes": txn.notes,
        "tags": list(txn.tags or []),
        "recurring_id": txn.recurring_id,
        "splits": [
            {
                "id": split.id,
                "category_id": split.category_id,
                "amount_cents": split.amount_cents,
                "note": split.note,
            }
            for split in txn.splits
        ],
    }


def rule_out(rule: RecurringTransaction) -> dict:
    return {
        "id": rule.id,
        "name": rule.name,
        "merchant": rule.merchant,
        "type": rule.type.value,
        "amount_cents": rule.amount_cents,
        "monthly_cents": monthly_equivalent_cents(rule),
        "category_id": rule.category_id,
        "account_id": rule.account_id,
        "currency_code": rule.currency_code.value if rule.currency_code else None,
        "cadence": rule.cadence.value,
        "start_date": rule.start_date.isoformat(),
        "next_run": rule.next_run.isoformat(),
        "last_run": rule.last_run.isoformat() if rule.last_run else None,
        "end_date": rule.end_date.isoformat() if rule.end_date else None,
        "active": rule.active,
    }


@app.get("/api/summary")
def api_summary(request: Request, db: Session = Depends(get_db)):
    period = period_from_request(request)
    return DashboardService(db).summary(period, currency_from_request(request))


@app.get("/api/category-totals")
def api_category_totals(request: Request, db: Session = Depends(get_db)):
    period = period_from_request(request)
    return DashboardService(db).category_totals(period, currency_from_request(request))


@app.get("/api/cashflow")
def api_cashflow(request: Request, db: Session = Depends(get_db)):
    period = period_from_request(request)
    return DashboardService(db).cashflow(
        period, currency_from_request(request), scale_from_request(request)
    )


@app.get("/api/net-trend")
def api_net_trend(request: Request, db: Session = Depends(get_db)):
    period = period_from_request(request)
    return DashboardService(db).net_trend(
        period, currency_from_request(request), scale_from_request(request)
    )


@app.get("/api/merchants")
def api_merchants(request: Request, db: Session = Depends(get_db)):
    period = period_from_request(request)
    limit = optional_int(request, "limit") or 10
    return DashboardService(db).merchants(
        period, currency_from_request(request), limit=limit
    )


@app.get("/api/weekdays")
def api_weekdays(request: Request, db: Session = Depends(get_db)):
    period = period_from_request(request)
    return DashboardService(db).weekdays(period, currency_from_request(request))


@app.get("/api/accounts/balances")
def api_account_balances(request: Request, db: Session = Depends(get_db)):
    return DashboardService(db).balances(currency_from_request(request))


@app.get("/api/net-worth")
def api_net_worth(request: Request, db: Session = Depends(get_db)):
    end = optional_date(request, "end") or local_today()
    start = optional_date(request, "start") or end - timedelta(days=90)
    if start > end:
        raise HTTPException(status_code=400, detail="Start date must be before end date")
    return DashboardService(db).net_worth(start, end, currency_from_request(request))


@app.get("/api/insights")
def api_insights(request: Request, db: Session = Depends(get_db)):
    return DashboardService(db).insights(currency_from_request(request))


@app.get("/api/projections")
def api_projections(request: Request, db: Session = Depends(get_db)):
    params = request.query_params
    try:
        period = resolve_period(
            params.get("period") or "last_30_days", params.get("start"), params.get("end")
        )
        percent = float(params.get("percent", "10"))
        horizon = int(params.get("horizon", "12"))
        custom_cents = int(params.get("custom_cents", "0"))
        return DashboardService(db).projection(
            period,
            percent=percent,
            cadence=params.get("cadence", "monthly"),
            horizon_months=horizon,
            currency=currency_from_request(request),
            base=params.get("base", "income"),
            custom_cents=custom_cents,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/api/accounts")
def api_accounts(db: Session = Depends(get_db)):
    return [account_out(account) for account in AccountService(db).list_all()]


@app.post("/api/accounts", status_code=201)
def api_create_account(data: AccountIn, db: Session = Depends(get_db)):
    return account_out(AccountService(db).create(data))


@app.delete("/api/accounts/{account_id}", status_code=204)
def api_delete_account(account_id: int, db: Session = Depends(get_db)):
    try:
        AccountService(db).delete(account_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/categories")
def api_categories(db: Session = Depends(get_db)):
    return [category_out(category) for category in CategoryService(db).list_all()]


@app.post("/api/categories", status_code=201)
def api_create_category(data: CategoryIn, db: Session = Depends(get_db)):
    try:
        category = CategoryService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return category_out(category)


@app.delete("/api/categories/{category_id}", status_code=204)
def api_delete_category(category_id: int, db: Session = Depends(get_db)):
    try:
        CategoryService(db).delete(category_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/transactions")
def api_transactions(request: Request, db: Session = Depends(get_db)):
    period = period_from_request(request)
    currency = currency_from_request(request)
    page = max(optional_int(request, "page") or 1, 1)
    limit = min(max(optional_int(request, "limit") or 50, 1), 100)
    offset = (page - 1) * limit

    items = TransactionService(db).list(period, currency, limit=limit + 1, offset=offset)
    has_more = len(items) > limit
    accounts = AccountService(db).names()
    categories = {category.id: category.name for category in CategoryService(db).list_all()}
    return {
        "items": [transaction_out(txn, accounts, categories) for txn in items[:limit]],
        "page": page,
        "limit": limit,
        "has_more": has_more,
    }


@app.post("/api/transactions", status_code=201)
def api_create_transaction(data: TransactionIn, db: Session = Depends(get_db)):
    try:
        txn = TransactionService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return transaction_out(txn)


@app.post("/api/transactions/batch")
def api_create_transactions(data: TransactionBatchIn, db: Session = Depends(get_db)):
    try:
        inserted, skipped = TransactionService(db).bulk_create(data.items)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"inserted": inserted, "skipped": skipped}


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def api_delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        TransactionService(db).delete(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/budgets")
def api_budgets(request: Request, db: Session = Depends(get_db)):
    try:
        month = parse_month(request.query_params.get("month"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return BudgetService(db).progress_for_month(
        month, currency_from_request(request), optional_int(request, "account")
    )


@app.post("/api/budgets", status_code=201)
def api_upsert_budget(data: BudgetIn, db: Session = Depends(get_db)):
    try:
        budget = BudgetService(db).upsert(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "id": budget.id,
        "category_id": budget.category_id,
        "month": budget.month.isoformat(),
        "limit_cents": budget.limit_cents,
        "currency_code": budget.currency_code.value,
    }


@app.post("/api/budgets/overall", status_code=201)
def api_upsert_overall_budget(data: OverallBudgetIn, db: Session = Depends(get_db)):
    budget = BudgetService(db).upsert_overall(data)
    return {
        "id": budget.id,
        "month": budget.month.isoformat(),
        "limit_cents": budget.limit_cents,
        "currency_code": budget.currency_code.value,
    }


@app.delete("/api/budgets/{budget_id}", status_code=204)
def api_delete_budget(budget_id: int, db: Session = Depends(get_db)):
    try:
        BudgetService(db).delete(budget_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/goals")
def api_goals(db: Session = Depends(get_db)):
    return GoalService(db).with_progress()


@app.post("/api/goals", status_code=201)
def api_create_goal(data: GoalIn, db: Session = Depends(get_db)):
    goal = GoalService(db).create(data)
    return {"id": goal.id, "name": goal.name}


@app.post("/api/goals/{goal_id}/progress")
def api_goal_progress(goal_id: int, data: GoalProgressIn, db: Session = Depends(get_db)):
    try:
        goal = GoalService(db).add_progress(goal_id, data.amount_cents)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"id": goal.id, "current_cents": goal.current_cents}


@app.delete("/api/goals/{goal_id}", status_code=204)
def api_delete_goal(goal_id: int, db: Session = Depends(get_db)):
    try:
        GoalService(db).delete(goal_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/recurring")
def api_recurring(db: Session = Depends(get_db)):
    service = RecurringService(db)
    return {
        "rules": [rule_out(rule) for rule in service.list()],
        "statistics": service.get_statistics(),
    }


@app.post("/api/recurring", status_code=201)
def api_create_recurring(data: RecurringRuleIn, db: Session = Depends(get_db)):
    try:
        rule = RecurringService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return rule_out(rule)


@app.post("/api/recurring/materialize")
def api_materialize_recurring(db: Session = Depends(get_db)):
    result = RecurringService(db).materialize()
    if result is None:
        return {"inserted": 0, "updated": 0}
    return {"inserted": result.inserted, "updated": result.updated}


@app.post("/api/recurring/{rule_id}/toggle")
def api_toggle_recurring(rule_id: int, data: ToggleIn, db: Session = Depends(get_db)):
    try:
        rule = RecurringService(db).toggle(rule_id, data.active)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return rule_out(rule)


@app.delete("/api/recurring/{rule_id}", status_code=204)
def api_delete_recurring(rule_id: int, db: Session = Depends(get_db)):
    try:
        RecurringService(db).delete(rule_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/subscriptions")
def api_subscriptions(db: Session = Depends(get_db)):
    return SubscriptionService(db).describe()


@app.post("/api/subscriptions/{candidate_id}/convert", status_code=201)
def api_convert_subscription(
    candidate_id: int,
    data: Optional[CandidateConvertIn] = None,
    db: Session = Depends(get_db),
):
    try:
        rule = SubscriptionService(db).convert(candidate_id, data)
    except DuplicateRecurringRule as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return rule_out(rule)


@app.post("/api/subscriptions/{candidate_id}/snooze")
def api_snooze_subscription(
    candidate_id: int, data: Optional[SnoozeIn] = None, db: Session = Depends(get_db)
):
    base_date = data.base_date if data else None
    try:
        candidate = SubscriptionService(db).snooze(candidate_id, base_date)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"id": candidate.id, "next_due_date": candidate.next_due_date.isoformat()}


@app.delete("/api/subscriptions/{candidate_id}", status_code=204)
def api_ignore_subscription(candidate_id: int, db: Session = Depends(get_db)):
    try:
        SubscriptionService(db).ignore(candidate_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


def main() -> None:
    uvicorn.run("main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
