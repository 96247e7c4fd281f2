"""
Derived metrics over fetched transaction and budget records.

Every function here is pure: records go in as plain dicts (as returned by
the database layer), results come out as dicts or schema objects. Nothing
is cached; each request recomputes from the snapshot it read.

``monthly_category_spend`` and ``reconcile`` take a 0-based month index
(January is 0). ``dashboard_summary`` and ``investment_profile`` take the
canonical 1-12 month used by storage and the HTTP API.
"""

import calendar
import datetime as dt
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from schemas import BudgetInsights, BudgetSummary, category_key

DANGER_USAGE = 1.0
WARNING_USAGE = 0.8


class NonFiniteAmountError(ValueError):
    pass


def _as_date(value) -> Optional[dt.date]:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if value:
        return dt.date.fromisoformat(str(value)[:10])
    return None


def _amount(record: dict, field: str = "amount") -> float:
    value = float(record.get(field, 0) or 0)
    if not math.isfinite(value):
        raise NonFiniteAmountError(f"non-finite {field} encountered: {value!r}")
    return value


def _in_month(record: dict, month: int, year: int) -> bool:
    d = _as_date(record.get("date"))
    return d is not None and d.month - 1 == month and d.year == year


def _expenses_for_month(transactions: Iterable[dict], month: int, year: int) -> List[dict]:
    return [t for t in transactions if t.get("type") == "expense" and _in_month(t, month, year)]


def _spend_by_key(expenses: Iterable[dict]) -> Tuple[Dict[str, float], Dict[str, str]]:
    """Sum expenses per category key; labels keep the first spelling seen."""
    totals: Dict[str, float] = {}
    labels: Dict[str, str] = {}
    for t in expenses:
        key = category_key(t.get("category", ""))
        totals[key] = totals.get(key, 0) + _amount(t)
        labels.setdefault(key, t.get("category", ""))
    return totals, labels


def basic_stats(transactions: Iterable[dict]) -> dict:
    total_income = 0.0
    total_expense = 0.0
    for t in transactions:
        if t.get("type") == "income":
            total_income += _amount(t)
        elif t.get("type") == "expense":
            total_expense += _amount(t)
    return {
        "total_income": total_income,
        "total_expense": total_expense,
        "net_savings": total_income - total_expense,
    }


def monthly_category_spend(transactions: Iterable[dict], month: int, year: int) -> dict:
    totals, labels = _spend_by_key(_expenses_for_month(transactions, month, year))
    spend_by_category = {labels[k]: v for k, v in totals.items()}

    biggest_category = ""
    biggest_amount = 0.0
    for cat, amt in spend_by_category.items():
        if amt > biggest_amount:
            biggest_category, biggest_amount = cat, amt

    return {
        "spend_by_category": spend_by_category,
        "biggest_category": biggest_category,
        "biggest_amount": biggest_amount,
    }


def budget_month_index(month: int) -> int:
    """Map a stored budget month onto the 0-based index.

    Values above 11 can only be 1-based, so they are shifted down by one.
    Anything else is taken as already 0-based.
    """
    return month - 1 if month > 11 else month


def budget_status(usage: float) -> str:
    if usage >= DANGER_USAGE:
        return "danger"
    if usage >= WARNING_USAGE:
        return "warning"
    return "ok"


def _whole(value: float) -> str:
    """Round to whole units, halves away from zero."""
    return str(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def budget_alert(summary: BudgetSummary) -> Optional[str]:
    amounts = f"(₹{_whole(summary.spent)} / ₹{_whole(summary.limit)})"
    if summary.status == "danger":
        return f"You are OVER budget for {summary.category} {amounts}."
    if summary.status == "warning":
        return f"You are close to the limit for {summary.category} {amounts}."
    return None


def reconcile(
    transactions: Sequence[dict],
    budgets: Sequence[dict],
    month: int,
    year: int,
) -> BudgetInsights:
    """Compare each budget of the target month against actual spend.

    Budgets drive the result: spend in a category without a budget is
    ignored, and budgets for other months are skipped. Summaries and
    alerts follow the order of ``budgets``. Duplicate budgets for the
    same category and month are each reported.
    """
    spent_by_key, _ = _spend_by_key(_expenses_for_month(transactions, month, year))

    insights = BudgetInsights()
    for b in budgets:
        if budget_month_index(int(b["month"])) != month or int(b["year"]) != year:
            continue

        limit = _amount(b, "limit")
        spent = spent_by_key.get(category_key(b["category"]), 0.0)
        usage = spent / limit if limit > 0 else 0.0

        summary = BudgetSummary(
            budget_id=b.get("id"),
            category=b["category"],
            limit=limit,
            spent=spent,
            remaining=limit - spent,
            usage=usage,
            status=budget_status(usage),
        )
        insights.summaries.append(summary)

        alert = budget_alert(summary)
        if alert:
            insights.alerts.append(alert)

    return insights


def month_budget_insights(
    transactions: Sequence[dict],
    budgets: Sequence[dict],
    month: int,
    year: int,
) -> BudgetInsights:
    """Reconcile budgets stored with 1-12 months against one calendar month."""
    # reconcile works on 0-based months
    indexed = [dict(b, month=int(b["month"]) - 1) for b in budgets]
    return reconcile(transactions, indexed, month - 1, year)


def _top_category(spend: dict) -> Optional[dict]:
    if not spend["biggest_category"]:
        return None
    return {"name": spend["biggest_category"], "amount": spend["biggest_amount"]}


def _savings_rate(income: float, net: float) -> float:
    return max(0.0, net / income * 100) if income > 0 else 0.0


def dashboard_summary(
    transactions: Sequence[dict],
    budgets: Sequence[dict],
    month: int,
    year: int,
    today: Optional[dt.date] = None,
) -> dict:
    """Everything the dashboard shows for one calendar month (1-12)."""
    today = today or dt.date.today()
    index = month - 1

    month_tx = [t for t in transactions if _in_month(t, index, year)]
    stats = basic_stats(month_tx)
    spend = monthly_category_spend(month_tx, index, year)

    daily: Dict[int, float] = {}
    for t in month_tx:
        if t.get("type") == "expense":
            day = _as_date(t["date"]).day
            daily[day] = daily.get(day, 0) + _amount(t)

    month_total_expense = sum(spend["spend_by_category"].values())
    days_in_month = calendar.monthrange(year, month)[1]
    if (today.year, today.month) == (year, month):
        days_so_far = today.day
    else:
        days_so_far = days_in_month
    avg_daily_spend = month_total_expense / days_so_far if days_so_far > 0 else 0.0

    month_budgets = [b for b in budgets if int(b["month"]) == month and int(b["year"]) == year]
    insights = month_budget_insights(transactions, month_budgets, month, year)

    return {
        "month": month,
        "year": year,
        "month_label": calendar.month_name[month],
        "total_income": stats["total_income"],
        "total_expense": stats["total_expense"],
        "net": stats["net_savings"],
        "savings_rate": _savings_rate(stats["total_income"], stats["net_savings"]),
        "expense_by_category": [{"name": k, "value": v} for k, v in spend["spend_by_category"].items()],
        "daily_spending": [{"day": d, "amount": daily[d]} for d in sorted(daily)],
        "month_total_expense": month_total_expense,
        "avg_daily_spend": avg_daily_spend,
        "projected_month_expense": avg_daily_spend * days_in_month,
        "total_budget": sum(_amount(b, "limit") for b in month_budgets),
        "top_category": _top_category(spend),
        "budget_insights": insights.model_dump(),
    }


def investment_profile(transactions: Sequence[dict], month: int, year: int) -> dict:
    """Savings figures fed to the investment suggestion (month is 1-12)."""
    stats = basic_stats(transactions)
    spend = monthly_category_spend(transactions, month - 1, year)
    net = stats["net_savings"]
    return {
        "total_income": stats["total_income"],
        "total_expense": stats["total_expense"],
        "net": net,
        "monthly_savings_estimate": max(net, 0.0),
        "savings_rate": _savings_rate(stats["total_income"], net),
        "month_label": calendar.month_name[month],
        "month_total_expense": sum(spend["spend_by_category"].values()),
        "top_category": _top_category(spend),
    }
