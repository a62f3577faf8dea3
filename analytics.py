"""Dashboard and analytics aggregations.

Everything here is recomputed from the stored transactions on each call. The
pure helpers take already-loaded rows so they can be reused by callers that
have the rows at hand; the ``compute_*`` functions that take a session load
them first and fall back to empty results while the database is unreachable.
"""
import calendar
import logging
from datetime import datetime

from sqlalchemy import and_
from sqlalchemy.orm import Session

import crud
import models

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY_NAME = "Unknown"
UNKNOWN_CATEGORY_COLOR = "#999999"


def month_bounds(month: str):
    """'2024-05' -> (2024-05-01 00:00:00, 2024-05-31 23:59:59.999999)."""
    year, mon = (int(part) for part in month.split("-"))
    last_day = calendar.monthrange(year, mon)[1]
    return datetime(year, mon, 1), datetime(year, mon, last_day, 23, 59, 59, 999999)


def month_key(value: datetime) -> str:
    return value.strftime("%Y-%m")


def empty_stats():
    return {"total_income": 0, "total_expenses": 0, "balance": 0, "transaction_count": 0}


# ---------------------- PURE AGGREGATION ----------------------
def summarize_transactions(transactions):
    total_income = sum(t.amount for t in transactions if t.type == "income")
    total_expenses = sum(t.amount for t in transactions if t.type == "expense")
    return {
        "total_income": total_income,
        "total_expenses": total_expenses,
        "balance": total_income - total_expenses,
        "transaction_count": len(transactions),
    }


def group_category_spending(rows):
    """Group (category_id, name, color, amount, type) rows by category id.

    Entries keep the order in which their category was first seen.
    """
    grouped = {}
    for category_id, name, color, amount, txn_type in rows:
        entry = grouped.get(category_id)
        if entry is None:
            entry = grouped[category_id] = {
                "category_id": category_id,
                "category_name": name or UNKNOWN_CATEGORY_NAME,
                "category_color": color or UNKNOWN_CATEGORY_COLOR,
                "total": 0,
                "type": txn_type,
            }
        entry["total"] += amount
    return list(grouped.values())


def compute_budget_progress(budget, transactions):
    """Spent/remaining/percentage of one budget.

    Only expense transactions of the budget's category dated inside the
    budget's month count. ``percentage`` is capped at 100; use
    ``spent / amount`` for the real overspend ratio.
    """
    spent = sum(
        t.amount for t in transactions
        if t.type == "expense"
        and t.category_id == budget.category_id
        and month_key(t.date) == budget.month
    )
    percentage = min(100.0, 100 * spent / budget.amount) if budget.amount > 0 else 0.0
    return {"spent": spent, "remaining": budget.amount - spent, "percentage": percentage}


def top_expense_categories(spending, limit=5):
    expenses = [entry for entry in spending if entry["type"] == "expense"]
    return sorted(expenses, key=lambda entry: entry["total"], reverse=True)[:limit]


def split_by_type(spending):
    return {
        "income": [e for e in spending if e["type"] == "income" and e["total"] > 0],
        "expense": [e for e in spending if e["type"] == "expense" and e["total"] > 0],
    }


def compare_by_category_name(spending):
    """Income vs expense per category name, for side-by-side bars."""
    by_name = {}
    for entry in spending:
        row = by_name.setdefault(entry["category_name"],
                                 {"name": entry["category_name"], "income": 0, "expense": 0})
        row[entry["type"]] += entry["total"]
    return list(by_name.values())


# ---------------------- QUERIES ----------------------
@crud.degrade_on_outage(empty_stats)
def compute_dashboard_stats(db: Session, user_id: int, start: datetime, end: datetime):
    transactions = db.query(models.Transaction)\
        .filter(models.Transaction.user_id == user_id,
                models.Transaction.date >= start,
                models.Transaction.date <= end)\
        .all()
    return summarize_transactions(transactions)


@crud.degrade_on_outage(list)
def compute_category_spending(db: Session, user_id: int, start: datetime, end: datetime):
    rows = db.query(models.Transaction.category_id,
                    models.Category.name,
                    models.Category.color,
                    models.Transaction.amount,
                    models.Transaction.type)\
        .outerjoin(models.Category, and_(models.Transaction.category_id == models.Category.id,
                                         models.Category.user_id == models.Transaction.user_id))\
        .filter(models.Transaction.user_id == user_id,
                models.Transaction.date >= start,
                models.Transaction.date <= end)\
        .order_by(models.Transaction.date, models.Transaction.id)\
        .all()
    return group_category_spending(rows)


@crud.degrade_on_outage(list)
def compute_budget_overview(db: Session, user_id: int, month: str):
    """Budgets of one month with their category and progress."""
    start, end = month_bounds(month)
    budgets = crud.get_budgets(db, user_id, month)
    if not budgets:
        return []
    categories = {c.id: c for c in crud.get_categories(db, user_id)}
    transactions = db.query(models.Transaction)\
        .filter(models.Transaction.user_id == user_id,
                models.Transaction.type == "expense",
                models.Transaction.date >= start,
                models.Transaction.date <= end)\
        .all()

    overview = []
    for budget in budgets:
        category = categories.get(budget.category_id)
        item = {
            "id": budget.id,
            "category_id": budget.category_id,
            "amount": budget.amount,
            "month": budget.month,
            "category_name": category.name if category else UNKNOWN_CATEGORY_NAME,
            "category_color": category.color if category else UNKNOWN_CATEGORY_COLOR,
        }
        item.update(compute_budget_progress(budget, transactions))
        overview.append(item)
    logger.debug("Budget overview for user %s, %s: %d budgets", user_id, month, len(overview))
    return overview
