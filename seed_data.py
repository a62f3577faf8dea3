import argparse
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

import models

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    # Income
    {"name": "Salary", "type": "income", "color": "#10b981", "icon": "💰"},
    {"name": "Freelance", "type": "income", "color": "#14b8a6", "icon": "💼"},
    {"name": "Investments", "type": "income", "color": "#06b6d4", "icon": "📈"},
    {"name": "Other Income", "type": "income", "color": "#0ea5e9", "icon": "💵"},
    # Expense
    {"name": "Groceries", "type": "expense", "color": "#ef4444", "icon": "🛒"},
    {"name": "Rent", "type": "expense", "color": "#f97316", "icon": "🏠"},
    {"name": "Utilities", "type": "expense", "color": "#f59e0b", "icon": "⚡"},
    {"name": "Transportation", "type": "expense", "color": "#eab308", "icon": "🚗"},
    {"name": "Entertainment", "type": "expense", "color": "#a855f7", "icon": "🎬"},
    {"name": "Dining Out", "type": "expense", "color": "#ec4899", "icon": "🍽️"},
    {"name": "Healthcare", "type": "expense", "color": "#8b5cf6", "icon": "🏥"},
    {"name": "Shopping", "type": "expense", "color": "#d946ef", "icon": "🛍️"},
    {"name": "Education", "type": "expense", "color": "#6366f1", "icon": "📚"},
    {"name": "Subscriptions", "type": "expense", "color": "#3b82f6", "icon": "📱"},
]

# (category name, cents, description, days ago)
SAMPLE_TRANSACTIONS = [
    ("Salary", 500000, "Monthly salary", 1),
    ("Freelance", 150000, "Website project", 5),
    ("Investments", 25000, "Dividend payment", 10),
    ("Rent", 180000, "Monthly rent", 2),
    ("Groceries", 12500, "Weekly groceries", 1),
    ("Groceries", 8700, "Supermarket", 4),
    ("Groceries", 15200, "Farmers market", 7),
    ("Utilities", 15000, "Electricity bill", 3),
    ("Utilities", 8000, "Water bill", 5),
    ("Transportation", 6000, "Gas", 2),
    ("Transportation", 4500, "Parking", 6),
    ("Transportation", 12000, "Car maintenance", 8),
    ("Entertainment", 5000, "Movie tickets", 3),
    ("Entertainment", 8000, "Concert", 9),
    ("Dining Out", 4500, "Restaurant dinner", 1),
    ("Dining Out", 3200, "Lunch", 4),
    ("Dining Out", 6800, "Weekend brunch", 7),
    ("Healthcare", 15000, "Doctor visit", 10),
    ("Healthcare", 8500, "Pharmacy", 12),
    ("Shopping", 12000, "Clothing", 5),
    ("Shopping", 8000, "Electronics", 11),
    ("Education", 20000, "Online course", 6),
    ("Subscriptions", 1500, "Netflix", 1),
    ("Subscriptions", 1000, "Spotify", 1),
    ("Subscriptions", 2000, "Cloud storage", 3),
]

SAMPLE_BUDGETS = [
    ("Groceries", 50000),
    ("Dining Out", 20000),
    ("Transportation", 30000),
    ("Entertainment", 15000),
    ("Shopping", 25000),
    ("Utilities", 25000),
]


def seed_user_data(db: Session, user_id: int, now: datetime = None):
    """Give a user with no categories the default catalog plus sample data.

    Runs as a single unit of work: either everything is committed or, on
    error, nothing is.
    """
    existing = db.query(models.Category.id).filter(models.Category.user_id == user_id).first()
    if existing:
        return {"seeded": False, "message": "User already has categories"}

    now = now or models.utcnow()
    try:
        categories = [models.Category(user_id=user_id, **cat) for cat in DEFAULT_CATEGORIES]
        db.add_all(categories)
        db.flush()  # assigns ids
        category_ids = {cat.name: cat.id for cat in categories}

        type_by_name = {cat["name"]: cat["type"] for cat in DEFAULT_CATEGORIES}
        db.add_all(
            models.Transaction(
                user_id=user_id,
                category_id=category_ids[name],
                amount=amount,
                description=description,
                type=type_by_name[name],
                date=now - timedelta(days=days_ago),
            )
            for name, amount, description, days_ago in SAMPLE_TRANSACTIONS
        )

        current_month = now.strftime("%Y-%m")
        db.add_all(
            models.Budget(user_id=user_id, category_id=category_ids[name], amount=amount, month=current_month)
            for name, amount in SAMPLE_BUDGETS
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Seeding failed for user %s, rolled back", user_id)
        raise

    logger.info("Seeded user %s with sample data", user_id)
    return {
        "seeded": True,
        "message": "Sample data created successfully",
        "categories_count": len(DEFAULT_CATEGORIES),
        "transactions_count": len(SAMPLE_TRANSACTIONS),
        "budgets_count": len(SAMPLE_BUDGETS),
    }


if __name__ == "__main__":
    import crud
    from database import SessionLocal, init_db

    parser = argparse.ArgumentParser(description="Seed default categories and sample data for a user")
    parser.add_argument("--email", required=True, help="email of an existing user")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    init_db()
    db = SessionLocal()
    try:
        user = crud.get_user_by_email(db, args.email)
        if not user:
            raise SystemExit(f"No user with email {args.email}")
        print(seed_user_data(db, user.id)["message"])
    finally:
        db.close()
