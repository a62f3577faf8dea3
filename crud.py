import os
import logging
from functools import wraps

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, OperationalError
from passlib.hash import bcrypt

import models, schemas

logger = logging.getLogger(__name__)


def degrade_on_outage(default_factory):
    """Reads answer with an empty/zero result instead of raising while the store is unreachable."""
    def decorator(func):
        @wraps(func)
        def wrapper(db: Session, *args, **kwargs):
            try:
                return func(db, *args, **kwargs)
            except OperationalError as exc:
                logger.warning("[Database] %s: database not available (%s)", func.__name__, exc.orig)
                db.rollback()
                return default_factory()
        return wrapper
    return decorator


# ---------------------- USER ----------------------
def create_user(db: Session, user: schemas.UserCreate):
    hashed_pw = bcrypt.hash(user.password)
    admin_email = os.getenv("ADMIN_EMAIL")
    role = "admin" if admin_email and user.email.lower() == admin_email.lower() else "user"
    db_user = models.User(name=user.name, email=user.email, password_hash=hashed_pw,
                          role=role, login_method="password")
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info("Created user %s (role=%s)", db_user.id, role)
    return db_user

def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(func.lower(models.User.email) == email.strip().lower()).first()

def authenticate_user(db: Session, email: str, password: str):
    user = get_user_by_email(db, email)
    if user and bcrypt.verify(password, user.password_hash):
        user.last_signed_in = models.utcnow()
        db.commit()
        return user
    return None

# ---------------------- CATEGORY ----------------------
@degrade_on_outage(list)
def get_categories(db: Session, user_id: int):
    return db.query(models.Category)\
        .filter(models.Category.user_id == user_id)\
        .order_by(models.Category.id)\
        .all()

def get_category(db: Session, category_id: int, user_id: int):
    return db.query(models.Category)\
        .filter(models.Category.id == category_id, models.Category.user_id == user_id)\
        .first()

def create_category(db: Session, user_id: int, category: schemas.CategoryCreate):
    db_cat = models.Category(**category.model_dump(), user_id=user_id)
    db.add(db_cat)
    db.commit()
    db.refresh(db_cat)
    return db_cat

def update_category(db: Session, category_id: int, user_id: int, updated: schemas.CategoryUpdate) -> int:
    """Apply the fields that were sent. Returns the number of rows changed (0 or 1)."""
    data = updated.model_dump(exclude_unset=True)
    for required in ("name", "type", "color"):
        if required in data and data[required] is None:
            raise ValueError(f"'{required}' cannot be null")
    category = get_category(db, category_id, user_id)
    if not category:
        return 0
    new_type = data.get("type")
    if new_type and new_type != category.type:
        in_use = db.query(models.Transaction.id)\
            .filter(models.Transaction.user_id == user_id,
                    models.Transaction.category_id == category_id)\
            .first()
        if in_use:
            raise ValueError("Cannot change the type of a category that has transactions")
    for key, value in data.items():
        setattr(category, key, value)
    db.commit()
    return 1

def delete_category(db: Session, category_id: int, user_id: int) -> int:
    # Transactions and budgets keep their category_id; reads fall back to 'Unknown'.
    count = db.query(models.Category)\
        .filter(models.Category.id == category_id, models.Category.user_id == user_id)\
        .delete(synchronize_session=False)
    db.commit()
    return count

# ---------------------- TRANSACTION ----------------------
def _check_transaction_category(db: Session, user_id: int, category_id: int, txn_type: str):
    category = get_category(db, category_id, user_id)
    if not category:
        raise ValueError(f"Unknown category: {category_id}")
    if category.type != txn_type:
        raise ValueError(
            f"Transaction type '{txn_type}' does not match category '{category.name}' ({category.type})")

@degrade_on_outage(list)
def get_transactions(db: Session, user_id: int, filters: schemas.TransactionFilters = None):
    query = db.query(models.Transaction).filter(models.Transaction.user_id == user_id)
    if filters:
        if filters.start_date:
            query = query.filter(models.Transaction.date >= filters.start_date)
        if filters.end_date:
            query = query.filter(models.Transaction.date <= filters.end_date)
        if filters.category_id:
            query = query.filter(models.Transaction.category_id == filters.category_id)
        if filters.type:
            query = query.filter(models.Transaction.type == filters.type)
    return query.order_by(models.Transaction.date, models.Transaction.id).all()

def create_transaction(db: Session, user_id: int, transaction: schemas.TransactionCreate):
    _check_transaction_category(db, user_id, transaction.category_id, transaction.type)
    db_txn = models.Transaction(**transaction.model_dump(), user_id=user_id)
    db.add(db_txn)
    db.commit()
    db.refresh(db_txn)
    return db_txn

def update_transaction(db: Session, transaction_id: int, user_id: int, updated: schemas.TransactionUpdate) -> int:
    data = updated.model_dump(exclude_unset=True)
    for required in ("category_id", "amount", "type", "date"):
        if required in data and data[required] is None:
            raise ValueError(f"'{required}' cannot be null")
    txn = db.query(models.Transaction)\
        .filter(models.Transaction.id == transaction_id, models.Transaction.user_id == user_id)\
        .first()
    if not txn:
        return 0
    if "category_id" in data or "type" in data:
        _check_transaction_category(db, user_id,
                                    data.get("category_id", txn.category_id),
                                    data.get("type", txn.type))
    for key, value in data.items():
        setattr(txn, key, value)
    db.commit()
    return 1

def delete_transaction(db: Session, transaction_id: int, user_id: int) -> int:
    count = db.query(models.Transaction)\
        .filter(models.Transaction.id == transaction_id, models.Transaction.user_id == user_id)\
        .delete(synchronize_session=False)
    db.commit()
    return count

# ---------------------- BUDGET ----------------------
@degrade_on_outage(list)
def get_budgets(db: Session, user_id: int, month: str = None):
    query = db.query(models.Budget).filter(models.Budget.user_id == user_id)
    if month:
        query = query.filter(models.Budget.month == month)
    return query.order_by(models.Budget.month, models.Budget.id).all()

def _commit_budget(db: Session):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValueError("Budget already exists for this category and month")

def create_budget(db: Session, user_id: int, budget: schemas.BudgetCreate):
    category = get_category(db, budget.category_id, user_id)
    if not category:
        raise ValueError(f"Unknown category: {budget.category_id}")
    if category.type != "expense":
        raise ValueError(f"Budgets can only be set on expense categories, '{category.name}' is {category.type}")
    db_budget = models.Budget(**budget.model_dump(), user_id=user_id)
    db.add(db_budget)
    _commit_budget(db)
    db.refresh(db_budget)
    return db_budget

def update_budget(db: Session, budget_id: int, user_id: int, updated: schemas.BudgetUpdate) -> int:
    data = updated.model_dump(exclude_unset=True)
    if any(value is None for value in data.values()):
        raise ValueError("Budget amount and month cannot be null")
    budget = db.query(models.Budget)\
        .filter(models.Budget.id == budget_id, models.Budget.user_id == user_id)\
        .first()
    if not budget:
        return 0
    for key, value in data.items():
        setattr(budget, key, value)
    _commit_budget(db)
    return 1

def delete_budget(db: Session, budget_id: int, user_id: int) -> int:
    count = db.query(models.Budget)\
        .filter(models.Budget.id == budget_id, models.Budget.user_id == user_id)\
        .delete(synchronize_session=False)
    db.commit()
    return count
