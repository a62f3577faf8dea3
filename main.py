import os
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Request, Form, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

import analytics, crud, models, schemas
from database import init_db, close_db
from auth import get_db, login_user, logout_user, get_current_user, require_user
from seed_data import seed_user_data

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
SEED_ON_REGISTER = os.getenv("SEED_ON_REGISTER", "true").lower() in ("1", "true", "yes")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield
    close_db()


app = FastAPI(title="Personal Finance Tracker", lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=SECRET_KEY)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("[Database] %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Database not available"})


def bad_request(exc: ValueError):
    return HTTPException(status_code=400, detail=str(exc))

def not_found(what: str):
    return HTTPException(status_code=404, detail=f"{what} not found")

def date_range(start_date: datetime, end_date: datetime) -> schemas.DateRange:
    return schemas.DateRange(start_date=start_date, end_date=end_date)

def transaction_filters(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    category_id: Optional[int] = None,
    type: Optional[schemas.TransactionType] = None,
) -> schemas.TransactionFilters:
    return schemas.TransactionFilters(start_date=start_date, end_date=end_date,
                                      category_id=category_id, type=type)

SUCCESS = {"success": True}


@app.get("/health")
def health():
    return {"status": "ok"}

# ---------------------- AUTH ----------------------
@app.post("/auth/register", response_model=schemas.UserOut, status_code=201)
def register(request: Request, name: str = Form(...), email: str = Form(...), password: str = Form(...),
             db: Session = Depends(get_db)):
    if crud.get_user_by_email(db, email):
        raise HTTPException(status_code=400, detail="Email already registered")
    try:
        user_data = schemas.UserCreate(name=name, email=email, password=password)
    except ValueError as exc:
        raise bad_request(exc)
    user = crud.create_user(db, user_data)
    if SEED_ON_REGISTER:
        seed_user_data(db, user.id)
    request.session["user_id"] = user.id
    return user

@app.post("/auth/login", response_model=schemas.UserOut)
def login(request: Request, email: str = Form(...), password: str = Form(...), db: Session = Depends(get_db)):
    user = login_user(request, db, email, password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return user

@app.post("/auth/logout")
def logout(request: Request):
    logout_user(request)
    return SUCCESS

@app.get("/auth/me", response_model=Optional[schemas.UserOut])
def me(user: models.User = Depends(get_current_user)):
    return user

# ---------------------- CATEGORIES ----------------------
@app.get("/api/categories", response_model=List[schemas.CategoryOut])
def list_categories(user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    return crud.get_categories(db, user.id)

@app.post("/api/categories", response_model=schemas.CategoryOut, status_code=201)
def create_category(category: schemas.CategoryCreate, user: models.User = Depends(require_user),
                    db: Session = Depends(get_db)):
    return crud.create_category(db, user.id, category)

@app.patch("/api/categories/{category_id}")
def update_category(category_id: int, updated: schemas.CategoryUpdate,
                    user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    try:
        changed = crud.update_category(db, category_id, user.id, updated)
    except ValueError as exc:
        raise bad_request(exc)
    if not changed:
        raise not_found("Category")
    return SUCCESS

@app.delete("/api/categories/{category_id}")
def delete_category(category_id: int, user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    if not crud.delete_category(db, category_id, user.id):
        raise not_found("Category")
    return SUCCESS

# ---------------------- TRANSACTIONS ----------------------
@app.get("/api/transactions", response_model=List[schemas.TransactionOut])
def list_transactions(filters: schemas.TransactionFilters = Depends(transaction_filters),
                      user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    return crud.get_transactions(db, user.id, filters)

@app.post("/api/transactions", response_model=schemas.TransactionOut, status_code=201)
def create_transaction(transaction: schemas.TransactionCreate, user: models.User = Depends(require_user),
                       db: Session = Depends(get_db)):
    try:
        return crud.create_transaction(db, user.id, transaction)
    except ValueError as exc:
        raise bad_request(exc)

@app.patch("/api/transactions/{transaction_id}")
def update_transaction(transaction_id: int, updated: schemas.TransactionUpdate,
                       user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    try:
        changed = crud.update_transaction(db, transaction_id, user.id, updated)
    except ValueError as exc:
        raise bad_request(exc)
    if not changed:
        raise not_found("Transaction")
    return SUCCESS

@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(transaction_id: int, user: models.User = Depends(require_user),
                       db: Session = Depends(get_db)):
    if not crud.delete_transaction(db, transaction_id, user.id):
        raise not_found("Transaction")
    return SUCCESS

# ---------------------- BUDGETS ----------------------
@app.get("/api/budgets", response_model=List[schemas.BudgetOut])
def list_budgets(month: Optional[str] = Query(None, pattern=schemas.MONTH_PATTERN),
                 user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    return crud.get_budgets(db, user.id, month)

@app.get("/api/budgets/progress", response_model=List[schemas.BudgetProgressOut])
def budget_progress(month: str = Query(..., pattern=schemas.MONTH_PATTERN),
                    user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    return analytics.compute_budget_overview(db, user.id, month)

@app.post("/api/budgets", response_model=schemas.BudgetOut, status_code=201)
def create_budget(budget: schemas.BudgetCreate, user: models.User = Depends(require_user),
                  db: Session = Depends(get_db)):
    try:
        return crud.create_budget(db, user.id, budget)
    except ValueError as exc:
        raise bad_request(exc)

@app.patch("/api/budgets/{budget_id}")
def update_budget(budget_id: int, updated: schemas.BudgetUpdate,
                  user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    try:
        changed = crud.update_budget(db, budget_id, user.id, updated)
    except ValueError as exc:
        raise bad_request(exc)
    if not changed:
        raise not_found("Budget")
    return SUCCESS

@app.delete("/api/budgets/{budget_id}")
def delete_budget(budget_id: int, user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    if not crud.delete_budget(db, budget_id, user.id):
        raise not_found("Budget")
    return SUCCESS

# ---------------------- DASHBOARD / ANALYTICS ----------------------
@app.get("/api/dashboard/stats", response_model=schemas.DashboardStats)
def dashboard_stats(period: schemas.DateRange = Depends(date_range),
                    user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    return analytics.compute_dashboard_stats(db, user.id, period.start_date, period.end_date)

@app.get("/api/dashboard/category-spending", response_model=List[schemas.CategorySpending])
def category_spending(period: schemas.DateRange = Depends(date_range),
                      user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    return analytics.compute_category_spending(db, user.id, period.start_date, period.end_date)

@app.get("/api/dashboard/top-expenses", response_model=List[schemas.CategorySpending])
def top_expenses(period: schemas.DateRange = Depends(date_range), limit: int = Query(5, ge=1, le=50),
                 user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    spending = analytics.compute_category_spending(db, user.id, period.start_date, period.end_date)
    return analytics.top_expense_categories(spending, limit)

@app.get("/api/analytics/breakdown", response_model=schemas.SpendingBreakdown)
def spending_breakdown(period: schemas.DateRange = Depends(date_range),
                       user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    spending = analytics.compute_category_spending(db, user.id, period.start_date, period.end_date)
    breakdown = analytics.split_by_type(spending)
    breakdown["comparison"] = analytics.compare_by_category_name(spending)
    return breakdown

@app.post("/api/seed", response_model=schemas.SeedResult)
def seed(user: models.User = Depends(require_user), db: Session = Depends(get_db)):
    return seed_user_data(db, user.id)
