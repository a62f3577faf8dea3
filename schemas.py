from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal, Optional, List
from datetime import datetime, timezone

TransactionType = Literal["income", "expense"]

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"
COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"
MAX_CENTS = 2**31 - 1  # signed INT column


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store timestamps as naive UTC; '2024-05-01T00:00:00Z' and offsets get converted."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# ------------------ User Schemas ------------------

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower()

class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    login_method: Optional[str] = None
    last_signed_in: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

# ------------------ Category Schemas ------------------

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    color: str = Field(..., pattern=COLOR_PATTERN)
    icon: Optional[str] = Field(None, max_length=50)

class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[TransactionType] = None
    color: Optional[str] = Field(None, pattern=COLOR_PATTERN)
    icon: Optional[str] = Field(None, max_length=50)

class CategoryOut(BaseModel):
    id: int
    name: str
    type: str
    color: str
    icon: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

# ------------------ Transaction Schemas ------------------

class TransactionCreate(BaseModel):
    category_id: int
    amount: int = Field(..., gt=0, le=MAX_CENTS)  # cents
    description: Optional[str] = None
    type: TransactionType
    date: datetime

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value):
        return to_naive_utc(value)

class TransactionUpdate(BaseModel):
    category_id: Optional[int] = None
    amount: Optional[int] = Field(None, gt=0, le=MAX_CENTS)
    description: Optional[str] = None
    type: Optional[TransactionType] = None
    date: Optional[datetime] = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value):
        return to_naive_utc(value)

class TransactionFilters(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    category_id: Optional[int] = None
    type: Optional[TransactionType] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value):
        return to_naive_utc(value)

class TransactionOut(BaseModel):
    id: int
    category_id: int
    amount: int
    description: Optional[str] = None
    type: str
    date: datetime

    model_config = ConfigDict(from_attributes=True)

# ------------------ Budget Schemas ------------------

class BudgetCreate(BaseModel):
    category_id: int
    amount: int = Field(..., ge=0, le=MAX_CENTS)  # cents
    month: str = Field(..., pattern=MONTH_PATTERN)

class BudgetUpdate(BaseModel):
    amount: Optional[int] = Field(None, ge=0, le=MAX_CENTS)
    month: Optional[str] = Field(None, pattern=MONTH_PATTERN)

class BudgetOut(BaseModel):
    id: int
    category_id: int
    amount: int
    month: str

    model_config = ConfigDict(from_attributes=True)

class BudgetProgressOut(BudgetOut):
    category_name: str
    category_color: str
    spent: int
    remaining: int
    percentage: float

# ------------------ Dashboard Schemas ------------------

class DateRange(BaseModel):
    start_date: datetime
    end_date: datetime

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value):
        return to_naive_utc(value)

class DashboardStats(BaseModel):
    total_income: int
    total_expenses: int
    balance: int
    transaction_count: int

class CategorySpending(BaseModel):
    category_id: int
    category_name: str
    category_color: str
    total: int
    type: str

class CategoryComparison(BaseModel):
    name: str
    income: int
    expense: int

class SpendingBreakdown(BaseModel):
    income: List[CategorySpending]
    expense: List[CategorySpending]
    comparison: List[CategoryComparison]

class SeedResult(BaseModel):
    seeded: bool
    message: str
    categories_count: Optional[int] = None
    transactions_count: Optional[int] = None
    budgets_count: Optional[int] = None
