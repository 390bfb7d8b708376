import datetime as dt
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import TransactionType


class TransactionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., min_length=1, max_length=100)
    amount_cents: int
    date: date
    type: TransactionType
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("name", "notes", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class TransactionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount_cents: Optional[int] = None
    date: Optional[dt.date] = None
    type: Optional[TransactionType] = None
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("name", "notes", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category: str
    amount_cents: int
    date: date
    type: TransactionType
    notes: Optional[str] = None


class BudgetIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: str = Field(..., min_length=1, max_length=100)
    limit_cents: int
    icon: str = Field(..., min_length=1, max_length=50)
    color: str = Field(..., min_length=1, max_length=50)


class BudgetUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    limit_cents: Optional[int] = None
    icon: Optional[str] = Field(default=None, min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, min_length=1, max_length=50)


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: str
    limit_cents: int
    icon: str
    color: str
    spent_cents: int
    remaining_cents: int
    percentage: int
    over_budget: bool


class BudgetOverviewOut(BaseModel):
    total_limit_cents: int
    total_spent_cents: int
    over_budget_count: int
    budgets: list[BudgetOut]


class BudgetStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: str
    limit_cents: int
    spent_cents: int
    percentage: float
    over_budget: bool


class SummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    window_months: int
    monthly_income_cents: float
    monthly_expenses_cents: float
    savings_rate: float
    category_spending: dict[str, int]
    total_transactions: int
    budget_status: list[BudgetStatusOut]
