"""
Database Schemas for the Personal Finance Tracker

Each Pydantic model maps to a MongoDB collection (lowercased class name).
The remaining models describe derived values that are never persisted.
"""

import datetime as dt
import re
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

_WHITESPACE = re.compile(r"\s+")


def normalize_category(name: str) -> str:
    """Canonical stored form of a category label: trimmed, single-spaced."""
    return _WHITESPACE.sub(" ", name or "").strip()


def category_key(name: str) -> str:
    """Comparison key for categories; matching is case-insensitive."""
    return normalize_category(name).casefold()


class _CategoryMixin(BaseModel):
    @field_validator("category", check_fields=False)
    @classmethod
    def _normalize_category(cls, v: str) -> str:
        v = normalize_category(v)
        if not v:
            raise ValueError("category must not be blank")
        return v


class Transaction(_CategoryMixin):
    """
    Income and expense entries
    Collection: "transaction"
    """
    type: Literal["income", "expense"] = Field(..., description="Transaction direction")
    amount: float = Field(..., gt=0, allow_inf_nan=False, description="Positive amount in the account currency")
    category: str = Field(..., description="Category (e.g., Food, Rent, Salary)")
    date: dt.date = Field(default_factory=dt.date.today, description="Calendar date of the transaction")
    note: Optional[str] = Field(None, description="Optional note")


class Budget(_CategoryMixin):
    """
    Monthly category budgets, unique per (category, month, year)
    Collection: "budget"
    """
    category: str = Field(..., description="Budget category")
    month: int = Field(..., ge=1, le=12, description="Calendar month, 1-12")
    year: int = Field(..., ge=1970, le=9999)
    limit: float = Field(..., gt=0, allow_inf_nan=False, description="Spending limit for the month")


class User(BaseModel):
    """
    Profile records (no authentication flow)
    Collection: "user"
    """
    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+$")
    currency: str = Field("INR", min_length=3, max_length=3)
    monthly_expected_budget: Optional[float] = Field(None, ge=0, allow_inf_nan=False)


class Goal(BaseModel):
    """
    Savings goals
    Collection: "goal"
    """
    user_id: Optional[str] = Field(None, description="Owning user id")
    title: str = Field(..., min_length=1)
    target_amount: float = Field(..., gt=0, allow_inf_nan=False)
    target_date: Optional[dt.date] = None


class BudgetSummary(BaseModel):
    budget_id: Optional[str] = None
    category: str
    limit: float
    spent: float
    remaining: float
    usage: float
    status: Literal["ok", "warning", "danger"]


class BudgetInsights(BaseModel):
    summaries: List[BudgetSummary] = []
    alerts: List[str] = []


class InvestmentInsightRequest(BaseModel):
    risk_level: Literal["low", "medium", "high"]
    goal_type: str = Field(..., min_length=1)
    goal_horizon_years: Optional[float] = Field(None, ge=0)
    month: Optional[int] = Field(None, ge=1, le=12, description="Snapshot month, defaults to the current one")
    year: Optional[int] = Field(None, ge=1970, le=9999)
