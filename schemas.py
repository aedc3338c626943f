import re
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from aggregation import (
    BudgetAnalysis,
    CategoryTotal,
    DashboardSummary,
    TransactionView,
)
from models import Category, TransactionType
from money import from_cents

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _clean_description(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Description is required")
    return value


class RegisterIn(BaseModel):
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=120, alias="fullName")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.strip().lower()
        if not _EMAIL_RE.match(value):
            raise ValueError("Invalid email")
        return value

    @field_validator("password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        if not (
            re.search(r"[a-z]", value)
            and re.search(r"[A-Z]", value)
            and re.search(r"\d", value)
        ):
            raise ValueError(
                "Password must contain upper case, lower case and digits"
            )
        return value


class LoginIn(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class TransactionIn(BaseModel):
    date: date
    type: TransactionType
    amount_cents: int = Field(..., gt=0)
    category_id: int
    description: str = Field(..., min_length=1, max_length=500)

    @field_validator("description")
    @classmethod
    def _strip(cls, value: str) -> str:
        return _clean_description(value)


class BudgetIn(BaseModel):
    category_id: int
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=3000)
    amount_cents: int = Field(..., gt=0)


class TransactionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    date: date
    description: str = Field(..., min_length=1, max_length=500)
    type: TransactionType
    category_id: int = Field(..., alias="categoryId")

    @field_validator("description")
    @classmethod
    def _strip(cls, value: str) -> str:
        return _clean_description(value)


class BudgetPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category_id: int = Field(..., alias="categoryId")
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=3000)
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)



class ApiOut(BaseModel):
    """Response bodies: camelCase keys, money in currency units."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CategoryOut(ApiOut):
    id: int
    name: str
    type: TransactionType
    icon: Optional[str] = None
    color: Optional[str] = None
    is_default: bool

    @classmethod
    def from_category(cls, category: Category) -> "CategoryOut":
        return cls(
            id=category.id,
            name=category.name,
            type=category.type,
            icon=category.icon,
            color=category.color,
            is_default=category.is_default,
        )


class TransactionOut(ApiOut):
    id: int
    date: date
    type: TransactionType
    amount: float
    description: str
    category_id: int
    category_name: str
    category_icon: Optional[str] = None
    category_color: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_view(cls, view: TransactionView) -> "TransactionOut":
        return cls(
            id=view.id,
            date=view.date,
            type=view.type,
            amount=from_cents(view.amount_cents),
            description=view.description,
            category_id=view.category_id,
            category_name=view.category_name,
            category_icon=view.category_icon,
            category_color=view.category_color,
            created_at=view.created_at,
        )


class CategoryTotalOut(ApiOut):
    category_id: int
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None
    total: float


class BalanceOut(ApiOut):
    total_income: float
    total_expense: float
    current_balance: float


class DashboardOut(ApiOut):
    balance: BalanceOut
    expenses_by_category: list[CategoryTotalOut]
    income_by_category: list[CategoryTotalOut]
    recent_transactions: list[TransactionOut]

    @classmethod
    def from_summary(cls, summary: DashboardSummary) -> "DashboardOut":
        def totals(rows: list[CategoryTotal]) -> list[CategoryTotalOut]:
            return [
                CategoryTotalOut(
                    category_id=r.category_id,
                    name=r.name,
                    icon=r.icon,
                    color=r.color,
                    total=from_cents(r.total_cents),
                )
                for r in rows
            ]

        return cls(
            balance=BalanceOut(
                total_income=from_cents(summary.total_income_cents),
                total_expense=from_cents(summary.total_expense_cents),
                current_balance=from_cents(summary.current_balance_cents),
            ),
            expenses_by_category=totals(summary.expenses_by_category),
            income_by_category=totals(summary.income_by_category),
            recent_transactions=[
                TransactionOut.from_view(v) for v in summary.recent_transactions
            ],
        )


class BudgetOut(ApiOut):
    id: int
    category_id: int
    category_name: str
    category_icon: Optional[str] = None
    category_color: Optional[str] = None
    month: int
    year: int
    amount: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BudgetAnalysisRowOut(ApiOut):
    id: int
    category_id: int
    category_name: str
    category_icon: Optional[str] = None
    category_color: Optional[str] = None
    month: int
    year: int
    amount: float
    spent: float
    remaining: float
    percentage: float
    is_over_budget: bool


class BudgetAnalysisSummaryOut(ApiOut):
    total_budget: float
    total_spent: float
    total_remaining: float
    overall_percentage: float


class BudgetAnalysisOut(ApiOut):
    month: int
    year: int
    budgets: list[BudgetAnalysisRowOut]
    summary: BudgetAnalysisSummaryOut

    @classmethod
    def from_analysis(cls, analysis: BudgetAnalysis) -> "BudgetAnalysisOut":
        return cls(
            month=analysis.month,
            year=analysis.year,
            budgets=[
                BudgetAnalysisRowOut(
                    id=r.budget_id,
                    category_id=r.category_id,
                    category_name=r.category_name,
                    category_icon=r.category_icon,
                    category_color=r.category_color,
                    month=r.month,
                    year=r.year,
                    amount=from_cents(r.amount_cents),
                    spent=from_cents(r.spent_cents),
                    remaining=from_cents(r.remaining_cents),
                    percentage=r.percentage,
                    is_over_budget=r.is_over_budget,
                )
                for r in analysis.budgets
            ],
            summary=BudgetAnalysisSummaryOut(
                total_budget=from_cents(analysis.summary.total_budget_cents),
                total_spent=from_cents(analysis.summary.total_spent_cents),
                total_remaining=from_cents(analysis.summary.total_remaining_cents),
                overall_percentage=analysis.summary.overall_percentage,
            ),
        )
