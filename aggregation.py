"""Dashboard and budget-vs-actual computations.

Everything here is a pure function over already-fetched rows: no session, no
queries, no mutation of the inputs. Services load the rows through the
repository and hand them in.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from errors import InternalInconsistencyError
from models import Budget, Category, Transaction, TransactionType
from money import percent_of
from periods import DateRange, month_span

RECENT_LIMIT = 5


@dataclass(frozen=True)
class CategoryTotal:
    category_id: int
    name: str
    icon: Optional[str]
    color: Optional[str]
    total_cents: int


@dataclass(frozen=True)
class TransactionView:
    id: int
    date: date
    type: TransactionType
    amount_cents: int
    description: str
    category_id: int
    category_name: str
    category_icon: Optional[str]
    category_color: Optional[str]
    created_at: Optional[datetime]


@dataclass(frozen=True)
class DashboardSummary:
    total_income_cents: int
    total_expense_cents: int
    current_balance_cents: int
    expenses_by_category: list[CategoryTotal]
    income_by_category: list[CategoryTotal]
    recent_transactions: list[TransactionView]


@dataclass(frozen=True)
class BudgetAnalysisRow:
    budget_id: int
    category_id: int
    category_name: str
    category_icon: Optional[str]
    category_color: Optional[str]
    month: int
    year: int
    amount_cents: int
    spent_cents: int
    remaining_cents: int
    # saturates at 100 for progress bars; is_over_budget uses the raw values
    percentage: float
    is_over_budget: bool


@dataclass(frozen=True)
class BudgetAnalysisSummary:
    total_budget_cents: int
    total_spent_cents: int
    total_remaining_cents: int
    overall_percentage: float


@dataclass(frozen=True)
class BudgetAnalysis:
    month: int
    year: int
    budgets: list[BudgetAnalysisRow]
    summary: BudgetAnalysisSummary


def _catalog(categories: Iterable[Category]) -> dict[int, Category]:
    return {c.id: c for c in categories}


def _lookup(catalog: dict[int, Category], category_id: int) -> Category:
    category = catalog.get(category_id)
    if category is None:
        raise InternalInconsistencyError(
            f"Category {category_id} is referenced but missing from the catalog"
        )
    return category


def _totals_by_category(
    transactions: Iterable[Transaction],
    catalog: dict[int, Category],
) -> list[CategoryTotal]:
    sums: dict[int, int] = {}
    for txn in transactions:
        sums[txn.category_id] = sums.get(txn.category_id, 0) + txn.amount_cents
    rows = []
    for category_id, total in sums.items():
        category = _lookup(catalog, category_id)
        rows.append(
            CategoryTotal(
                category_id=category_id,
                name=category.name,
                icon=category.icon,
                color=category.color,
                total_cents=total,
            )
        )
    rows.sort(key=lambda r: (-r.total_cents, r.category_id))
    return rows


def _recency_key(txn: Transaction) -> tuple[date, datetime, int]:
    return (txn.date, txn.created_at or datetime.min, txn.id or 0)


def to_view(txn: Transaction, catalog: dict[int, Category]) -> TransactionView:
    category = _lookup(catalog, txn.category_id)
    return TransactionView(
        id=txn.id,
        date=txn.date,
        type=txn.type,
        amount_cents=txn.amount_cents,
        description=txn.description,
        category_id=txn.category_id,
        category_name=category.name,
        category_icon=category.icon,
        category_color=category.color,
        created_at=txn.created_at,
    )


def compute_summary(
    user_id: int,
    transactions: Sequence[Transaction],
    categories: Iterable[Category],
    date_range: Optional[DateRange] = None,
    *,
    recent_limit: int = RECENT_LIMIT,
) -> DashboardSummary:
    date_range = date_range or DateRange()
    catalog = _catalog(categories)
    ledger = [t for t in transactions if t.user_id == user_id]

    if date_range.is_empty:
        in_range: list[Transaction] = []
    else:
        in_range = [t for t in ledger if date_range.contains(t.date)]

    income = [t for t in in_range if t.type == TransactionType.income]
    expenses = [t for t in in_range if t.type == TransactionType.expense]
    total_income = sum(t.amount_cents for t in income)
    total_expense = sum(t.amount_cents for t in expenses)

    # recent activity always comes from the whole ledger
    recent = sorted(ledger, key=_recency_key, reverse=True)[:recent_limit]

    return DashboardSummary(
        total_income_cents=total_income,
        total_expense_cents=total_expense,
        current_balance_cents=total_income - total_expense,
        expenses_by_category=_totals_by_category(expenses, catalog),
        income_by_category=_totals_by_category(income, catalog),
        recent_transactions=[to_view(t, catalog) for t in recent],
    )


def spent_by_category(
    user_id: int, transactions: Iterable[Transaction], span: DateRange
) -> dict[int, int]:
    spent: dict[int, int] = {}
    for txn in transactions:
        if txn.user_id != user_id or txn.type != TransactionType.expense:
            continue
        if not span.contains(txn.date):
            continue
        spent[txn.category_id] = spent.get(txn.category_id, 0) + txn.amount_cents
    return spent


def analyze_budget(budget: Budget, spent: int, category: Category) -> BudgetAnalysisRow:
    amount = budget.amount_cents
    return BudgetAnalysisRow(
        budget_id=budget.id,
        category_id=budget.category_id,
        category_name=category.name,
        category_icon=category.icon,
        category_color=category.color,
        month=budget.month,
        year=budget.year,
        amount_cents=amount,
        spent_cents=spent,
        remaining_cents=amount - spent,
        percentage=min(percent_of(spent, amount), 100.0),
        is_over_budget=spent > amount,
    )


def compute_budget_analysis(
    user_id: int,
    month: int,
    year: int,
    budgets: Iterable[Budget],
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
) -> BudgetAnalysis:
    span = month_span(year, month)
    catalog = _catalog(categories)
    selected = [
        b
        for b in budgets
        if b.user_id == user_id and b.month == month and b.year == year
    ]
    spent_map = spent_by_category(user_id, transactions, span)

    rows = [
        analyze_budget(b, spent_map.get(b.category_id, 0), _lookup(catalog, b.category_id))
        for b in selected
    ]
    rows.sort(key=lambda r: (r.category_name, r.category_id))

    total_budget = sum(r.amount_cents for r in rows)
    total_spent = sum(r.spent_cents for r in rows)
    return BudgetAnalysis(
        month=month,
        year=year,
        budgets=rows,
        summary=BudgetAnalysisSummary(
            total_budget_cents=total_budget,
            total_spent_cents=total_spent,
            total_remaining_cents=total_budget - total_spent,
            overall_percentage=percent_of(total_spent, total_budget),
        ),
    )
