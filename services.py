from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from aggregation import (
    BudgetAnalysis,
    DashboardSummary,
    RECENT_LIMIT,
    TransactionView,
    compute_budget_analysis,
    compute_summary,
    to_view,
)
from errors import InternalInconsistencyError, NotFoundError, ValidationError
from models import Budget, Category, Transaction, TransactionType
from money import from_cents
from periods import DateRange, month_span
from repository import LedgerRepository, TransactionFilters
from schemas import BudgetIn, BudgetOut, TransactionIn

logger = logging.getLogger(__name__)

MIN_BUDGET_YEAR = 2000

DEFAULT_CATEGORIES = [
    ("Food", TransactionType.expense, "🍔", "#FF6B6B"),
    ("Transport", TransactionType.expense, "🚗", "#4ECDC4"),
    ("Entertainment", TransactionType.expense, "🎮", "#FFE66D"),
    ("Utilities", TransactionType.expense, "💡", "#95E1D3"),
    ("Health", TransactionType.expense, "🏥", "#F38181"),
    ("Education", TransactionType.expense, "📚", "#AA96DA"),
    ("Other Expenses", TransactionType.expense, "📦", "#FCBAD3"),
    ("Salary", TransactionType.income, "💰", "#6BCF7F"),
    ("Freelance", TransactionType.income, "💼", "#4D96FF"),
    ("Investments", TransactionType.income, "📈", "#FFA726"),
    ("Other Income", TransactionType.income, "💵", "#26C6DA"),
]


class CategoryService:
    def __init__(self, repo: LedgerRepository) -> None:
        self.repo = repo

    def list_all(self, type: Optional[TransactionType] = None) -> list[Category]:
        return self.repo.list_categories(type)

    def seed_defaults(self) -> int:
        if self.repo.count_categories() > 0:
            return 0
        self.repo.add_categories(
            [
                Category(name=name, type=kind, icon=icon, color=color, is_default=True)
                for name, kind, icon, color in DEFAULT_CATEGORIES
            ]
        )
        self.repo.commit()
        logger.info(f"categories_seeded: count={len(DEFAULT_CATEGORIES)}")
        return len(DEFAULT_CATEGORIES)

    def catalog(self) -> dict[int, Category]:
        return {c.id: c for c in self.repo.list_categories()}


class TransactionService:
    def __init__(self, repo: LedgerRepository, user_id: int) -> None:
        self.repo = repo
        self.user_id = user_id

    def _check_category(self, data: TransactionIn) -> Category:
        category = self.repo.get_category(data.category_id)
        if not category:
            raise ValidationError("Category not found")
        if category.type != data.type:
            raise ValidationError("Category type mismatch")
        return category

    def get(self, transaction_id: int) -> Transaction:
        txn = self.repo.get_transaction(self.user_id, transaction_id)
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def create(self, data: TransactionIn) -> Transaction:
        category = self._check_category(data)
        txn = Transaction(
            user_id=self.user_id,
            date=data.date,
            type=data.type,
            amount_cents=data.amount_cents,
            category=category,
            description=data.description,
        )
        self.repo.add_transaction(txn)
        self.repo.commit()
        logger.info(
            f"transaction_created: user_id={self.user_id} id={txn.id} "
            f"type={txn.type.value} amount_cents={txn.amount_cents}"
        )
        return txn

    def update(self, transaction_id: int, data: TransactionIn) -> Transaction:
        txn = self.get(transaction_id)
        category = self._check_category(data)
        txn.date = data.date
        txn.type = data.type
        txn.amount_cents = data.amount_cents
        txn.category = category
        txn.description = data.description
        self.repo.commit()
        logger.info(f"transaction_updated: user_id={self.user_id} id={txn.id}")
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.repo.delete_transaction(txn)
        self.repo.commit()
        logger.info(f"transaction_deleted: user_id={self.user_id} id={transaction_id}")

    def list(self, filters: Optional[TransactionFilters] = None) -> list[TransactionView]:
        rows = self.repo.list_transactions(self.user_id, filters)
        catalog = CategoryService(self.repo).catalog()
        return [to_view(t, catalog) for t in rows]

    def view(self, txn: Transaction) -> TransactionView:
        catalog = {txn.category_id: txn.category} if txn.category else {}
        return to_view(txn, catalog)


class DashboardService:
    def __init__(
        self, repo: LedgerRepository, user_id: int, recent_limit: int = RECENT_LIMIT
    ) -> None:
        self.repo = repo
        self.user_id = user_id
        self.recent_limit = recent_limit

    def summary(self, date_range: Optional[DateRange] = None) -> DashboardSummary:
        transactions = self.repo.list_transactions(self.user_id)
        categories = self.repo.list_categories()
        return compute_summary(
            self.user_id,
            transactions,
            categories,
            date_range,
            recent_limit=self.recent_limit,
        )


class BudgetService:
    def __init__(self, repo: LedgerRepository, user_id: int) -> None:
        self.repo = repo
        self.user_id = user_id

    def list(self, month: Optional[int] = None, year: Optional[int] = None) -> list[Budget]:
        return self.repo.list_budgets(self.user_id, month, year)

    def upsert(self, data: BudgetIn, *, now: Optional[datetime] = None) -> Budget:
        if data.amount_cents <= 0:
            raise ValidationError("Budget amount must be greater than zero")
        if not 1 <= data.month <= 12:
            raise ValidationError("Month must be between 1 and 12")
        if data.year < MIN_BUDGET_YEAR:
            raise ValidationError(f"Year must be {MIN_BUDGET_YEAR} or later")
        category = self.repo.get_category(data.category_id)
        if not category:
            raise ValidationError("Category not found")

        budget = self.repo.upsert_budget_row(
            self.user_id,
            data.category_id,
            data.month,
            data.year,
            data.amount_cents,
            now=now,
        )
        self.repo.commit()
        logger.info(
            f"budget_upserted: user_id={self.user_id} id={budget.id} "
            f"period={data.year}-{data.month:02d} amount_cents={data.amount_cents}"
        )
        return budget

    def delete(self, budget_id: int) -> None:
        budget = self.repo.get_budget(self.user_id, budget_id)
        if not budget:
            raise NotFoundError("Budget not found")
        self.repo.delete_budget(budget)
        self.repo.commit()
        logger.info(f"budget_deleted: user_id={self.user_id} id={budget_id}")

    def analysis(self, month: Optional[int], year: Optional[int]) -> BudgetAnalysis:
        if month is None or year is None:
            raise ValidationError("Month and year are required")
        if year < MIN_BUDGET_YEAR:
            raise ValidationError(f"Year must be {MIN_BUDGET_YEAR} or later")
        span = month_span(year, month)
        budgets = self.repo.list_budgets(self.user_id, month, year)
        expenses = self.repo.list_transactions(
            self.user_id,
            TransactionFilters(
                start=span.start, end=span.end, type=TransactionType.expense
            ),
        )
        return compute_budget_analysis(
            self.user_id,
            month,
            year,
            budgets,
            expenses,
            self.repo.list_categories(),
        )

    def describe(self, budget: Budget) -> BudgetOut:
        category = budget.category
        if category is None:
            raise InternalInconsistencyError(
                f"Budget {budget.id} references missing category {budget.category_id}"
            )
        return BudgetOut(
            id=budget.id,
            category_id=budget.category_id,
            category_name=category.name,
            category_icon=category.icon,
            category_color=category.color,
            month=budget.month,
            year=budget.year,
            amount=from_cents(budget.amount_cents),
            created_at=budget.created_at,
            updated_at=budget.updated_at,
        )
