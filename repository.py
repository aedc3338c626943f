from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from errors import ConflictError
from models import Budget, Category, Transaction, TransactionType, User, utcnow

logger = logging.getLogger(__name__)

_BUDGET_KEY = ["user_id", "category_id", "month", "year"]


@dataclass
class TransactionFilters:
    start: Optional[date] = None
    end: Optional[date] = None
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None


class LedgerRepository:
    """Storage access for users, categories, transactions and budgets.

    Owns no transaction boundaries beyond single statements; callers commit.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def commit(self) -> None:
        self.session.commit()

    # users

    def find_user_by_email(self, email: str) -> Optional[User]:
        return self.session.scalar(
            select(User).where(func.lower(User.email) == email.lower())
        )

    def get_user(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def add_user(self, user: User) -> User:
        self.session.add(user)
        self.session.flush()
        return user

    # categories

    def list_categories(self, type: Optional[TransactionType] = None) -> list[Category]:
        stmt = select(Category).order_by(Category.name, Category.id)
        if type:
            stmt = stmt.where(Category.type == type)
        return list(self.session.scalars(stmt).all())

    def get_category(self, category_id: int) -> Optional[Category]:
        return self.session.get(Category, category_id)

    def count_categories(self) -> int:
        return self.session.execute(select(func.count(Category.id))).scalar_one() or 0

    def add_categories(self, categories: list[Category]) -> None:
        self.session.add_all(categories)
        self.session.flush()

    # transactions

    def list_transactions(
        self, user_id: int, filters: Optional[TransactionFilters] = None
    ) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(Transaction.user_id == user_id)
            .order_by(
                Transaction.date.desc(),
                Transaction.created_at.desc(),
                Transaction.id.desc(),
            )
        )
        if filters.start:
            stmt = stmt.where(Transaction.date >= filters.start)
        if filters.end:
            stmt = stmt.where(Transaction.date <= filters.end)
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.category_id:
            stmt = stmt.where(Transaction.category_id == filters.category_id)
        return list(self.session.scalars(stmt).all())

    def list_recent_transactions(self, user_id: int, limit: int) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(Transaction.user_id == user_id)
            .order_by(
                Transaction.date.desc(),
                Transaction.created_at.desc(),
                Transaction.id.desc(),
            )
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def get_transaction(self, user_id: int, transaction_id: int) -> Optional[Transaction]:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != user_id:
            return None
        return txn

    def add_transaction(self, txn: Transaction) -> Transaction:
        self.session.add(txn)
        self.session.flush()
        return txn

    def delete_transaction(self, txn: Transaction) -> None:
        self.session.delete(txn)
        self.session.flush()

    # budgets

    def list_budgets(
        self,
        user_id: int,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Budget]:
        stmt = (
            select(Budget)
            .join(Category, Category.id == Budget.category_id)
            .options(joinedload(Budget.category))
            .where(Budget.user_id == user_id)
            .order_by(Category.name, Budget.year, Budget.month, Budget.id)
        )
        if month is not None and year is not None:
            stmt = stmt.where(Budget.month == month, Budget.year == year)
        return list(self.session.scalars(stmt).all())

    def get_budget(self, user_id: int, budget_id: int) -> Optional[Budget]:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.user_id != user_id:
            return None
        return budget

    def find_budget(
        self, user_id: int, category_id: int, month: int, year: int
    ) -> Optional[Budget]:
        return self.session.scalar(
            select(Budget).where(
                Budget.user_id == user_id,
                Budget.category_id == category_id,
                Budget.month == month,
                Budget.year == year,
            )
        )

    def upsert_budget_row(
        self,
        user_id: int,
        category_id: int,
        month: int,
        year: int,
        amount_cents: int,
        *,
        now: Optional[datetime] = None,
    ) -> Budget:
        now = now or utcnow()
        values = {
            "user_id": user_id,
            "category_id": category_id,
            "month": month,
            "year": year,
            "amount_cents": amount_cents,
            "created_at": now,
            "updated_at": now,
        }
        dialect = self.session.get_bind().dialect.name
        if dialect == "sqlite":
            insert = sqlite.insert
        elif dialect == "postgresql":
            insert = postgresql.insert
        else:
            return self._upsert_with_retry(values, now)

        stmt = insert(Budget).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=_BUDGET_KEY,
            set_={
                "amount_cents": stmt.excluded.amount_cents,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(Budget.id)
        budget_id = self.session.execute(stmt).scalar_one()
        return self.session.get(Budget, budget_id, populate_existing=True)

    def _upsert_with_retry(self, values: dict[str, object], now: datetime) -> Budget:
        key = [values[k] for k in _BUDGET_KEY]
        existing = self.find_budget(*key)
        if existing is None:
            try:
                with self.session.begin_nested():
                    budget = Budget(**values)
                    self.session.add(budget)
                return budget
            except IntegrityError:
                logger.info(f"budget_upsert_race: key={key}")
            existing = self.find_budget(*key)
            if existing is None:
                raise ConflictError("Budget was modified concurrently, please retry")
        existing.amount_cents = values["amount_cents"]
        existing.updated_at = now
        self.session.flush()
        return existing

    def delete_budget(self, budget: Budget) -> None:
        self.session.delete(budget)
        self.session.flush()
