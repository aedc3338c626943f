from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from errors import NotFoundError, ValidationError
from models import Category, Transaction, TransactionType, User
from periods import DateRange
from repository import LedgerRepository, TransactionFilters
from schemas import TransactionIn
from services import CategoryService, DashboardService, TransactionService


def _setup(session: Session) -> tuple[LedgerRepository, int, dict[str, int]]:
    repo = LedgerRepository(session)
    CategoryService(repo).seed_defaults()
    user = repo.add_user(User(email="ana@example.com", password_hash="x", full_name="Ana"))
    repo.commit()
    ids = {c.name: c.id for c in repo.list_categories()}
    return repo, user.id, ids


def _new_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def test_seed_defaults_runs_once() -> None:
    with _new_session() as session:
        repo = LedgerRepository(session)
        categories = CategoryService(repo)

        assert categories.seed_defaults() == 11
        assert categories.seed_defaults() == 0
        assert len(categories.list_all(TransactionType.expense)) == 7
        assert len(categories.list_all(TransactionType.income)) == 4
        assert all(c.is_default for c in categories.list_all())


def test_create_update_and_delete_transaction() -> None:
    with _new_session() as session:
        repo, user_id, cats = _setup(session)
        service = TransactionService(repo, user_id)

        txn = service.create(
            TransactionIn(
                date=date(2024, 1, 15),
                type=TransactionType.expense,
                amount_cents=4_250,
                category_id=cats["Food"],
                description="  Groceries ",
            )
        )
        assert txn.description == "Groceries"
        view = service.view(txn)
        assert view.category_name == "Food"
        assert view.category_icon == "🍔"

        updated = service.update(
            txn.id,
            TransactionIn(
                date=date(2024, 1, 16),
                type=TransactionType.income,
                amount_cents=9_900,
                category_id=cats["Freelance"],
                description="Invoice",
            ),
        )
        assert updated.id == txn.id
        assert updated.type == TransactionType.income
        assert updated.amount_cents == 9_900
        assert updated.date == date(2024, 1, 16)
        assert service.view(updated).category_name == "Freelance"

        service.delete(txn.id)
        with pytest.raises(NotFoundError):
            service.get(txn.id)


def test_category_must_exist_and_match_type() -> None:
    with _new_session() as session:
        repo, user_id, cats = _setup(session)
        service = TransactionService(repo, user_id)

        with pytest.raises(ValidationError, match="type mismatch"):
            service.create(
                TransactionIn(
                    date=date(2024, 1, 15),
                    type=TransactionType.income,
                    amount_cents=100,
                    category_id=cats["Food"],
                    description="Wrong",
                )
            )
        with pytest.raises(ValidationError, match="not found"):
            service.create(
                TransactionIn(
                    date=date(2024, 1, 15),
                    type=TransactionType.expense,
                    amount_cents=100,
                    category_id=999,
                    description="Nowhere",
                )
            )


def test_other_users_transactions_are_invisible() -> None:
    with _new_session() as session:
        repo, user_id, cats = _setup(session)
        other = repo.add_user(User(email="ben@example.com", password_hash="x", full_name="Ben"))
        repo.commit()
        txn = TransactionService(repo, user_id).create(
            TransactionIn(
                date=date(2024, 1, 15),
                type=TransactionType.expense,
                amount_cents=100,
                category_id=cats["Food"],
                description="Mine",
            )
        )

        intruder = TransactionService(repo, other.id)
        with pytest.raises(NotFoundError):
            intruder.delete(txn.id)
        assert intruder.list() == []


def test_list_filters_and_order() -> None:
    with _new_session() as session:
        repo, user_id, cats = _setup(session)
        service = TransactionService(repo, user_id)
        for day, kind, category in [
            (3, TransactionType.expense, "Food"),
            (10, TransactionType.expense, "Transport"),
            (20, TransactionType.income, "Salary"),
            (25, TransactionType.expense, "Food"),
        ]:
            service.create(
                TransactionIn(
                    date=date(2024, 4, day),
                    type=kind,
                    amount_cents=1_000,
                    category_id=cats[category],
                    description=f"day {day}",
                )
            )

        everything = service.list()
        assert [t.date.day for t in everything] == [25, 20, 10, 3]

        window = service.list(
            TransactionFilters(start=date(2024, 4, 10), end=date(2024, 4, 20))
        )
        assert [t.date.day for t in window] == [20, 10]

        food = service.list(
            TransactionFilters(type=TransactionType.expense, category_id=cats["Food"])
        )
        assert [t.date.day for t in food] == [25, 3]


def test_dashboard_summary_from_store() -> None:
    with _new_session() as session:
        repo, user_id, cats = _setup(session)
        service = TransactionService(repo, user_id)
        for on, kind, amount, category in [
            (date(2024, 1, 15), TransactionType.income, 100_000, "Salary"),
            (date(2024, 1, 16), TransactionType.expense, 30_000, "Food"),
            (date(2024, 1, 17), TransactionType.expense, 20_000, "Transport"),
            (date(2024, 2, 2), TransactionType.expense, 5_000, "Food"),
        ]:
            service.create(
                TransactionIn(
                    date=on,
                    type=kind,
                    amount_cents=amount,
                    category_id=cats[category],
                    description=category,
                )
            )

        dashboard = DashboardService(repo, user_id)
        january = dashboard.summary(DateRange(date(2024, 1, 1), date(2024, 1, 31)))
        assert january.total_income_cents == 100_000
        assert january.total_expense_cents == 50_000
        assert january.current_balance_cents == 50_000
        assert [r.name for r in january.expenses_by_category] == ["Food", "Transport"]
        assert len(january.recent_transactions) == 4
        assert january.recent_transactions[0].date == date(2024, 2, 2)

        overall = dashboard.summary()
        assert overall.total_expense_cents == 55_000


def test_repository_recent_and_budget_lookup() -> None:
    with _new_session() as session:
        repo, user_id, cats = _setup(session)
        service = TransactionService(repo, user_id)
        for day in range(1, 8):
            service.create(
                TransactionIn(
                    date=date(2024, 6, day),
                    type=TransactionType.expense,
                    amount_cents=100 * day,
                    category_id=cats["Food"],
                    description=f"day {day}",
                )
            )

        recent = repo.list_recent_transactions(user_id, 5)
        assert [t.date.day for t in recent] == [7, 6, 5, 4, 3]

        assert repo.find_budget(user_id, cats["Food"], 6, 2024) is None
        created = repo.upsert_budget_row(user_id, cats["Food"], 6, 2024, 5_000)
        repo.commit()
        found = repo.find_budget(user_id, cats["Food"], 6, 2024)
        assert found is not None
        assert found.id == created.id
        assert found.amount_cents == 5_000


def test_view_uses_the_transaction_category() -> None:
    with _new_session() as session:
        repo = LedgerRepository(session)
        service = TransactionService(repo, user_id=1)
        gifts = Category(id=77, name="Gifts", type=TransactionType.expense, icon="G", color="#777777")
        txn = Transaction(
            id=5,
            user_id=1,
            date=date(2024, 2, 14),
            type=TransactionType.expense,
            amount_cents=2_000,
            category_id=77,
            category=gifts,
            description="Flowers",
        )

        view = service.view(txn)

        assert view.category_name == "Gifts"
        assert view.category_color == "#777777"
        assert view.amount_cents == 2_000
