"""
BudgetStore against a throwaway SQLite database.
"""
import asyncio
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.core.errors import ConflictError, PersistenceError
from app.models.bill import Bill
from app.models.budget import Budget, BudgetAlert
from app.services.budget_store import BudgetStore

OCTOBER = date(2026, 10, 1)


def _bill(user_id, category_id, amount, day, type="expense") -> Bill:
    return Bill(
        user_id=user_id, category_id=category_id, amount=Decimal(amount), type=type, date=day
    )


async def _count_rows(session_factory) -> tuple[int, int]:
    """(budgets, alerts) as seen from a fresh session."""
    async with session_factory() as db:
        budgets = (await db.execute(select(func.count(Budget.id)))).scalar_one()
        alerts = (await db.execute(select(func.count(BudgetAlert.id)))).scalar_one()
    return budgets, alerts


class TestUniqueness:
    def test_second_total_budget_for_month_is_a_conflict(self, session_factory, seed):
        async def scenario():
            async with session_factory() as db:
                store = BudgetStore(db)
                await store.insert_budget(seed.alice, None, Decimal("3000"), OCTOBER)
                await db.commit()
                with pytest.raises(ConflictError):
                    await store.insert_budget(seed.alice, None, Decimal("2000"), OCTOBER)

        asyncio.run(scenario())

    def test_total_budgets_in_different_months_coexist(self, session_factory, seed):
        async def scenario():
            async with session_factory() as db:
                store = BudgetStore(db)
                await store.insert_budget(seed.alice, None, Decimal("3000"), OCTOBER)
                await store.insert_budget(seed.alice, None, Decimal("3000"), date(2026, 11, 1))
                await store.insert_budget(seed.bob, None, Decimal("3000"), OCTOBER)
                await db.commit()
                return await store.count_budgets_in_slot(seed.alice, None, OCTOBER)

        assert asyncio.run(scenario()) == 1

    def test_duplicate_category_budget_is_a_conflict(self, session_factory, seed):
        async def scenario():
            async with session_factory() as db:
                store = BudgetStore(db)
                await store.insert_budget(seed.alice, seed.food, Decimal("500"), OCTOBER)
                await db.commit()
                with pytest.raises(ConflictError):
                    await store.insert_budget(seed.alice, seed.food, Decimal("600"), OCTOBER)

        asyncio.run(scenario())

    def test_duplicate_alert_threshold_is_a_conflict(self, session_factory, seed):
        async def scenario():
            async with session_factory() as db:
                store = BudgetStore(db)
                budget = await store.insert_budget(seed.alice, seed.food, Decimal("500"), OCTOBER)
                await store.insert_alert(seed.alice, budget.id, 80, True)
                await db.commit()
                with pytest.raises(ConflictError):
                    await store.insert_alert(seed.alice, budget.id, 80, False)

        asyncio.run(scenario())


class TestQueries:
    def test_sum_expense_bills_filters(self, session_factory, seed):
        async def scenario():
            async with session_factory() as db:
                db.add_all([
                    _bill(seed.alice, seed.food, "300.50", date(2026, 10, 1)),
                    _bill(seed.alice, seed.food, "549.50", date(2026, 10, 31)),
                    _bill(seed.alice, seed.transport, "100", date(2026, 10, 15)),
                    # Out of month, income, other user
                    _bill(seed.alice, seed.food, "999", date(2026, 11, 1)),
                    _bill(seed.alice, seed.salary, "5000", date(2026, 10, 5), type="income"),
                    _bill(seed.bob, seed.bob_food, "777", date(2026, 10, 5)),
                ])
                await db.commit()

                store = BudgetStore(db)
                food = await store.sum_expense_bills(
                    seed.alice, seed.food, date(2026, 10, 1), date(2026, 10, 31)
                )
                total = await store.sum_expense_bills(
                    seed.alice, None, date(2026, 10, 1), date(2026, 10, 31)
                )
                empty = await store.sum_expense_bills(
                    seed.alice, seed.food, date(2026, 9, 1), date(2026, 9, 30)
                )
                return food, total, empty

        food, total, empty = asyncio.run(scenario())
        assert food == Decimal("850")
        assert total == Decimal("950")
        assert empty == Decimal("0")

    def test_list_budgets_total_first_then_by_category_name(self, session_factory, seed):
        async def scenario():
            async with session_factory() as db:
                store = BudgetStore(db)
                await store.insert_budget(seed.alice, seed.transport, Decimal("200"), OCTOBER)
                await store.insert_budget(seed.alice, seed.food, Decimal("500"), OCTOBER)
                await store.insert_budget(seed.alice, None, Decimal("3000"), OCTOBER)
                await store.insert_budget(seed.alice, seed.food, Decimal("500"), date(2026, 11, 1))
                await db.commit()
                budgets = await store.list_budgets(seed.alice, OCTOBER)
                return [b.category.name if b.category else None for b in budgets]

        assert asyncio.run(scenario()) == [None, "Food", "Transport"]

    def test_active_alerts_only_for_requested_month(self, session_factory, seed):
        async def scenario():
            async with session_factory() as db:
                store = BudgetStore(db)
                october = await store.insert_budget(seed.alice, seed.food, Decimal("500"), OCTOBER)
                november = await store.insert_budget(
                    seed.alice, seed.food, Decimal("500"), date(2026, 11, 1)
                )
                await store.insert_alert(seed.alice, october.id, 50, True)
                await store.insert_alert(seed.alice, october.id, 90, False)
                await store.insert_alert(seed.alice, november.id, 50, True)
                await db.commit()
                alerts = await store.list_active_alerts(seed.alice, OCTOBER)
                return [(a.budget_id, a.threshold) for a in alerts], october.id

        alerts, october_id = asyncio.run(scenario())
        assert alerts == [(october_id, 50)]


class TestDeleteCascade:
    def test_budget_and_alerts_removed_together(self, session_factory, seed):
        async def scenario():
            async with session_factory() as db:
                store = BudgetStore(db)
                budget = await store.insert_budget(seed.alice, seed.food, Decimal("500"), OCTOBER)
                await store.insert_alert(seed.alice, budget.id, 50, True)
                await store.insert_alert(seed.alice, budget.id, 80, True)
                await db.commit()

                removed = await store.delete_budget_cascade(budget)
                await db.commit()

            return removed, await _count_rows(session_factory)

        assert asyncio.run(scenario()) == (2, (0, 0))

    def test_uncommitted_cascade_is_not_visible(self, session_factory, seed):
        async def scenario():
            async with session_factory() as db:
                store = BudgetStore(db)
                budget = await store.insert_budget(seed.alice, seed.food, Decimal("500"), OCTOBER)
                await store.insert_alert(seed.alice, budget.id, 50, True)
                await db.commit()

                await store.delete_budget_cascade(budget)
                await db.rollback()

            return await _count_rows(session_factory)

        assert asyncio.run(scenario()) == (1, 1)

    def test_failure_on_budget_delete_restores_alerts(self, session_factory, seed):
        async def scenario():
            async with session_factory() as db:
                store = BudgetStore(db)
                budget = await store.insert_budget(seed.alice, seed.food, Decimal("500"), OCTOBER)
                await store.insert_alert(seed.alice, budget.id, 50, True)
                await db.commit()

                real_execute = db.execute
                calls = 0

                async def failing_second_execute(statement, *args, **kwargs):
                    nonlocal calls
                    calls += 1
                    if calls == 2:
                        raise OperationalError("DELETE FROM budgets", {}, Exception("disk I/O error"))
                    return await real_execute(statement, *args, **kwargs)

                with patch.object(db, "execute", side_effect=failing_second_execute):
                    with pytest.raises(PersistenceError):
                        await store.delete_budget_cascade(budget)

            return calls, await _count_rows(session_factory)

        assert asyncio.run(scenario()) == (2, (1, 1))
