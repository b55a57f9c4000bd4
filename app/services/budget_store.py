"""
SQLAlchemy-backed persistence for the budget engine.

One ``BudgetStore`` wraps the request's ``AsyncSession``; every method is
scoped by the owning user where the entity carries one. SQLAlchemy failures
are translated by ``translate_db_errors``: unique-constraint violations become
``ConflictError`` (two requests racing past the placement check end up here),
everything else ``PersistenceError``.
"""
import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db_utils import translate_db_errors
from app.models.bill import Bill
from app.models.budget import Budget, BudgetAlert
from app.models.category import Category

logger = logging.getLogger(__name__)

_DUPLICATE_BUDGET = "A budget for this category and month already exists."
_DUPLICATE_ALERT = "An alert with this threshold already exists for the budget."


def _slot_filter(category_id: int | None):
    if category_id is None:
        return Budget.category_id.is_(None)
    return Budget.category_id == category_id


class BudgetStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ─── Lookups ──────────────────────────────────────────────────────────────

    @translate_db_errors("loading category")
    async def find_category(self, category_id: int, user_id: int) -> Category | None:
        result = await self.db.execute(
            select(Category).where(Category.id == category_id, Category.user_id == user_id)
        )
        return result.scalar_one_or_none()

    @translate_db_errors("loading budget")
    async def find_budget(self, budget_id: int, user_id: int) -> Budget | None:
        result = await self.db.execute(
            select(Budget).where(Budget.id == budget_id, Budget.user_id == user_id)
        )
        return result.scalar_one_or_none()

    @translate_db_errors("listing budgets")
    async def list_budgets(self, user_id: int, month: date) -> list[Budget]:
        """Budgets of one month: the total budget first, then by category name."""
        result = await self.db.execute(
            select(Budget)
            .outerjoin(Category, Budget.category_id == Category.id)
            .where(Budget.user_id == user_id, Budget.month == month)
            .order_by(Budget.category_id.is_(None).desc(), Category.name, Budget.id)
        )
        return list(result.scalars().all())

    @translate_db_errors("summing expense bills")
    async def sum_expense_bills(
        self,
        user_id: int,
        category_id: int | None,
        start: date,
        end: date,
    ) -> Decimal:
        conditions = [
            Bill.user_id == user_id,
            Bill.type == "expense",
            Bill.date >= start,
            Bill.date <= end,
        ]
        if category_id is not None:
            conditions.append(Bill.category_id == category_id)
        result = await self.db.execute(
            select(func.coalesce(func.sum(Bill.amount), 0)).where(*conditions)
        )
        return Decimal(str(result.scalar() or 0))

    @translate_db_errors("checking budget slot")
    async def count_budgets_in_slot(
        self,
        user_id: int,
        category_id: int | None,
        month: date,
        exclude_id: int | None = None,
    ) -> int:
        query = select(func.count(Budget.id)).where(
            Budget.user_id == user_id,
            _slot_filter(category_id),
            Budget.month == month,
        )
        if exclude_id is not None:
            query = query.where(Budget.id != exclude_id)
        result = await self.db.execute(query)
        return result.scalar_one()

    @translate_db_errors("checking alert threshold")
    async def count_alerts_with_threshold(
        self,
        budget_id: int,
        threshold: int,
        exclude_id: int | None = None,
    ) -> int:
        query = select(func.count(BudgetAlert.id)).where(
            BudgetAlert.budget_id == budget_id,
            BudgetAlert.threshold == threshold,
        )
        if exclude_id is not None:
            query = query.where(BudgetAlert.id != exclude_id)
        result = await self.db.execute(query)
        return result.scalar_one()

    # ─── Budget writes ────────────────────────────────────────────────────────

    @translate_db_errors("creating budget", conflict_message=_DUPLICATE_BUDGET)
    async def insert_budget(
        self,
        user_id: int,
        category_id: int | None,
        amount: Decimal,
        month: date,
    ) -> Budget:
        budget = Budget(user_id=user_id, category_id=category_id, amount=amount, month=month)
        self.db.add(budget)
        await self.db.flush()
        await self.db.refresh(budget)
        return budget

    @translate_db_errors("updating budget", conflict_message=_DUPLICATE_BUDGET)
    async def update_budget(self, budget: Budget, **fields) -> Budget:
        for field, value in fields.items():
            setattr(budget, field, value)
        await self.db.flush()
        await self.db.refresh(budget)
        return budget

    @translate_db_errors("deleting budget")
    async def delete_budget_cascade(self, budget: Budget) -> int:
        """
        Delete the budget's alerts, then the budget, inside the request transaction.

        Returns the number of alerts removed. The commit belongs to the
        caller; on any failure the decorator rolls the session back, so
        neither half is ever visible on its own.
        """
        alerts = await self.db.execute(
            delete(BudgetAlert).where(BudgetAlert.budget_id == budget.id)
        )
        await self.db.execute(
            delete(Budget).where(Budget.id == budget.id, Budget.user_id == budget.user_id)
        )
        await self.db.flush()
        logger.debug("Budget %s deleted with %s alert row(s)", budget.id, alerts.rowcount)
        return alerts.rowcount or 0

    # ─── Alerts ───────────────────────────────────────────────────────────────

    @translate_db_errors("loading alert")
    async def find_alert(self, alert_id: int, user_id: int) -> BudgetAlert | None:
        result = await self.db.execute(
            select(BudgetAlert).where(BudgetAlert.id == alert_id, BudgetAlert.user_id == user_id)
        )
        return result.scalar_one_or_none()

    @translate_db_errors("listing alerts")
    async def list_alerts(self, user_id: int, budget_id: int | None = None) -> list[BudgetAlert]:
        query = select(BudgetAlert).where(BudgetAlert.user_id == user_id)
        if budget_id is not None:
            query = query.where(BudgetAlert.budget_id == budget_id)
        result = await self.db.execute(query.order_by(BudgetAlert.threshold, BudgetAlert.id))
        return list(result.scalars().all())

    @translate_db_errors("listing active alerts")
    async def list_active_alerts(self, user_id: int, month: date) -> list[BudgetAlert]:
        """Active alerts of the user whose parent budget belongs to ``month``."""
        result = await self.db.execute(
            select(BudgetAlert)
            .join(Budget, BudgetAlert.budget_id == Budget.id)
            .where(
                BudgetAlert.user_id == user_id,
                BudgetAlert.is_active == True,  # noqa: E712
                Budget.month == month,
            )
            .order_by(BudgetAlert.id)
        )
        return list(result.scalars().all())

    @translate_db_errors("creating alert", conflict_message=_DUPLICATE_ALERT)
    async def insert_alert(
        self,
        user_id: int,
        budget_id: int,
        threshold: int,
        is_active: bool,
    ) -> BudgetAlert:
        alert = BudgetAlert(
            user_id=user_id,
            budget_id=budget_id,
            threshold=threshold,
            is_active=is_active,
        )
        self.db.add(alert)
        await self.db.flush()
        await self.db.refresh(alert)
        return alert

    @translate_db_errors("updating alert", conflict_message=_DUPLICATE_ALERT)
    async def update_alert(self, alert: BudgetAlert, **fields) -> BudgetAlert:
        for field, value in fields.items():
            setattr(alert, field, value)
        await self.db.flush()
        await self.db.refresh(alert)
        return alert

    @translate_db_errors("deleting alert")
    async def delete_alert(self, alert: BudgetAlert) -> None:
        await self.db.delete(alert)
        await self.db.flush()
