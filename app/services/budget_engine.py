"""
Budget & alert engine.

Computes monthly budget usage and evaluates alert thresholds for one user.
The engine owns the business rules; persistence goes through an injected
``BudgetStore`` so the rules can be exercised without a database.

Usage
─────
  used      = sum of the user's expense bills in the budget's month,
              limited to the budget's category unless it is a total budget
  percentage = used / amount * 100   (0 when amount <= 0)

An alert is triggered when its budget's percentage >= threshold.
"""
import logging
from calendar import monthrange
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Literal

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.budget import Budget, BudgetAlert
from app.services.budget_store import BudgetStore

logger = logging.getLogger(__name__)

THRESHOLD_MIN = 1
THRESHOLD_MAX = 100

_UNSET = object()


# ── Result types ────────────────────────────────────────────────────────────

@dataclass
class BudgetUsage:
    budget: Budget
    used_amount: Decimal
    percentage: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.budget.amount - self.used_amount


@dataclass
class CategoryAlertHit:
    alert_id: int
    budget_id: int
    threshold: int
    used_percent: Decimal
    used_amount: Decimal
    budget_amount: Decimal
    category_id: int
    category_name: str
    budget_type: Literal["category"] = "category"


@dataclass
class TotalAlertHit:
    alert_id: int
    budget_id: int
    threshold: int
    used_percent: Decimal
    used_amount: Decimal
    budget_amount: Decimal
    budget_type: Literal["total"] = "total"


AlertHit = CategoryAlertHit | TotalAlertHit


# ── Helpers ─────────────────────────────────────────────────────────────────

def month_start(day: date) -> date:
    return day.replace(day=1)


def month_range(month: date) -> tuple[date, date]:
    """Inclusive (first day, last day) of the month containing ``month``."""
    last = monthrange(month.year, month.month)[1]
    return date(month.year, month.month, 1), date(month.year, month.month, last)


def usage_percentage(used: Decimal, amount: Decimal) -> Decimal:
    if amount <= 0:
        return Decimal("0")
    return used / amount * 100


def _check_threshold(threshold: int) -> None:
    if not THRESHOLD_MIN <= threshold <= THRESHOLD_MAX:
        raise ValidationError(
            f"Threshold must be between {THRESHOLD_MIN} and {THRESHOLD_MAX}, got {threshold}"
        )


def _check_amount(amount: Decimal) -> None:
    if amount <= 0:
        raise ValidationError("Budget amount must be positive")


# ── Engine ──────────────────────────────────────────────────────────────────

class BudgetEngine:
    def __init__(self, store: BudgetStore, today: Callable[[], date] = date.today) -> None:
        self.store = store
        self.today = today

    # ── Usage ───────────────────────────────────────────────────────────────

    async def compute_usage(self, user_id: int, budget: Budget) -> BudgetUsage:
        start, end = month_range(budget.month)
        used = await self.store.sum_expense_bills(user_id, budget.category_id, start, end)
        return BudgetUsage(
            budget=budget,
            used_amount=used,
            percentage=usage_percentage(used, budget.amount),
        )

    async def validate_placement(
        self,
        user_id: int,
        category_id: int | None,
        month: date,
        exclude_id: int | None = None,
    ) -> None:
        """Raise unless (user, category-or-total, month) is free and the category fits."""
        if category_id is not None:
            category = await self.store.find_category(category_id, user_id)
            if category is None:
                raise ValidationError("Category does not exist or does not belong to the user")
            if category.type != "expense":
                raise ValidationError("Budgets can only be set on expense categories")

        taken = await self.store.count_budgets_in_slot(
            user_id, category_id, month_start(month), exclude_id
        )
        if taken > 0:
            if category_id is None:
                raise ConflictError("A total budget already exists for this month")
            raise ConflictError("A budget for this category already exists for this month")

    # ── Budgets ─────────────────────────────────────────────────────────────

    async def _owned_budget(self, user_id: int, budget_id: int) -> Budget:
        budget = await self.store.find_budget(budget_id, user_id)
        if budget is None:
            raise NotFoundError("Budget not found")
        return budget

    async def get_budget(self, user_id: int, budget_id: int) -> BudgetUsage:
        budget = await self._owned_budget(user_id, budget_id)
        return await self.compute_usage(user_id, budget)

    async def list_budgets(self, user_id: int, month: date) -> list[BudgetUsage]:
        budgets = await self.store.list_budgets(user_id, month_start(month))
        return [await self.compute_usage(user_id, b) for b in budgets]

    async def create_budget(
        self,
        user_id: int,
        category_id: int | None,
        amount: Decimal,
        month: date,
    ) -> BudgetUsage:
        month = month_start(month)
        _check_amount(amount)
        await self.validate_placement(user_id, category_id, month)
        budget = await self.store.insert_budget(user_id, category_id, amount, month)
        logger.info("Created budget %s for user %s (%s)", budget.id, user_id, month.strftime("%Y-%m"))
        return await self.compute_usage(user_id, budget)

    async def update_budget(
        self,
        user_id: int,
        budget_id: int,
        *,
        category_id: int | None | object = _UNSET,
        amount: Decimal | None = None,
        month: date | None = None,
    ) -> BudgetUsage:
        """
        Update a budget. ``category_id`` left unset keeps the current category;
        passing ``None`` explicitly turns it into the month's total budget.
        Placement is re-validated only when the category or month changes.
        """
        budget = await self._owned_budget(user_id, budget_id)

        new_category = budget.category_id if category_id is _UNSET else category_id
        new_month = month_start(month) if month is not None else budget.month

        if new_category != budget.category_id or new_month != budget.month:
            await self.validate_placement(user_id, new_category, new_month, exclude_id=budget.id)

        changes: dict = {"category_id": new_category, "month": new_month}
        if amount is not None:
            _check_amount(amount)
            changes["amount"] = amount
        budget = await self.store.update_budget(budget, **changes)
        logger.info("Updated budget %s for user %s", budget.id, user_id)
        return await self.compute_usage(user_id, budget)

    async def delete_budget(self, user_id: int, budget_id: int) -> None:
        budget = await self._owned_budget(user_id, budget_id)
        removed = await self.store.delete_budget_cascade(budget)
        logger.info("Deleted budget %s for user %s with %d alert(s)", budget_id, user_id, removed)

    # ── Alerts ──────────────────────────────────────────────────────────────

    async def _owned_alert(self, user_id: int, alert_id: int) -> BudgetAlert:
        alert = await self.store.find_alert(alert_id, user_id)
        if alert is None:
            raise NotFoundError("Budget alert not found")
        return alert

    async def list_alerts(self, user_id: int, budget_id: int | None = None) -> list[BudgetAlert]:
        return await self.store.list_alerts(user_id, budget_id)

    async def create_alert(
        self,
        user_id: int,
        budget_id: int,
        threshold: int,
        is_active: bool = True,
    ) -> BudgetAlert:
        # Range check comes first: a bad threshold never touches the store
        _check_threshold(threshold)
        await self._owned_budget(user_id, budget_id)

        if await self.store.count_alerts_with_threshold(budget_id, threshold) > 0:
            raise ConflictError(f"An alert with threshold {threshold}% already exists")

        alert = await self.store.insert_alert(user_id, budget_id, threshold, is_active)
        logger.info("Created alert %s (%d%%) on budget %s", alert.id, threshold, budget_id)
        return alert

    async def update_alert(
        self,
        user_id: int,
        alert_id: int,
        *,
        budget_id: int | None = None,
        threshold: int | None = None,
        is_active: bool | None = None,
    ) -> BudgetAlert:
        if threshold is not None:
            _check_threshold(threshold)
        alert = await self._owned_alert(user_id, alert_id)

        target_budget = budget_id if budget_id is not None else alert.budget_id
        target_threshold = threshold if threshold is not None else alert.threshold
        if target_budget != alert.budget_id:
            await self._owned_budget(user_id, target_budget)

        clash = await self.store.count_alerts_with_threshold(
            target_budget, target_threshold, exclude_id=alert.id
        )
        if clash > 0:
            raise ConflictError(f"An alert with threshold {target_threshold}% already exists")

        changes: dict = {"budget_id": target_budget, "threshold": target_threshold}
        if is_active is not None:
            changes["is_active"] = is_active
        return await self.store.update_alert(alert, **changes)

    async def delete_alert(self, user_id: int, alert_id: int) -> None:
        alert = await self._owned_alert(user_id, alert_id)
        await self.store.delete_alert(alert)

    async def check_alerts(self, user_id: int) -> list[AlertHit]:
        """
        Report every active alert of the current month whose budget usage has
        reached its threshold. Read-only: repeated calls report the same hits.
        """
        current = month_start(self.today())
        usages = {u.budget.id: u for u in await self.list_budgets(user_id, current)}
        alerts = await self.store.list_active_alerts(user_id, current)

        hits: list[AlertHit] = []
        for alert in alerts:
            usage = usages.get(alert.budget_id)
            if usage is None:
                continue
            if usage.percentage < alert.threshold:
                continue

            budget = usage.budget
            if budget.category_id is not None:
                hits.append(CategoryAlertHit(
                    alert_id=alert.id,
                    budget_id=budget.id,
                    threshold=alert.threshold,
                    used_percent=usage.percentage,
                    used_amount=usage.used_amount,
                    budget_amount=budget.amount,
                    category_id=budget.category_id,
                    category_name=budget.category.name,
                ))
            else:
                hits.append(TotalAlertHit(
                    alert_id=alert.id,
                    budget_id=budget.id,
                    threshold=alert.threshold,
                    used_percent=usage.percentage,
                    used_amount=usage.used_amount,
                    budget_amount=budget.amount,
                ))

        logger.debug("User %s: %d of %d active alert(s) triggered", user_id, len(hits), len(alerts))
        return hits
