from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user
from app.core.errors import ValidationError
from app.models.user import User
from app.schemas.budget import (
    BudgetCreate,
    BudgetUpdate,
    BudgetWithUsageResponse,
    parse_month,
)
from app.services.budget_engine import BudgetEngine, BudgetUsage
from app.services.budget_store import BudgetStore

router = APIRouter(prefix="/budgets", tags=["budgets"])


def get_engine(db: AsyncSession = Depends(get_db)) -> BudgetEngine:
    return BudgetEngine(BudgetStore(db))


def _enrich(usage: BudgetUsage) -> BudgetWithUsageResponse:
    b = usage.budget
    return BudgetWithUsageResponse(
        id=b.id,
        category_id=b.category_id,
        category_name=b.category.name if b.category else None,
        category_icon=b.category.icon if b.category else None,
        amount=b.amount,
        month=b.month,
        created_at=b.created_at,
        updated_at=b.updated_at,
        used_amount=usage.used_amount,
        percentage=round(usage.percentage, 2),
        remaining=usage.remaining,
    )


def _month_param(month: str | None) -> date:
    if month is None:
        return date.today().replace(day=1)
    try:
        return parse_month(month)
    except ValueError as e:
        raise ValidationError(str(e))


# ─── GET /budgets/?month=YYYY-MM ──────────────────────────────────────────────

@router.get("/", response_model=list[BudgetWithUsageResponse])
async def list_budgets(
    month: str | None = Query(default=None, description="YYYY-MM, defaults to the current month"),
    user: User = Depends(get_current_user),
    engine: BudgetEngine = Depends(get_engine),
):
    usages = await engine.list_budgets(user.id, _month_param(month))
    return [_enrich(u) for u in usages]


@router.post("/", response_model=BudgetWithUsageResponse, status_code=201)
async def create_budget(
    payload: BudgetCreate,
    user: User = Depends(get_current_user),
    engine: BudgetEngine = Depends(get_engine),
):
    usage = await engine.create_budget(user.id, payload.category_id, payload.amount, payload.month)
    return _enrich(usage)


@router.get("/{budget_id}", response_model=BudgetWithUsageResponse)
async def get_budget(
    budget_id: int,
    user: User = Depends(get_current_user),
    engine: BudgetEngine = Depends(get_engine),
):
    return _enrich(await engine.get_budget(user.id, budget_id))


@router.patch("/{budget_id}", response_model=BudgetWithUsageResponse)
async def update_budget(
    budget_id: int,
    payload: BudgetUpdate,
    user: User = Depends(get_current_user),
    engine: BudgetEngine = Depends(get_engine),
):
    changes = {"amount": payload.amount, "month": payload.month}
    # Only forward category_id when the client sent it, so null can mean "total budget"
    if "category_id" in payload.model_fields_set:
        changes["category_id"] = payload.category_id
    usage = await engine.update_budget(user.id, budget_id, **changes)
    return _enrich(usage)


@router.delete("/{budget_id}", status_code=204)
async def delete_budget(
    budget_id: int,
    user: User = Depends(get_current_user),
    engine: BudgetEngine = Depends(get_engine),
):
    await engine.delete_budget(user.id, budget_id)
