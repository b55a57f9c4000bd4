from fastapi import APIRouter, Depends, Query

from app.core.deps import get_current_user
from app.models.user import User
from app.routers.budget import get_engine
from app.schemas.budget import (
    BudgetAlertCreate,
    BudgetAlertResponse,
    BudgetAlertUpdate,
    TriggeredAlertResponse,
)
from app.services.budget_engine import BudgetEngine

router = APIRouter(prefix="/budget-alerts", tags=["budget-alerts"])


@router.get("/", response_model=list[BudgetAlertResponse])
async def list_alerts(
    budget_id: int | None = Query(default=None),
    user: User = Depends(get_current_user),
    engine: BudgetEngine = Depends(get_engine),
):
    return await engine.list_alerts(user.id, budget_id)


@router.post("/", response_model=BudgetAlertResponse, status_code=201)
async def create_alert(
    payload: BudgetAlertCreate,
    user: User = Depends(get_current_user),
    engine: BudgetEngine = Depends(get_engine),
):
    return await engine.create_alert(user.id, payload.budget_id, payload.threshold, payload.is_active)


# ─── GET /budget-alerts/check (BEFORE /{id} to avoid path collision) ──────────

@router.get("/check", response_model=list[TriggeredAlertResponse])
async def check_alerts(
    user: User = Depends(get_current_user),
    engine: BudgetEngine = Depends(get_engine),
):
    """Active alerts of the current month whose budget usage reached the threshold."""
    return await engine.check_alerts(user.id)


@router.patch("/{alert_id}", response_model=BudgetAlertResponse)
async def update_alert(
    alert_id: int,
    payload: BudgetAlertUpdate,
    user: User = Depends(get_current_user),
    engine: BudgetEngine = Depends(get_engine),
):
    return await engine.update_alert(
        user.id,
        alert_id,
        budget_id=payload.budget_id,
        threshold=payload.threshold,
        is_active=payload.is_active,
    )


@router.delete("/{alert_id}", status_code=204)
async def delete_alert(
    alert_id: int,
    user: User = Depends(get_current_user),
    engine: BudgetEngine = Depends(get_engine),
):
    await engine.delete_alert(user.id, alert_id)
