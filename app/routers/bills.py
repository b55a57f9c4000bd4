import math
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user
from app.models.bill import Bill
from app.models.category import Category
from app.models.user import User
from app.schemas.bill import (
    BillCreate,
    BillPage,
    BillResponse,
    BillUpdate,
    MonthlyStatsResponse,
    Pagination,
)
from app.schemas.category import EntryType
from app.services.bill_stats import monthly_stats

router = APIRouter(prefix="/bills", tags=["bills"])


# ─── Helpers ──────────────────────────────────────────────────────────────────

async def _get_owned(db: AsyncSession, bill_id: int, user_id: int) -> Bill:
    result = await db.execute(select(Bill).where(Bill.id == bill_id, Bill.user_id == user_id))
    bill = result.scalar_one_or_none()
    if not bill:
        raise HTTPException(status_code=404, detail="Bill not found")
    return bill


async def _check_category(db: AsyncSession, category_id: int, user_id: int, entry_type: str) -> None:
    """The bill's category must belong to the user and share the bill's type."""
    result = await db.execute(
        select(Category).where(Category.id == category_id, Category.user_id == user_id)
    )
    category = result.scalar_one_or_none()
    if not category:
        raise HTTPException(status_code=400, detail="Category does not exist or does not belong to the user")
    if category.type != entry_type:
        raise HTTPException(status_code=400, detail="Bill type does not match category type")


# ─── GET /bills/stats/monthly (BEFORE /{id} to avoid path collision) ──────────

@router.get("/stats/monthly", response_model=MonthlyStatsResponse)
async def get_monthly_stats(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    today = date.today()
    return await monthly_stats(db, user.id, year or today.year, month or today.month)


# ─── GET /bills/ ──────────────────────────────────────────────────────────────

@router.get("/", response_model=BillPage)
async def list_bills(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    type: EntryType | None = Query(default=None),
    category_id: int | None = Query(default=None),
    min_amount: Decimal | None = Query(default=None, gt=0),
    max_amount: Decimal | None = Query(default=None, gt=0),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conditions = [Bill.user_id == user.id]
    if start_date is not None:
        conditions.append(Bill.date >= start_date)
    if end_date is not None:
        conditions.append(Bill.date <= end_date)
    if type is not None:
        conditions.append(Bill.type == type.value)
    if category_id is not None:
        conditions.append(Bill.category_id == category_id)
    if min_amount is not None:
        conditions.append(Bill.amount >= min_amount)
    if max_amount is not None:
        conditions.append(Bill.amount <= max_amount)

    total = (await db.execute(select(func.count(Bill.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(Bill)
        .where(*conditions)
        .order_by(Bill.date.desc(), Bill.id.desc())
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    return BillPage(
        items=[BillResponse.model_validate(b) for b in result.scalars().all()],
        pagination=Pagination(
            page=page,
            page_size=page_size,
            total_items=total,
            total_pages=math.ceil(total / page_size),
        ),
    )


# ─── POST /bills/ ─────────────────────────────────────────────────────────────

@router.post("/", response_model=BillResponse, status_code=201)
async def create_bill(
    payload: BillCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _check_category(db, payload.category_id, user.id, payload.type.value)
    bill = Bill(
        user_id=user.id,
        category_id=payload.category_id,
        amount=payload.amount,
        type=payload.type.value,
        date=payload.date,
        description=payload.description,
    )
    db.add(bill)
    await db.flush()
    await db.refresh(bill)
    return bill


@router.get("/{bill_id}", response_model=BillResponse)
async def get_bill(
    bill_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _get_owned(db, bill_id, user.id)


# ─── PATCH /bills/{id} ────────────────────────────────────────────────────────

@router.patch("/{bill_id}", response_model=BillResponse)
async def update_bill(
    bill_id: int,
    payload: BillUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bill = await _get_owned(db, bill_id, user.id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "type" in data:
        data["type"] = data["type"].value

    # Re-check the category/type pairing against the resulting values
    await _check_category(
        db,
        data.get("category_id", bill.category_id),
        user.id,
        data.get("type", bill.type),
    )

    for field, value in data.items():
        setattr(bill, field, value)

    await db.flush()
    await db.refresh(bill)
    return bill


@router.delete("/{bill_id}", status_code=204)
async def delete_bill(
    bill_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    bill = await _get_owned(db, bill_id, user.id)
    await db.delete(bill)
