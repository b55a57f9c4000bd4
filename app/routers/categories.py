from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user
from app.models.bill import Bill
from app.models.budget import Budget
from app.models.category import Category
from app.models.user import User
from app.schemas.category import CategoryCreate, CategoryResponse, EntryType

router = APIRouter(prefix="/categories", tags=["categories"])

DEFAULT_CATEGORIES: list[dict[str, Any]] = [
    {"name": "Food",       "type": "expense", "icon": "food"},
    {"name": "Shopping",   "type": "expense", "icon": "shopping"},
    {"name": "Transport",  "type": "expense", "icon": "transport"},
    {"name": "Housing",    "type": "expense", "icon": "home"},
    {"name": "Salary",     "type": "income",  "icon": "salary"},
    {"name": "Bonus",      "type": "income",  "icon": "bonus"},
    {"name": "Investment", "type": "income",  "icon": "investment"},
]


def default_categories_for(user_id: int) -> list[Category]:
    return [Category(user_id=user_id, **d) for d in DEFAULT_CATEGORIES]


async def _get_owned(db: AsyncSession, category_id: int, user_id: int) -> Category:
    result = await db.execute(
        select(Category).where(Category.id == category_id, Category.user_id == user_id)
    )
    category = result.scalar_one_or_none()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


async def _ensure_name_free(
    db: AsyncSession,
    user_id: int,
    name: str,
    entry_type: str,
    exclude_id: int | None = None,
) -> None:
    query = select(Category.id).where(
        Category.user_id == user_id,
        Category.name == name,
        Category.type == entry_type,
    )
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    if (await db.execute(query)).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A category with this name and type already exists",
        )


@router.get("/", response_model=list[CategoryResponse])
async def list_categories(
    type: EntryType | None = Query(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(Category).where(Category.user_id == user.id)
    if type is not None:
        query = query.where(Category.type == type.value).order_by(Category.name)
    else:
        query = query.order_by(Category.type, Category.name)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/", response_model=CategoryResponse, status_code=201)
async def create_category(
    payload: CategoryCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _ensure_name_free(db, user.id, payload.name, payload.type.value)
    category = Category(
        user_id=user.id,
        name=payload.name,
        type=payload.type.value,
        icon=payload.icon,
    )
    db.add(category)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A category with this name and type already exists",
        )
    await db.refresh(category)
    return category


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _get_owned(db, category_id, user.id)


async def _reference_counts(db: AsyncSession, category_id: int) -> tuple[int, int]:
    """Number of bills and budgets pointing at the category."""
    bills = await db.execute(select(func.count(Bill.id)).where(Bill.category_id == category_id))
    budgets = await db.execute(select(func.count(Budget.id)).where(Budget.category_id == category_id))
    return bills.scalar_one(), budgets.scalar_one()


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    payload: CategoryCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Rename a category; its type can only change while nothing refers to it."""
    category = await _get_owned(db, category_id, user.id)
    await _ensure_name_free(db, user.id, payload.name, payload.type.value, exclude_id=category.id)

    if payload.type.value != category.type:
        bills, budgets = await _reference_counts(db, category.id)
        if bills:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Category is used by bills and its type cannot be changed",
            )
        if budgets:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Category has budgets and its type cannot be changed",
            )

    category.name = payload.name
    category.type = payload.type.value
    category.icon = payload.icon
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A category with this name and type already exists",
        )
    await db.refresh(category)
    return category


@router.delete("/{category_id}", status_code=204)
async def delete_category(
    category_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a category that no bill or budget refers to."""
    category = await _get_owned(db, category_id, user.id)

    bills, budgets = await _reference_counts(db, category.id)
    if bills:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category is used by bills and cannot be deleted",
        )
    if budgets:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category has budgets and cannot be deleted",
        )

    await db.delete(category)
