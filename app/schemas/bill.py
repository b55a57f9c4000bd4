import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field

from app.schemas.category import EntryType


class BillCreate(BaseModel):
    category_id: int
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    type: EntryType
    date: dt.date
    description: str | None = None


class BillUpdate(BaseModel):
    category_id: int | None = None
    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    type: EntryType | None = None
    date: dt.date | None = None
    description: str | None = None


class BillResponse(BaseModel):
    id: int
    category_id: int
    amount: Decimal
    type: EntryType
    date: dt.date
    description: str | None
    category_name: str | None = None
    category_icon: str | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int


class BillPage(BaseModel):
    items: list[BillResponse]
    pagination: Pagination


# ─── Monthly statistics ───────────────────────────────────────────────────────

class CategoryTotal(BaseModel):
    id: int
    name: str
    type: EntryType
    icon: str | None
    total: Decimal


class DailyTotal(BaseModel):
    date: dt.date
    income: Decimal
    expense: Decimal
    balance: Decimal


class MonthlyStatsResponse(BaseModel):
    year: int
    month: int
    total_income: Decimal
    total_expense: Decimal
    balance: Decimal
    categories: list[CategoryTotal]
    daily: list[DailyTotal]
