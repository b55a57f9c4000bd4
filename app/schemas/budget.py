from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_serializer, field_validator


def parse_month(value: object) -> object:
    """Accept "YYYY-MM" (or a date) and normalise to the first day of the month."""
    if isinstance(value, date):
        return value.replace(day=1)
    if isinstance(value, str):
        try:
            year, month = value.split("-")
            return date(int(year), int(month), 1)
        except ValueError:
            raise ValueError("month must use the format YYYY-MM")
    return value


class BudgetCreate(BaseModel):
    category_id: int | None = None  # None → total budget for the month
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    month: date

    @field_validator("month", mode="before")
    @classmethod
    def normalise_month(cls, v: object) -> object:
        return parse_month(v)


class BudgetUpdate(BaseModel):
    # An explicit "category_id": null turns the budget into the month's total budget
    category_id: int | None = None
    amount: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    month: date | None = None

    @field_validator("month", mode="before")
    @classmethod
    def normalise_month(cls, v: object) -> object:
        return parse_month(v)


class BudgetWithUsageResponse(BaseModel):
    id: int
    category_id: int | None
    category_name: str | None
    category_icon: str | None
    amount: Decimal
    month: date
    created_at: datetime
    updated_at: datetime
    used_amount: Decimal
    percentage: Decimal    # used_amount / amount * 100
    remaining: Decimal     # negative if over budget

    @field_serializer("month")
    def serialize_month(self, value: date) -> str:
        return value.strftime("%Y-%m")


# ─── Alerts ───────────────────────────────────────────────────────────────────

class BudgetAlertCreate(BaseModel):
    budget_id: int
    threshold: int = Field(ge=1, le=100)
    is_active: bool = True


class BudgetAlertUpdate(BaseModel):
    budget_id: int | None = None
    threshold: int | None = Field(default=None, ge=1, le=100)
    is_active: bool | None = None


class BudgetAlertResponse(BaseModel):
    id: int
    budget_id: int
    threshold: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CategoryAlertHitResponse(BaseModel):
    budget_type: Literal["category"]
    alert_id: int
    budget_id: int
    threshold: int
    used_percent: Decimal
    used_amount: Decimal
    budget_amount: Decimal
    category_id: int
    category_name: str


class TotalAlertHitResponse(BaseModel):
    budget_type: Literal["total"]
    alert_id: int
    budget_id: int
    threshold: int
    used_percent: Decimal
    used_amount: Decimal
    budget_amount: Decimal


TriggeredAlertResponse = Annotated[
    CategoryAlertHitResponse | TotalAlertHitResponse,
    Field(discriminator="budget_type"),
]
