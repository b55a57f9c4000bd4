import enum
from datetime import datetime

from pydantic import BaseModel, Field


class EntryType(str, enum.Enum):
    income = "income"
    expense = "expense"


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    type: EntryType
    icon: str | None = Field(default=None, max_length=50)


class CategoryResponse(BaseModel):
    id: int
    name: str
    type: EntryType
    icon: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
