import datetime as dt
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, TimestampMixin
from app.models.category import Category


class Bill(TimestampMixin, Base):
    """A single income or expense record."""
    __tablename__ = "bills"
    __table_args__ = (
        Index("ix_bills_user_date", "user_id", "date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE")
    )
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    type: Mapped[str] = mapped_column(String(10))  # must equal category.type
    date: Mapped[dt.date] = mapped_column(Date)
    description: Mapped[str | None] = mapped_column(Text)

    # selectin: async sessions cannot lazy-load on attribute access
    category: Mapped[Category] = relationship(lazy="selectin")

    @property
    def category_name(self) -> str | None:
        return self.category.name if self.category else None

    @property
    def category_icon(self) -> str | None:
        return self.category.icon if self.category else None
