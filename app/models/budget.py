from datetime import date
from decimal import Decimal

from sqlalchemy import (
    Boolean, Date, ForeignKey, Index, Integer, Numeric, UniqueConstraint, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, TimestampMixin
from app.models.category import Category


class Budget(TimestampMixin, Base):
    __tablename__ = "budgets"
    __table_args__ = (
        UniqueConstraint("user_id", "category_id", "month", name="uq_budgets_user_category_month"),
        # NULLs are distinct in the constraint above, so the single "total"
        # budget per month needs its own partial index.
        Index(
            "uq_budgets_user_total_month",
            "user_id",
            "month",
            unique=True,
            postgresql_where=text("category_id IS NULL"),
            sqlite_where=text("category_id IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=True
    )  # None → total budget across all expense categories
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    month: Mapped[date] = mapped_column(Date)  # always the first day of the month

    category: Mapped[Category | None] = relationship(lazy="selectin")


class BudgetAlert(TimestampMixin, Base):
    __tablename__ = "budget_alerts"
    __table_args__ = (
        UniqueConstraint("budget_id", "threshold", name="uq_budget_alerts_budget_threshold"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    budget_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("budgets.id"), index=True
    )
    threshold: Mapped[int] = mapped_column(Integer)  # 1-100, percent of budget
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
