"""Monthly income / expense statistics for one user."""
from datetime import date
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.bill import Bill
from app.models.category import Category
from app.services.budget_engine import month_range


def _sum_of(entry_type: str):
    return func.coalesce(
        func.sum(case((Bill.type == entry_type, Bill.amount), else_=0)), 0
    )


async def monthly_stats(db: AsyncSession, user_id: int, year: int, month: int) -> dict:
    """
    Totals for one calendar month.

    Returns a dict with year, month, total_income, total_expense, balance,
    ``categories`` (per-category totals, largest first) and ``daily``
    (per-day income/expense/balance in date order).
    """
    start, end = month_range(date(year, month, 1))
    in_month = (Bill.user_id == user_id, Bill.date >= start, Bill.date <= end)

    totals = (
        await db.execute(select(_sum_of("income"), _sum_of("expense")).where(*in_month))
    ).one()
    total_income = Decimal(str(totals[0] or 0))
    total_expense = Decimal(str(totals[1] or 0))

    category_total = func.sum(Bill.amount).label("total")
    category_rows = (
        await db.execute(
            select(Category.id, Category.name, Category.type, Category.icon, category_total)
            .join(Bill, Bill.category_id == Category.id)
            .where(*in_month)
            .group_by(Category.id, Category.name, Category.type, Category.icon)
            .order_by(category_total.desc(), Category.name)
        )
    ).all()

    daily_rows = (
        await db.execute(
            select(Bill.date, _sum_of("income"), _sum_of("expense"))
            .where(*in_month)
            .group_by(Bill.date)
            .order_by(Bill.date)
        )
    ).all()

    daily = []
    for day, income, expense in daily_rows:
        income = Decimal(str(income or 0))
        expense = Decimal(str(expense or 0))
        daily.append({"date": day, "income": income, "expense": expense, "balance": income - expense})

    return {
        "year": year,
        "month": month,
        "total_income": total_income,
        "total_expense": total_expense,
        "balance": total_income - total_expense,
        "categories": [
            {"id": cid, "name": name, "type": ctype, "icon": icon, "total": Decimal(str(total))}
            for cid, name, ctype, icon, total in category_rows
        ],
        "daily": daily,
    }
