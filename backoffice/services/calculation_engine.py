"""
Aggregation engine: daily, range, per-customer monthly and profit figures.

Daily and range figures trust the totals stored on each DailyOrder; the
customer monthly breakdown walks the individual order items.
"""
import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.models.bill import Bill
from backoffice.models.company import Company
from backoffice.models.customer import Customer, CustomerPackage
from backoffice.models.daily_order import DailyOrder, OrderItem
from backoffice.models.driver import Driver
from backoffice.utils.helpers import round2
from backoffice.utils.validators import validate_date_range

logger = logging.getLogger(__name__)

EMPTY_SUMMARY = {
    "total_orders": 0,
    "total_veg_food": 0,
    "total_non_veg_food": 0,
    "total_food": 0,
    "total_revenue": 0.0,
    "average_order_value": 0.0,
}


def calculate_working_days(start_date: date, end_date: date) -> int:
    """Mon-Fri days in the inclusive range"""
    count = 0
    current = start_date
    while current <= end_date:
        if current.weekday() < 5:
            count += 1
        current += timedelta(days=1)
    return count


async def calculate_daily_totals(db: AsyncSession, day: date) -> Dict[str, Any]:
    """Totals across all drivers for one calendar day"""
    result = await db.execute(
        select(DailyOrder)
        .options(selectinload(DailyOrder.driver))
        .where(DailyOrder.date == day)
        .order_by(DailyOrder.driver_id)
    )
    daily_orders = result.scalars().all()

    total_veg = 0
    total_non_veg = 0
    total_amount = 0.0
    driver_breakdown = []

    for order in daily_orders:
        total_veg += order.total_veg_food
        total_non_veg += order.total_non_veg_food
        total_amount += order.total_amount

        driver_breakdown.append({
            "driver_id": order.driver_id,
            "driver_name": order.driver.name if order.driver else None,
            "route": order.driver.route if order.driver else None,
            "veg_count": order.total_veg_food,
            "non_veg_count": order.total_non_veg_food,
            "total_count": order.total_food,
            "total_amount": order.total_amount,
        })

    return {
        "date": day.isoformat(),
        "total_veg_food": total_veg,
        "total_non_veg_food": total_non_veg,
        "total_food": total_veg + total_non_veg,
        "total_amount": total_amount,
        "driver_breakdown": driver_breakdown,
    }


async def calculate_range_totals(
    db: AsyncSession, start_date: date, end_date: date
) -> Dict[str, Any]:
    """Summary row plus per-driver rows sorted by revenue, for a date range"""
    validate_date_range(start_date, end_date)
    in_range = (DailyOrder.date >= start_date, DailyOrder.date <= end_date)

    summary_row = (await db.execute(
        select(
            func.count(DailyOrder.id).label("total_orders"),
            func.sum(DailyOrder.total_veg_food).label("total_veg_food"),
            func.sum(DailyOrder.total_non_veg_food).label("total_non_veg_food"),
            func.sum(DailyOrder.total_food).label("total_food"),
            func.sum(DailyOrder.total_amount).label("total_revenue"),
            func.avg(DailyOrder.total_amount).label("average_order_value"),
        ).where(*in_range)
    )).one()

    if not summary_row.total_orders:
        summary = dict(EMPTY_SUMMARY)
    else:
        summary = {
            "total_orders": int(summary_row.total_orders),
            "total_veg_food": int(summary_row.total_veg_food or 0),
            "total_non_veg_food": int(summary_row.total_non_veg_food or 0),
            "total_food": int(summary_row.total_food or 0),
            "total_revenue": float(summary_row.total_revenue or 0),
            "average_order_value": float(summary_row.average_order_value or 0),
        }

    total_revenue = func.sum(DailyOrder.total_amount).label("total_revenue")
    driver_rows = (await db.execute(
        select(
            DailyOrder.driver_id,
            Driver.name.label("driver_name"),
            Driver.route.label("route"),
            func.count(DailyOrder.id).label("total_orders"),
            func.sum(DailyOrder.total_veg_food).label("total_veg_food"),
            func.sum(DailyOrder.total_non_veg_food).label("total_non_veg_food"),
            func.sum(DailyOrder.total_food).label("total_food"),
            total_revenue,
        )
        .join(Driver, Driver.id == DailyOrder.driver_id)
        .where(*in_range)
        .group_by(DailyOrder.driver_id, Driver.name, Driver.route)
        .order_by(total_revenue.desc())
    )).all()

    driver_summary = [
        {
            "driver_id": r.driver_id,
            "driver_name": r.driver_name,
            "route": r.route,
            "total_orders": int(r.total_orders),
            "total_veg_food": int(r.total_veg_food or 0),
            "total_non_veg_food": int(r.total_non_veg_food or 0),
            "total_food": int(r.total_food or 0),
            "total_revenue": float(r.total_revenue or 0),
        }
        for r in driver_rows
    ]

    return {"summary": summary, "driver_summary": driver_summary}


async def calculate_customer_monthly(
    db: AsyncSession,
    customer_id: int,
    start_date: date,
    end_date: date,
    tax_rate: float = 0.18,
) -> Optional[Dict[str, Any]]:
    """
    Per-category quantities and amounts for one customer over a date range.

    Returns None when the customer does not exist or the calculation fails;
    callers treat that as "not found".
    """
    validate_date_range(start_date, end_date)
    try:
        result = await db.execute(
            select(Customer)
            .options(
                selectinload(Customer.driver),
                selectinload(Customer.packages).selectinload(CustomerPackage.category),
            )
            .where(Customer.id == customer_id)
        )
        customer = result.scalar_one_or_none()
        if not customer:
            logger.warning(f"Monthly calculation skipped: customer {customer_id} not found")
            return None

        items_result = await db.execute(
            select(OrderItem)
            .join(DailyOrder, DailyOrder.id == OrderItem.daily_order_id)
            .where(
                OrderItem.customer_id == customer_id,
                DailyOrder.date >= start_date,
                DailyOrder.date <= end_date,
            )
        )
        items = items_result.scalars().all()

        package_breakdown = []
        subtotal = 0.0
        for package in customer.packages:
            category_items = [i for i in items if i.category_id == package.category_id]
            total_quantity = sum(i.total_count for i in category_items)
            total_amount = sum(i.total_amount for i in category_items)

            package_breakdown.append({
                "category_id": package.category_id,
                "category_name": package.category.name if package.category else None,
                "unit_price": package.unit_price,
                "total_quantity": total_quantity,
                "total_amount": total_amount,
            })
            subtotal += total_amount

        total_veg = sum(i.veg_count for i in items)
        total_non_veg = sum(i.non_veg_count for i in items)

        tax = subtotal * tax_rate
        return {
            "customer_id": customer.id,
            "customer_name": customer.name,
            "driver_id": customer.driver_id,
            "driver_name": customer.driver.name if customer.driver else None,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "total_days": calculate_working_days(start_date, end_date),
            "package_breakdown": package_breakdown,
            "total_veg_food": total_veg,
            "total_non_veg_food": total_non_veg,
            "total_food": total_veg + total_non_veg,
            "subtotal": subtotal,
            "tax": tax,
            "total_amount": subtotal + tax,
        }
    except Exception as e:
        logger.error(f"Error calculating customer monthly for {customer_id}: {e}")
        return None


async def calculate_profit_analysis(
    db: AsyncSession,
    start_date: date,
    end_date: date,
    estimated_cost_per_meal: float = 25,
) -> Dict[str, Any]:
    """Gross profit from revenue against an estimated cost per meal"""
    totals = await calculate_range_totals(db, start_date, end_date)
    summary = totals["summary"]

    total_revenue = summary["total_revenue"]
    total_cost = summary["total_food"] * estimated_cost_per_meal
    gross_profit = total_revenue - total_cost
    profit_margin = (gross_profit / total_revenue) * 100 if total_revenue > 0 else 0

    return {
        "total_revenue": total_revenue,
        "total_food": summary["total_food"],
        "estimated_cost_per_meal": estimated_cost_per_meal,
        "total_cost": total_cost,
        "gross_profit": gross_profit,
        "profit_margin": round2(profit_margin),
    }


async def dashboard_snapshot(db: AsyncSession, today: date) -> Dict[str, Any]:
    """Headline counts for the back-office landing page"""
    customers = await db.execute(
        select(func.count(Customer.id)).where(Customer.is_active == True)
    )
    drivers = await db.execute(
        select(func.count(Driver.id)).where(Driver.is_active == True)
    )
    companies = await db.execute(
        select(func.count(Company.id)).where(Company.is_active == True)
    )
    outstanding = await db.execute(
        select(
            func.count(Bill.id),
            func.coalesce(func.sum(Bill.balance_amount), 0),
        ).where(Bill.status.in_(["unpaid", "partial"]))
    )
    open_bills, outstanding_balance = outstanding.one()

    return {
        "active_customers": customers.scalar() or 0,
        "active_drivers": drivers.scalar() or 0,
        "active_companies": companies.scalar() or 0,
        "today": await calculate_daily_totals(db, today),
        "open_bills": open_bills or 0,
        "outstanding_balance": round2(outstanding_balance or 0),
    }
