"""
Daily order generation.

Expands every active customer's lunch/dinner bag-format template into priced
order items, one DailyOrder per driver per day. Order totals are always
re-derived from the full item list.
"""
import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.config import get_settings
from backoffice.exceptions import DuplicateGenerationError, NotFoundError, ValidationError
from backoffice.models.customer import Customer, CustomerPackage
from backoffice.models.daily_order import DailyOrder, OrderItem
from backoffice.services.bag_format import (
    calculate_nea_end_time,
    parse_bag_format,
    validate_and_parse_bag_format,
)
from backoffice.utils.validators import MEAL_TYPES, validate_order_status

logger = logging.getLogger(__name__)
settings = get_settings()


def _daily_order_options():
    return (
        selectinload(DailyOrder.driver),
        selectinload(DailyOrder.items).selectinload(OrderItem.customer),
        selectinload(DailyOrder.items).selectinload(OrderItem.category),
    )


def recalc_daily_order_totals(daily_order: DailyOrder) -> DailyOrder:
    """Re-derive the order's totals by summing every item"""
    total_veg = 0
    total_non_veg = 0
    total_amount = 0.0

    for item in daily_order.items:
        total_veg += item.veg_count
        total_non_veg += item.non_veg_count
        total_amount += item.total_amount

    daily_order.total_veg_food = total_veg
    daily_order.total_non_veg_food = total_non_veg
    daily_order.total_food = total_veg + total_non_veg
    daily_order.total_amount = total_amount
    return daily_order


def build_order_items(customer: Customer) -> list[OrderItem]:
    """One item per (meal, package); blank templates still yield zero-count items"""
    items = []
    for meal_type in MEAL_TYPES:
        bag_format = customer.daily_food_for(meal_type)
        parsed = parse_bag_format(bag_format)

        for package in customer.packages:
            items.append(OrderItem(
                customer_id=customer.id,
                category_id=package.category_id,
                meal_type=meal_type,
                bag_format=bag_format,
                non_veg_count=parsed.non_veg_count,
                veg_count=parsed.veg_count,
                total_count=parsed.total_count,
                unit_price=package.unit_price,
                total_amount=parsed.total_count * package.unit_price,
            ))
    return items


async def get_daily_order(db: AsyncSession, daily_order_id: int) -> DailyOrder:
    result = await db.execute(
        select(DailyOrder)
        .options(*_daily_order_options())
        .where(DailyOrder.id == daily_order_id)
        .execution_options(populate_existing=True)
    )
    daily_order = result.scalar_one_or_none()
    if not daily_order:
        raise NotFoundError("Daily order not found")
    return daily_order


async def list_daily_orders(
    db: AsyncSession,
    order_date: Optional[date] = None,
    driver_id: Optional[int] = None,
) -> list[DailyOrder]:
    query = select(DailyOrder).options(*_daily_order_options())
    if order_date:
        query = query.where(DailyOrder.date == order_date)
    if driver_id:
        query = query.where(DailyOrder.driver_id == driver_id)
    query = query.order_by(DailyOrder.date.desc(), DailyOrder.driver_id)

    result = await db.execute(query)
    return list(result.scalars().all())


async def generate_daily_orders(
    db: AsyncSession,
    order_date: date,
    nea_start_time: datetime,
) -> list[DailyOrder]:
    """Generate one DailyOrder per driver with active customers for the date"""
    existing = await db.execute(
        select(func.count(DailyOrder.id)).where(DailyOrder.date == order_date)
    )
    if (existing.scalar() or 0) > 0:
        raise DuplicateGenerationError("Daily orders already exist for this date")

    result = await db.execute(
        select(Customer)
        .options(selectinload(Customer.packages).selectinload(CustomerPackage.category))
        .where(Customer.is_active == True)
        .order_by(Customer.driver_id, Customer.id)
    )
    customers = result.scalars().all()

    customers_by_driver: dict[int, list[Customer]] = {}
    for customer in customers:
        customers_by_driver.setdefault(customer.driver_id, []).append(customer)

    nea_end_time = calculate_nea_end_time(nea_start_time, settings.NEA_DURATION_HOURS)

    daily_orders = []
    for driver_id, driver_customers in customers_by_driver.items():
        items = []
        for customer in driver_customers:
            items.extend(build_order_items(customer))

        daily_order = DailyOrder(
            date=order_date,
            driver_id=driver_id,
            items=items,
            nea_start_time=nea_start_time,
            nea_end_time=nea_end_time,
            status="pending",
        )
        recalc_daily_order_totals(daily_order)
        db.add(daily_order)
        daily_orders.append(daily_order)

    try:
        await db.commit()
    except IntegrityError:
        # A concurrent run inserted the same (date, driver) first
        await db.rollback()
        raise DuplicateGenerationError("Daily orders already exist for this date")

    logger.info(f"Generated {len(daily_orders)} daily order(s) for {order_date}")

    ids = [o.id for o in daily_orders]
    if not ids:
        return []
    result = await db.execute(
        select(DailyOrder)
        .options(*_daily_order_options())
        .where(DailyOrder.id.in_(ids))
        .order_by(DailyOrder.driver_id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def update_order_item(
    db: AsyncSession,
    daily_order_id: int,
    order_item_id: int,
    bag_format: str,
) -> DailyOrder:
    """Correct one item's bag format and re-derive the whole order's totals"""
    validation = validate_and_parse_bag_format(bag_format)
    if not validation.is_valid:
        raise ValidationError(validation.error)

    daily_order = await get_daily_order(db, daily_order_id)

    item = next((i for i in daily_order.items if i.id == order_item_id), None)
    if not item:
        raise NotFoundError("Order item not found")

    parsed = validation.parsed
    item.bag_format = bag_format
    item.non_veg_count = parsed.non_veg_count
    item.veg_count = parsed.veg_count
    item.total_count = parsed.total_count
    item.total_amount = parsed.total_count * item.unit_price

    recalc_daily_order_totals(daily_order)
    await db.commit()

    return await get_daily_order(db, daily_order_id)


async def update_order_status(db: AsyncSession, daily_order_id: int, status: str) -> DailyOrder:
    validate_order_status(status)
    daily_order = await get_daily_order(db, daily_order_id)
    daily_order.status = status
    await db.commit()
    return await get_daily_order(db, daily_order_id)


async def order_summary(
    db: AsyncSession,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> dict:
    """Counts and sums across daily orders, optionally within a date range"""
    query = select(
        func.count(DailyOrder.id).label("total_orders"),
        func.coalesce(func.sum(DailyOrder.total_veg_food), 0).label("total_veg_food"),
        func.coalesce(func.sum(DailyOrder.total_non_veg_food), 0).label("total_non_veg_food"),
        func.coalesce(func.sum(DailyOrder.total_food), 0).label("total_food"),
        func.coalesce(func.sum(DailyOrder.total_amount), 0).label("total_revenue"),
    )
    if start_date and end_date:
        query = query.where(DailyOrder.date >= start_date, DailyOrder.date <= end_date)

    row = (await db.execute(query)).one()
    return {
        "total_orders": int(row.total_orders or 0),
        "total_veg_food": int(row.total_veg_food or 0),
        "total_non_veg_food": int(row.total_non_veg_food or 0),
        "total_food": int(row.total_food or 0),
        "total_revenue": float(row.total_revenue or 0),
    }
