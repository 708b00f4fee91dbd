"""
Daily orders API endpoints
"""
from datetime import date, datetime
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from pydantic import BaseModel

from backoffice.database import get_db
from backoffice.models.daily_order import DailyOrder
from backoffice.services import order_generator
from backoffice.services.bag_format import format_bag_display

router = APIRouter()


class OrderItemResponse(BaseModel):
    id: int
    customer_id: int
    customer_name: Optional[str]
    category_id: int
    category_name: Optional[str]
    meal_type: str
    bag_format: str
    non_veg_count: int
    veg_count: int
    total_count: int
    unit_price: float
    total_amount: float


class DailyOrderResponse(BaseModel):
    id: int
    date: date
    driver_id: int
    driver_name: Optional[str]
    route: Optional[str]
    total_veg_food: int
    total_non_veg_food: int
    total_food: int
    total_display: str
    total_amount: float
    nea_start_time: Optional[datetime]
    nea_end_time: Optional[datetime]
    status: str
    items: List[OrderItemResponse]


class GenerateRequest(BaseModel):
    date: date
    nea_start_time: datetime


class UpdateItemRequest(BaseModel):
    bag_format: str


class StatusUpdate(BaseModel):
    status: str


def _serialize(order: DailyOrder) -> DailyOrderResponse:
    return DailyOrderResponse(
        id=order.id,
        date=order.date,
        driver_id=order.driver_id,
        driver_name=order.driver.name if order.driver else None,
        route=order.driver.route if order.driver else None,
        total_veg_food=order.total_veg_food,
        total_non_veg_food=order.total_non_veg_food,
        total_food=order.total_food,
        total_display=format_bag_display(order.total_non_veg_food, order.total_veg_food),
        total_amount=order.total_amount,
        nea_start_time=order.nea_start_time,
        nea_end_time=order.nea_end_time,
        status=order.status,
        items=[
            OrderItemResponse(
                id=i.id,
                customer_id=i.customer_id,
                customer_name=i.customer.name if i.customer else None,
                category_id=i.category_id,
                category_name=i.category.name if i.category else None,
                meal_type=i.meal_type,
                bag_format=i.bag_format,
                non_veg_count=i.non_veg_count,
                veg_count=i.veg_count,
                total_count=i.total_count,
                unit_price=i.unit_price,
                total_amount=i.total_amount,
            )
            for i in order.items
        ],
    )


@router.get("/")
async def list_daily_orders(
    order_date: Optional[date] = Query(None, alias="date"),
    driver_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    orders = await order_generator.list_daily_orders(db, order_date=order_date, driver_id=driver_id)
    return {"success": True, "data": [_serialize(o) for o in orders]}


@router.get("/summary")
async def get_order_summary(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    summary = await order_generator.order_summary(db, start_date, end_date)
    return {"success": True, "data": summary}


@router.get("/{daily_order_id}")
async def get_daily_order(daily_order_id: int, db: AsyncSession = Depends(get_db)):
    order = await order_generator.get_daily_order(db, daily_order_id)
    return {"success": True, "data": _serialize(order)}


@router.post("/generate", status_code=201)
async def generate_daily_orders(data: GenerateRequest, db: AsyncSession = Depends(get_db)):
    orders = await order_generator.generate_daily_orders(db, data.date, data.nea_start_time)
    return {
        "success": True,
        "data": [_serialize(o) for o in orders],
        "message": f"Generated {len(orders)} daily orders",
    }


@router.put("/{daily_order_id}/items/{order_item_id}")
async def update_order_item(
    daily_order_id: int,
    order_item_id: int,
    data: UpdateItemRequest,
    db: AsyncSession = Depends(get_db),
):
    order = await order_generator.update_order_item(db, daily_order_id, order_item_id, data.bag_format)
    return {
        "success": True,
        "data": _serialize(order),
        "message": "Order item updated successfully",
    }


@router.patch("/{daily_order_id}/status")
async def update_order_status(
    daily_order_id: int,
    data: StatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    order = await order_generator.update_order_status(db, daily_order_id, data.status)
    return {
        "success": True,
        "data": _serialize(order),
        "message": "Status updated successfully",
    }
