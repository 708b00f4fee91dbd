"""
Analytics API endpoints - daily, range, customer monthly and profit figures
"""
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Optional
from pydantic import BaseModel

from backoffice.config import get_settings
from backoffice.database import get_db
from backoffice.services import calculation_engine
from backoffice.services.bag_format import validate_and_parse_bag_format

router = APIRouter()
settings = get_settings()


class BagFormatRequest(BaseModel):
    bag_format: Any = None


@router.get("/dashboard")
async def get_dashboard(db: AsyncSession = Depends(get_db)):
    snapshot = await calculation_engine.dashboard_snapshot(db, date.today())
    return {"success": True, "data": snapshot}


@router.get("/daily")
async def get_daily_totals(
    day: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
):
    totals = await calculation_engine.calculate_daily_totals(db, day or date.today())
    return {"success": True, "data": totals}


@router.get("/range")
async def get_range_totals(
    start_date: date,
    end_date: date,
    db: AsyncSession = Depends(get_db),
):
    totals = await calculation_engine.calculate_range_totals(db, start_date, end_date)
    return {"success": True, "data": totals}


@router.get("/customer/{customer_id}/monthly")
async def get_customer_monthly(
    customer_id: int,
    start_date: date,
    end_date: date,
    tax_rate: float = settings.DEFAULT_TAX_RATE,
    db: AsyncSession = Depends(get_db),
):
    calc = await calculation_engine.calculate_customer_monthly(
        db, customer_id, start_date, end_date, tax_rate=tax_rate
    )
    if calc is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return {"success": True, "data": calc}


@router.get("/profit")
async def get_profit_analysis(
    start_date: date,
    end_date: date,
    cost_per_meal: float = settings.DEFAULT_COST_PER_MEAL,
    db: AsyncSession = Depends(get_db),
):
    analysis = await calculation_engine.calculate_profit_analysis(
        db, start_date, end_date, estimated_cost_per_meal=cost_per_meal
    )
    return {"success": True, "data": analysis}


@router.post("/validate-bag-format")
async def validate_bag_format(data: BagFormatRequest):
    validation = validate_and_parse_bag_format(data.bag_format)
    return {"success": validation.is_valid, "data": validation.model_dump()}
