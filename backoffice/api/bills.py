"""
Bills API endpoints - generation, queries and ledger
"""
from datetime import date, datetime
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, List, Optional, Literal
from pydantic import BaseModel, Field

from backoffice.database import get_db
from backoffice.models.bill import Bill
from backoffice.services import billing_service

router = APIRouter()


class BillItemResponse(BaseModel):
    id: int
    category_id: int
    category_name: str
    unit_price: float
    quantity: int
    amount: float

    class Config:
        from_attributes = True


class BillResponse(BaseModel):
    id: int
    number: str
    entity_type: str
    entity_id: int
    entity_name: Optional[str] = None
    period_year: int
    period_month: int
    start_date: date
    end_date: date
    subtotal: float
    tax: float
    total_amount: float
    paid_amount: float
    balance_amount: float
    status: str
    due_date: Optional[date]
    generated_at: datetime
    managed_by: str
    parent_bill_id: Optional[int]
    is_consolidated: bool
    items: List[BillItemResponse] = []

    class Config:
        from_attributes = True


class GenerateBillsRequest(BaseModel):
    year: int = Field(ge=2000)
    month: int = Field(ge=1, le=12)


class GenerateEntityBillRequest(GenerateBillsRequest):
    entity_type: Literal["customer", "company"]
    entity_id: int


def _serialize(bill: Bill, names: Optional[Dict[tuple, str]] = None) -> BillResponse:
    response = BillResponse.model_validate(bill)
    if names:
        response.entity_name = names.get((bill.entity_type, bill.entity_id))
    return response


@router.post("/generate")
async def generate_monthly_bills(data: GenerateBillsRequest, db: AsyncSession = Depends(get_db)):
    batch = await billing_service.generate_monthly_bills(db, data.year, data.month)
    names = await billing_service.entity_names(db, batch.bills)
    return {
        "success": True,
        "data": {
            "bills": [_serialize(b, names) for b in batch.bills],
            "skipped": batch.skipped,
        },
        "message": f"Generated {len(batch.bills)} bills",
    }


@router.post("/generate/entity")
async def generate_entity_bill(data: GenerateEntityBillRequest, db: AsyncSession = Depends(get_db)):
    bill = await billing_service.generate_bill_for_entity(
        db, data.entity_type, data.entity_id, data.year, data.month
    )
    names = await billing_service.entity_names(db, [bill])
    return {
        "success": True,
        "data": _serialize(bill, names),
        "message": f"Bill {bill.number} generated",
    }


@router.get("/")
async def list_bills(
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    bills = await billing_service.list_bills(db, entity_type, entity_id, year, month, status)
    names = await billing_service.entity_names(db, bills)
    return {"success": True, "data": [_serialize(b, names) for b in bills]}


@router.get("/ledger")
async def get_ledger(
    entity_type: str,
    entity_id: int,
    db: AsyncSession = Depends(get_db),
):
    entries = await billing_service.get_ledger(db, entity_type, entity_id)
    return {"success": True, "data": entries}


@router.get("/linked")
async def list_bills_with_linked(
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    include_linked: bool = False,
    db: AsyncSession = Depends(get_db),
):
    bills = await billing_service.list_bills_with_linked(db, entity_type, entity_id, include_linked)
    names = await billing_service.entity_names(db, bills)
    return {"success": True, "data": [_serialize(b, names) for b in bills]}


@router.get("/{bill_id}")
async def get_bill(bill_id: int, db: AsyncSession = Depends(get_db)):
    bill = await billing_service.get_bill(db, bill_id)
    names = await billing_service.entity_names(db, [bill])
    return {"success": True, "data": _serialize(bill, names)}
