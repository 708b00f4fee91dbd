"""
Payments API endpoints - record, list and audit trail
"""
from datetime import date, datetime
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional, Literal
from pydantic import BaseModel, Field

from backoffice.database import get_db
from backoffice.services import payment_service

router = APIRouter()


class AllocationResponse(BaseModel):
    id: int
    bill_id: int
    amount: float

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: int
    entity_type: str
    entity_id: int
    date: date
    amount: float
    method: str
    reference: Optional[str]
    notes: Optional[str]
    allocated_amount: float
    unallocated_amount: float
    allocations: List[AllocationResponse] = []

    class Config:
        from_attributes = True


class AuditEntryResponse(BaseModel):
    bill_id: int
    bill_number: str
    allocated_amount: float
    previous_bill_balance: float
    new_bill_balance: float
    bill_status: str

    class Config:
        from_attributes = True


class AuditResponse(BaseModel):
    id: int
    payment_id: int
    entity_type: str
    entity_id: int
    payment_amount: float
    payment_method: str
    payment_date: date
    processed_by: Optional[str]
    notes: Optional[str]
    created_at: Optional[datetime]
    entries: List[AuditEntryResponse] = []

    class Config:
        from_attributes = True


class PaymentCreate(BaseModel):
    entity_type: Literal["customer", "company"]
    entity_id: int
    amount: float = Field(gt=0)
    payment_date: date = Field(alias="date")
    method: str = "cash"
    reference: Optional[str] = None
    bill_id: Optional[int] = None
    notes: Optional[str] = None
    processed_by: Optional[str] = None

    class Config:
        populate_by_name = True


@router.post("/", status_code=201)
async def record_payment(data: PaymentCreate, db: AsyncSession = Depends(get_db)):
    result = await payment_service.record_payment(
        db,
        entity_type=data.entity_type,
        entity_id=data.entity_id,
        amount=data.amount,
        payment_date=data.payment_date,
        method=data.method,
        reference=data.reference,
        bill_id=data.bill_id,
        notes=data.notes,
        processed_by=data.processed_by,
    )
    return {
        "success": True,
        "data": {
            "payment": PaymentResponse.model_validate(result.payment),
            "audit_id": result.audit.id if result.audit else None,
        },
        "message": result.message,
    }


@router.get("/")
async def list_payments(
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    payments = await payment_service.list_payments(db, entity_type, entity_id)
    return {"success": True, "data": [PaymentResponse.model_validate(p) for p in payments]}


@router.get("/audit-trail")
async def list_audit_trail(
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    payment_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    audits = await payment_service.list_payment_audits(db, entity_type, entity_id, payment_id)
    return {"success": True, "data": [AuditResponse.model_validate(a) for a in audits]}
