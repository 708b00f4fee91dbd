"""
Companies API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional
from pydantic import BaseModel

from backoffice.database import get_db
from backoffice.models.company import Company
from backoffice.models.customer import Customer

router = APIRouter()


class CompanyResponse(BaseModel):
    id: int
    name: str
    address: str
    phone: Optional[str]
    email: Optional[str]
    contact_person: Optional[str]
    is_active: bool

    class Config:
        from_attributes = True


class CompanyCreate(BaseModel):
    name: str
    address: str
    phone: Optional[str] = None
    email: Optional[str] = None
    contact_person: Optional[str] = None


class CompanyUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    contact_person: Optional[str] = None
    is_active: Optional[bool] = None


class CompanyCustomerResponse(BaseModel):
    id: int
    name: str
    driver_id: int
    billing_type: str
    daily_food_lunch: str
    daily_food_dinner: str
    is_active: bool

    class Config:
        from_attributes = True


async def _get_company(db: AsyncSession, company_id: int) -> Company:
    result = await db.execute(select(Company).where(Company.id == company_id))
    company = result.scalar_one_or_none()
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    return company


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
    """Company names are unique ignoring case"""
    query = select(Company.id).where(func.lower(Company.name) == name.strip().lower())
    if exclude_id:
        query = query.where(Company.id != exclude_id)
    result = await db.execute(query)
    return result.first() is not None


@router.get("/")
async def list_companies(
    active_only: bool = False,
    db: AsyncSession = Depends(get_db),
):
    query = select(Company)
    if active_only:
        query = query.where(Company.is_active == True)
    query = query.order_by(Company.name)

    result = await db.execute(query)
    return {
        "success": True,
        "data": [CompanyResponse.model_validate(c) for c in result.scalars().all()],
    }


@router.get("/{company_id}")
async def get_company(company_id: int, db: AsyncSession = Depends(get_db)):
    company = await _get_company(db, company_id)
    return {"success": True, "data": CompanyResponse.model_validate(company)}


@router.get("/{company_id}/customers")
async def get_company_customers(company_id: int, db: AsyncSession = Depends(get_db)):
    await _get_company(db, company_id)
    result = await db.execute(
        select(Customer)
        .where(Customer.company_id == company_id, Customer.is_active == True)
        .order_by(Customer.name)
    )
    return {
        "success": True,
        "data": [CompanyCustomerResponse.model_validate(c) for c in result.scalars().all()],
    }


@router.post("/", status_code=201)
async def create_company(data: CompanyCreate, db: AsyncSession = Depends(get_db)):
    if await _name_taken(db, data.name):
        raise HTTPException(status_code=400, detail="Company with this name already exists")

    company = Company(**{**data.model_dump(), "name": data.name.strip()}, is_active=True)
    db.add(company)
    await db.commit()
    await db.refresh(company)
    return {
        "success": True,
        "data": CompanyResponse.model_validate(company),
        "message": "Company created successfully",
    }


@router.put("/{company_id}")
async def update_company(
    company_id: int,
    data: CompanyUpdate,
    db: AsyncSession = Depends(get_db),
):
    company = await _get_company(db, company_id)
    if data.name and await _name_taken(db, data.name, exclude_id=company_id):
        raise HTTPException(status_code=400, detail="Company with this name already exists")

    for key, value in data.model_dump(exclude_none=True).items():
        setattr(company, key, value)

    await db.commit()
    await db.refresh(company)
    return {
        "success": True,
        "data": CompanyResponse.model_validate(company),
        "message": "Company updated successfully",
    }


@router.delete("/{company_id}")
async def delete_company(company_id: int, db: AsyncSession = Depends(get_db)):
    company = await _get_company(db, company_id)
    company.is_active = False
    await db.commit()
    return {"success": True, "message": "Company deactivated"}
