"""
Customers API endpoints, including the daily-food template edits
"""
import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import List, Optional, Literal
from pydantic import BaseModel, Field

from backoffice.database import get_db
from backoffice.models.company import Company
from backoffice.models.customer import Customer, CustomerPackage, derive_billing_type
from backoffice.models.driver import Driver
from backoffice.models.food_category import FoodCategory
from backoffice.services.bag_format import validate_daily_food_value

logger = logging.getLogger(__name__)

router = APIRouter()

NULLABLE_FIELDS = {"phone", "email", "company_id", "end_date"}


class PackageIn(BaseModel):
    category_id: int
    unit_price: float = Field(ge=0)


class PackageResponse(BaseModel):
    id: int
    category_id: int
    category_name: Optional[str] = None
    unit_price: float


class CustomerResponse(BaseModel):
    id: int
    name: str
    address: str
    phone: Optional[str]
    email: Optional[str]
    company_id: Optional[int]
    driver_id: int
    driver_name: Optional[str] = None
    daily_food_lunch: str
    daily_food_dinner: str
    billing_type: str
    start_date: date
    end_date: Optional[date]
    is_active: bool
    packages: List[PackageResponse] = []


class CustomerCreate(BaseModel):
    name: str
    address: str
    driver_id: int
    start_date: date
    phone: Optional[str] = None
    email: Optional[str] = None
    company_id: Optional[int] = None
    billing_type: Optional[Literal["individual", "company"]] = None
    end_date: Optional[date] = None
    daily_food_lunch: str = ""
    daily_food_dinner: str = ""
    packages: List[PackageIn] = []


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    driver_id: Optional[int] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    company_id: Optional[int] = None
    billing_type: Optional[Literal["individual", "company"]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    daily_food_lunch: Optional[str] = None
    daily_food_dinner: Optional[str] = None
    is_active: Optional[bool] = None
    packages: Optional[List[PackageIn]] = None


class DailyFoodUpdate(BaseModel):
    lunch: Optional[str] = None
    dinner: Optional[str] = None


class BulkDailyFoodEntry(BaseModel):
    customer_id: int
    meal_type: Literal["lunch", "dinner"]
    bag_format: str = ""


class BulkDailyFoodUpdate(BaseModel):
    updates: List[BulkDailyFoodEntry]


def _serialize(customer: Customer) -> CustomerResponse:
    return CustomerResponse(
        id=customer.id,
        name=customer.name,
        address=customer.address,
        phone=customer.phone,
        email=customer.email,
        company_id=customer.company_id,
        driver_id=customer.driver_id,
        driver_name=customer.driver.name if customer.driver else None,
        daily_food_lunch=customer.daily_food_lunch or "",
        daily_food_dinner=customer.daily_food_dinner or "",
        billing_type=customer.billing_type,
        start_date=customer.start_date,
        end_date=customer.end_date,
        is_active=customer.is_active,
        packages=[
            PackageResponse(
                id=p.id,
                category_id=p.category_id,
                category_name=p.category.name if p.category else None,
                unit_price=p.unit_price,
            )
            for p in customer.packages
        ],
    )


def _customer_query():
    return select(Customer).options(
        selectinload(Customer.driver),
        selectinload(Customer.packages).selectinload(CustomerPackage.category),
    )


async def _get_customer(db: AsyncSession, customer_id: int) -> Customer:
    result = await db.execute(
        _customer_query()
        .where(Customer.id == customer_id)
        .execution_options(populate_existing=True)
    )
    customer = result.scalar_one_or_none()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


async def _check_references(
    db: AsyncSession,
    driver_id: Optional[int] = None,
    company_id: Optional[int] = None,
    packages: Optional[List[PackageIn]] = None,
):
    if driver_id is not None and not await db.get(Driver, driver_id):
        raise HTTPException(status_code=400, detail="Driver not found")
    if company_id is not None and not await db.get(Company, company_id):
        raise HTTPException(status_code=400, detail="Company not found")
    for package in packages or []:
        if not await db.get(FoodCategory, package.category_id):
            raise HTTPException(status_code=400, detail=f"Food category {package.category_id} not found")


@router.get("/")
async def list_customers(
    active_only: bool = True,
    company_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    query = _customer_query()
    if active_only:
        query = query.where(Customer.is_active == True)
    if company_id:
        query = query.where(Customer.company_id == company_id)
    query = query.order_by(Customer.name)

    result = await db.execute(query)
    return {"success": True, "data": [_serialize(c) for c in result.scalars().all()]}


@router.get("/driver/{driver_id}")
async def list_customers_by_driver(driver_id: int, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        _customer_query()
        .where(Customer.driver_id == driver_id, Customer.is_active == True)
        .order_by(Customer.name)
    )
    return {"success": True, "data": [_serialize(c) for c in result.scalars().all()]}


@router.patch("/bulk-update-daily-food")
async def bulk_update_daily_food(
    data: BulkDailyFoodUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Apply many template edits at once; any invalid entry rejects the whole batch"""
    if not data.updates:
        raise HTTPException(status_code=400, detail="Updates array is required")

    customer_ids = {u.customer_id for u in data.updates}
    result = await db.execute(select(Customer).where(Customer.id.in_(customer_ids)))
    customers = {c.id: c for c in result.scalars().all()}

    changes = []
    for update in data.updates:
        customer = customers.get(update.customer_id)
        if not customer:
            raise HTTPException(status_code=404, detail=f"Customer {update.customer_id} not found")
        value = validate_daily_food_value(
            update.bag_format, label=f"bag format for customer {update.customer_id}"
        )
        changes.append((customer, update.meal_type, value))

    for customer, meal_type, value in changes:
        customer.set_daily_food(meal_type, value)

    await db.commit()
    logger.info(f"Bulk daily-food update: {len(data.updates)} change(s)")
    return {
        "success": True,
        "data": {"updated": len(data.updates)},
        "message": f"Updated {len(data.updates)} daily food entries",
    }


@router.get("/{customer_id}")
async def get_customer(customer_id: int, db: AsyncSession = Depends(get_db)):
    customer = await _get_customer(db, customer_id)
    return {"success": True, "data": _serialize(customer)}


@router.post("/", status_code=201)
async def create_customer(data: CustomerCreate, db: AsyncSession = Depends(get_db)):
    await _check_references(db, data.driver_id, data.company_id, data.packages)

    customer = Customer(
        name=data.name,
        address=data.address,
        phone=data.phone,
        email=data.email,
        driver_id=data.driver_id,
        company_id=data.company_id,
        billing_type=derive_billing_type(data.company_id, data.billing_type),
        start_date=data.start_date,
        end_date=data.end_date,
        daily_food_lunch=validate_daily_food_value(data.daily_food_lunch, "lunch bag format"),
        daily_food_dinner=validate_daily_food_value(data.daily_food_dinner, "dinner bag format"),
        is_active=True,
        packages=[
            CustomerPackage(category_id=p.category_id, unit_price=p.unit_price)
            for p in data.packages
        ],
    )
    db.add(customer)
    await db.commit()

    customer = await _get_customer(db, customer.id)
    return {
        "success": True,
        "data": _serialize(customer),
        "message": "Customer created successfully",
    }


@router.put("/{customer_id}")
async def update_customer(
    customer_id: int,
    data: CustomerUpdate,
    db: AsyncSession = Depends(get_db),
):
    customer = await _get_customer(db, customer_id)
    await _check_references(db, data.driver_id, data.company_id, data.packages)

    updates = data.model_dump(exclude_unset=True, exclude={"packages"})
    # An explicit null clears optional fields only
    updates = {
        key: value for key, value in updates.items()
        if value is not None or key in NULLABLE_FIELDS
    }
    if "daily_food_lunch" in updates:
        updates["daily_food_lunch"] = validate_daily_food_value(updates["daily_food_lunch"], "lunch bag format")
    if "daily_food_dinner" in updates:
        updates["daily_food_dinner"] = validate_daily_food_value(updates["daily_food_dinner"], "dinner bag format")
    if "company_id" in updates and "billing_type" not in updates:
        updates["billing_type"] = derive_billing_type(updates["company_id"])

    for key, value in updates.items():
        setattr(customer, key, value)

    if data.packages is not None:
        customer.packages = [
            CustomerPackage(category_id=p.category_id, unit_price=p.unit_price)
            for p in data.packages
        ]

    await db.commit()
    customer = await _get_customer(db, customer_id)
    return {
        "success": True,
        "data": _serialize(customer),
        "message": "Customer updated successfully",
    }


@router.patch("/{customer_id}/daily-food")
async def update_daily_food(
    customer_id: int,
    data: DailyFoodUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Edit the lunch and/or dinner template; an empty string clears the meal"""
    customer = await _get_customer(db, customer_id)

    lunch = validate_daily_food_value(data.lunch, "lunch bag format") if data.lunch is not None else None
    dinner = validate_daily_food_value(data.dinner, "dinner bag format") if data.dinner is not None else None

    if lunch is not None:
        customer.daily_food_lunch = lunch
    if dinner is not None:
        customer.daily_food_dinner = dinner

    await db.commit()
    customer = await _get_customer(db, customer_id)
    return {
        "success": True,
        "data": _serialize(customer),
        "message": "Daily food updated successfully",
    }


@router.delete("/{customer_id}")
async def delete_customer(customer_id: int, db: AsyncSession = Depends(get_db)):
    customer = await _get_customer(db, customer_id)
    customer.is_active = False
    await db.commit()
    return {"success": True, "message": "Customer deactivated"}
