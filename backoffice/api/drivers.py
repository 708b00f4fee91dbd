"""
Drivers API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
from pydantic import BaseModel

from backoffice.database import get_db
from backoffice.models.driver import Driver

router = APIRouter()


class DriverResponse(BaseModel):
    id: int
    name: str
    phone: Optional[str]
    email: Optional[str]
    route: str
    is_active: bool

    class Config:
        from_attributes = True


class DriverCreate(BaseModel):
    name: str
    route: str
    phone: Optional[str] = None
    email: Optional[str] = None


class DriverUpdate(BaseModel):
    name: Optional[str] = None
    route: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    is_active: Optional[bool] = None


async def _get_driver(db: AsyncSession, driver_id: int) -> Driver:
    result = await db.execute(select(Driver).where(Driver.id == driver_id))
    driver = result.scalar_one_or_none()
    if not driver:
        raise HTTPException(status_code=404, detail="Driver not found")
    return driver


@router.get("/")
async def list_drivers(
    active_only: bool = True,
    db: AsyncSession = Depends(get_db),
):
    query = select(Driver)
    if active_only:
        query = query.where(Driver.is_active == True)
    query = query.order_by(Driver.name)

    result = await db.execute(query)
    drivers = result.scalars().all()
    return {"success": True, "data": [DriverResponse.model_validate(d) for d in drivers]}


@router.get("/{driver_id}")
async def get_driver(driver_id: int, db: AsyncSession = Depends(get_db)):
    driver = await _get_driver(db, driver_id)
    return {"success": True, "data": DriverResponse.model_validate(driver)}


@router.post("/", status_code=201)
async def create_driver(data: DriverCreate, db: AsyncSession = Depends(get_db)):
    driver = Driver(**data.model_dump(), is_active=True)
    db.add(driver)
    await db.commit()
    await db.refresh(driver)
    return {
        "success": True,
        "data": DriverResponse.model_validate(driver),
        "message": "Driver created successfully",
    }


@router.put("/{driver_id}")
async def update_driver(
    driver_id: int,
    data: DriverUpdate,
    db: AsyncSession = Depends(get_db),
):
    driver = await _get_driver(db, driver_id)
    for key, value in data.model_dump(exclude_none=True).items():
        setattr(driver, key, value)

    await db.commit()
    await db.refresh(driver)
    return {
        "success": True,
        "data": DriverResponse.model_validate(driver),
        "message": "Driver updated successfully",
    }


@router.delete("/{driver_id}")
async def delete_driver(driver_id: int, db: AsyncSession = Depends(get_db)):
    driver = await _get_driver(db, driver_id)
    driver.is_active = False
    await db.commit()
    return {"success": True, "message": "Driver deactivated"}
