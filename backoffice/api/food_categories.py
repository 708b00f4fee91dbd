"""
Food categories API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional
from pydantic import BaseModel

from backoffice.database import get_db
from backoffice.models.food_category import FoodCategory

router = APIRouter()


class FoodCategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    is_active: bool

    class Config:
        from_attributes = True


class FoodCategoryCreate(BaseModel):
    name: str
    description: Optional[str] = None


class FoodCategoryUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


async def _get_category(db: AsyncSession, category_id: int) -> FoodCategory:
    result = await db.execute(select(FoodCategory).where(FoodCategory.id == category_id))
    category = result.scalar_one_or_none()
    if not category:
        raise HTTPException(status_code=404, detail="Food category not found")
    return category


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
    query = select(FoodCategory.id).where(func.lower(FoodCategory.name) == name.strip().lower())
    if exclude_id:
        query = query.where(FoodCategory.id != exclude_id)
    result = await db.execute(query)
    return result.first() is not None


@router.get("/")
async def list_food_categories(
    active_only: bool = True,
    db: AsyncSession = Depends(get_db),
):
    query = select(FoodCategory)
    if active_only:
        query = query.where(FoodCategory.is_active == True)
    query = query.order_by(FoodCategory.name)

    result = await db.execute(query)
    return {
        "success": True,
        "data": [FoodCategoryResponse.model_validate(c) for c in result.scalars().all()],
    }


@router.get("/{category_id}")
async def get_food_category(category_id: int, db: AsyncSession = Depends(get_db)):
    category = await _get_category(db, category_id)
    return {"success": True, "data": FoodCategoryResponse.model_validate(category)}


@router.post("/", status_code=201)
async def create_food_category(data: FoodCategoryCreate, db: AsyncSession = Depends(get_db)):
    if await _name_taken(db, data.name):
        raise HTTPException(status_code=400, detail="Food category with this name already exists")

    category = FoodCategory(name=data.name.strip(), description=data.description, is_active=True)
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return {
        "success": True,
        "data": FoodCategoryResponse.model_validate(category),
        "message": "Food category created successfully",
    }


@router.put("/{category_id}")
async def update_food_category(
    category_id: int,
    data: FoodCategoryUpdate,
    db: AsyncSession = Depends(get_db),
):
    category = await _get_category(db, category_id)
    if data.name and await _name_taken(db, data.name, exclude_id=category_id):
        raise HTTPException(status_code=400, detail="Food category with this name already exists")

    for key, value in data.model_dump(exclude_none=True).items():
        setattr(category, key, value)

    await db.commit()
    await db.refresh(category)
    return {
        "success": True,
        "data": FoodCategoryResponse.model_validate(category),
        "message": "Food category updated successfully",
    }


@router.delete("/{category_id}")
async def delete_food_category(category_id: int, db: AsyncSession = Depends(get_db)):
    category = await _get_category(db, category_id)
    category.is_active = False
    await db.commit()
    return {"success": True, "message": "Food category deactivated"}
