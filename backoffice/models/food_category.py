"""
Food category model (e.g. "Standard Meal", "Premium Meal")
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime
from backoffice.database import Base
from backoffice.utils.helpers import utcnow


class FoodCategory(Base):
    __tablename__ = "food_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
