"""
Daily order models - one order sheet per driver per calendar day
"""
from sqlalchemy import (
    Column, Integer, String, Date, Float, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from backoffice.database import Base
from backoffice.utils.helpers import utcnow


class DailyOrder(Base):
    __tablename__ = "daily_orders"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)

    # Aggregates over items, always re-derived from the full item list
    total_veg_food = Column(Integer, nullable=False, default=0)
    total_non_veg_food = Column(Integer, nullable=False, default=0)
    total_food = Column(Integer, nullable=False, default=0)
    total_amount = Column(Float, nullable=False, default=0)

    # NEA food-safety window (ready-by / consume-by)
    nea_start_time = Column(DateTime(timezone=True), nullable=True)
    nea_end_time = Column(DateTime(timezone=True), nullable=True)

    status = Column(String, nullable=False, default="pending")  # pending, in_progress, completed, cancelled

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    driver = relationship("Driver")
    items = relationship(
        "OrderItem",
        back_populates="daily_order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    __table_args__ = (
        UniqueConstraint("date", "driver_id", name="uq_daily_order_date_driver"),
    )


class OrderItem(Base):
    """One (customer, meal, package) line of a daily order"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    daily_order_id = Column(Integer, ForeignKey("daily_orders.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("food_categories.id"), nullable=False)

    meal_type = Column(String, nullable=False)  # lunch, dinner
    bag_format = Column(String, nullable=False, default="")  # e.g. "5,5+7"
    non_veg_count = Column(Integer, nullable=False, default=0)
    veg_count = Column(Integer, nullable=False, default=0)
    total_count = Column(Integer, nullable=False, default=0)
    unit_price = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False, default=0)

    # Relationships
    daily_order = relationship("DailyOrder", back_populates="items")
    customer = relationship("Customer")
    category = relationship("FoodCategory")
