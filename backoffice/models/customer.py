"""
Customer and customer package models
"""
from sqlalchemy import Column, Integer, String, Date, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from backoffice.database import Base
from backoffice.utils.helpers import utcnow


class Customer(Base):
    """A delivery customer with its current daily bag-format template"""
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    address = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)

    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)

    # Current template used when generating a day's orders, e.g. "5,5+7"
    daily_food_lunch = Column(String, nullable=False, default="")
    daily_food_dinner = Column(String, nullable=False, default="")

    billing_type = Column(String, nullable=False, default="individual")  # individual, company

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)

    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    driver = relationship("Driver")
    company = relationship("Company", back_populates="customers")
    packages = relationship(
        "CustomerPackage",
        back_populates="customer",
        cascade="all, delete-orphan",
        order_by="CustomerPackage.id",
    )

    def daily_food_for(self, meal_type: str) -> str:
        if meal_type == "lunch":
            return self.daily_food_lunch or ""
        return self.daily_food_dinner or ""

    def set_daily_food(self, meal_type: str, bag_format: str) -> None:
        if meal_type == "lunch":
            self.daily_food_lunch = bag_format
        else:
            self.daily_food_dinner = bag_format


class CustomerPackage(Base):
    """Negotiated per-bag price for one food category"""
    __tablename__ = "customer_packages"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("food_categories.id"), nullable=False)
    unit_price = Column(Float, nullable=False)

    # Relationships
    customer = relationship("Customer", back_populates="packages")
    category = relationship("FoodCategory")


def derive_billing_type(company_id: int | None, explicit: str | None = None) -> str:
    """Company billing when linked to a company unless explicitly overridden"""
    if explicit:
        return explicit
    return "company" if company_id else "individual"
