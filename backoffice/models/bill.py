"""
Bill models - monthly bills per customer or company, plus numbering counters
"""
from sqlalchemy import (
    Column, Integer, String, Date, Float, Boolean, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from backoffice.database import Base
from backoffice.utils.helpers import utcnow


class Bill(Base):
    """Monthly bill; entity_type discriminates customer vs company bills"""
    __tablename__ = "bills"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String, unique=True, nullable=False)  # BILL-C-202401-0001

    entity_type = Column(String, nullable=False, index=True)  # customer, company
    entity_id = Column(Integer, nullable=False, index=True)

    period_year = Column(Integer, nullable=False, index=True)
    period_month = Column(Integer, nullable=False, index=True)  # 1-12
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    # Financial
    subtotal = Column(Float, nullable=False, default=0)
    tax = Column(Float, nullable=False, default=0)
    total_amount = Column(Float, nullable=False, default=0)
    paid_amount = Column(Float, nullable=False, default=0)
    balance_amount = Column(Float, nullable=False, default=0)

    status = Column(String, nullable=False, default="unpaid")  # unpaid, partial, paid, cancelled
    due_date = Column(Date, nullable=True)
    generated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Company rollups
    managed_by = Column(String, nullable=False, default="self")  # self, company
    parent_bill_id = Column(Integer, ForeignKey("bills.id"), nullable=True, index=True)
    is_consolidated = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    items = relationship(
        "BillItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillItem.id",
    )
    parent_bill = relationship("Bill", remote_side=[id])

    __table_args__ = (
        UniqueConstraint(
            "entity_type", "entity_id", "period_year", "period_month",
            name="uq_bill_entity_period",
        ),
    )


class BillItem(Base):
    """Per-category line of a customer bill"""
    __tablename__ = "bill_items"

    id = Column(Integer, primary_key=True, index=True)
    bill_id = Column(Integer, ForeignKey("bills.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("food_categories.id"), nullable=False)
    category_name = Column(String, nullable=False)
    unit_price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    amount = Column(Float, nullable=False, default=0)

    # Relationships
    bill = relationship("Bill", back_populates="items")


class BillCounter(Base):
    """Bill number sequence per (prefix, year, month)"""
    __tablename__ = "bill_counters"

    id = Column(Integer, primary_key=True, index=True)
    prefix = Column(String, nullable=False)
    period_year = Column(Integer, nullable=False)
    period_month = Column(Integer, nullable=False)
    value = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("prefix", "period_year", "period_month", name="uq_bill_counter_period"),
    )
