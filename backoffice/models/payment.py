"""
Payment models - manually recorded ledger entries and their bill allocations
"""
from sqlalchemy import Column, Integer, String, Date, Float, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from backoffice.database import Base
from backoffice.utils.helpers import utcnow


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(String, nullable=False, index=True)  # customer, company
    entity_id = Column(Integer, nullable=False, index=True)
    date = Column(Date, nullable=False)
    amount = Column(Float, nullable=False)
    method = Column(String, nullable=False, default="cash")  # cash, bank, upi, card, other
    reference = Column(String, nullable=True)  # "ADVANCE" until matched to a bill
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    allocations = relationship(
        "PaymentAllocation",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentAllocation.id",
    )

    __table_args__ = (
        Index("ix_payments_entity_date", "entity_type", "entity_id", "date"),
    )

    @property
    def allocated_amount(self) -> float:
        return sum(a.amount for a in self.allocations)

    @property
    def unallocated_amount(self) -> float:
        return max(0.0, self.amount - self.allocated_amount)


class PaymentAllocation(Base):
    """Portion of a payment applied to one bill"""
    __tablename__ = "payment_allocations"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=False, index=True)
    bill_id = Column(Integer, ForeignKey("bills.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)

    # Relationships
    payment = relationship("Payment", back_populates="allocations")
    bill = relationship("Bill")
