"""
Payment audit trail - append-only, written once per processed payment
"""
from sqlalchemy import Column, Integer, String, Date, Float, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from backoffice.database import Base
from backoffice.utils.helpers import utcnow


class PaymentAudit(Base):
    __tablename__ = "payment_audits"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=False, index=True)
    entity_type = Column(String, nullable=False, index=True)
    entity_id = Column(Integer, nullable=False, index=True)
    payment_amount = Column(Float, nullable=False)
    payment_method = Column(String, nullable=False)
    payment_date = Column(Date, nullable=False)
    processed_by = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    entries = relationship(
        "PaymentAuditEntry",
        back_populates="audit",
        cascade="all, delete-orphan",
        order_by="PaymentAuditEntry.id",
    )


class PaymentAuditEntry(Base):
    """Before/after balance of one bill touched by the payment"""
    __tablename__ = "payment_audit_entries"

    id = Column(Integer, primary_key=True, index=True)
    audit_id = Column(Integer, ForeignKey("payment_audits.id"), nullable=False, index=True)
    bill_id = Column(Integer, ForeignKey("bills.id"), nullable=False, index=True)
    bill_number = Column(String, nullable=False)
    allocated_amount = Column(Float, nullable=False)
    previous_bill_balance = Column(Float, nullable=False)
    new_bill_balance = Column(Float, nullable=False)
    bill_status = Column(String, nullable=False)

    # Relationships
    audit = relationship("PaymentAudit", back_populates="entries")
