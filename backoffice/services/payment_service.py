"""
Payment allocator.

Payments are recorded against an entity and allocated to its open bills,
oldest period first. Money that finds no open bill stays on the payment as an
advance and is consumed by the next bill generated for that entity.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.config import get_settings
from backoffice.exceptions import NotFoundError, PartialCompanyPaymentError, ValidationError
from backoffice.models.bill import Bill
from backoffice.models.company import Company
from backoffice.models.customer import Customer
from backoffice.models.payment import Payment, PaymentAllocation
from backoffice.models.payment_audit import PaymentAudit, PaymentAuditEntry
from backoffice.services.billing_service import recalc_bill_totals
from backoffice.utils.helpers import round2
from backoffice.utils.validators import validate_entity_type, validate_payment_method

logger = logging.getLogger(__name__)
settings = get_settings()

ADVANCE_REFERENCE = "ADVANCE"
OPEN_BILL_STATUSES = ("unpaid", "partial")


@dataclass
class PaymentResult:
    payment: Payment
    audit: Optional[PaymentAudit]
    message: str


def _format_amount(amount: float) -> str:
    return f"{round2(amount):.2f}".rstrip("0").rstrip(".")


async def _get_payment(db: AsyncSession, payment_id: int) -> Payment:
    result = await db.execute(
        select(Payment)
        .options(selectinload(Payment.allocations))
        .where(Payment.id == payment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _ensure_entity(db: AsyncSession, entity_type: str, entity_id: int) -> None:
    model = Customer if entity_type == "customer" else Company
    if not await db.get(model, entity_id):
        raise NotFoundError(f"{entity_type.capitalize()} not found")


async def _target_bills(
    db: AsyncSession, entity_type: str, entity_id: int, bill_id: Optional[int]
) -> List[Bill]:
    if bill_id:
        result = await db.execute(
            select(Bill).options(selectinload(Bill.items)).where(Bill.id == bill_id)
        )
        bill = result.scalar_one_or_none()
        if not bill:
            raise NotFoundError("Bill not found")
        if bill.entity_type != entity_type or bill.entity_id != entity_id:
            raise ValidationError("Bill does not belong to this entity")
        return [bill]

    result = await db.execute(
        select(Bill)
        .options(selectinload(Bill.items))
        .where(
            Bill.entity_type == entity_type,
            Bill.entity_id == entity_id,
            Bill.status.in_(OPEN_BILL_STATUSES),
        )
        .order_by(Bill.period_year, Bill.period_month, Bill.created_at, Bill.id)
    )
    return list(result.scalars().all())


async def propagate_to_linked_bills(
    db: AsyncSession, company_bill: Bill, amount: float
) -> List[Bill]:
    """
    Spread a company-bill payment over its linked customer bills.

    Each linked bill gets its share of ``amount`` in proportion to its total,
    capped at its balance. Bills are visited in bill-number order.
    """
    result = await db.execute(
        select(Bill)
        .options(selectinload(Bill.items))
        .where(Bill.parent_bill_id == company_bill.id)
        .order_by(Bill.number)
    )
    linked = list(result.scalars().all())

    sum_total = sum(b.total_amount for b in linked)
    if sum_total <= 0:
        return linked

    remaining = round2(amount)
    for bill in linked:
        if remaining <= 0:
            break
        share = min(round2(bill.total_amount / sum_total * amount), bill.balance_amount, remaining)
        if share <= 0:
            continue
        bill.paid_amount = round2(bill.paid_amount + share)
        recalc_bill_totals(bill)
        remaining = round2(remaining - share)

    return linked


async def apply_advance_payments(
    db: AsyncSession, entity_type: str, entity_id: int, bill: Bill
) -> Bill:
    """Consume the entity's unallocated payment money against a freshly generated bill"""
    if bill.status == "paid" or bill.balance_amount <= 0:
        return bill

    result = await db.execute(
        select(Payment)
        .options(selectinload(Payment.allocations))
        .where(Payment.entity_type == entity_type, Payment.entity_id == entity_id)
        .order_by(Payment.date, Payment.created_at, Payment.id)
    )

    for payment in result.scalars().all():
        if bill.balance_amount <= 0:
            break

        allocated = round2(payment.allocated_amount)
        unallocated = round2(max(0, payment.amount - allocated))
        to_apply = min(unallocated, bill.balance_amount)
        if to_apply <= 0:
            continue

        payment.allocations.append(PaymentAllocation(bill_id=bill.id, amount=to_apply))
        bill.paid_amount = round2(bill.paid_amount + to_apply)
        recalc_bill_totals(bill)

        reference = (payment.reference or "").strip()
        if (
            allocated == 0
            and round2(unallocated - to_apply) == 0
            and (reference == "" or reference.upper() == ADVANCE_REFERENCE)
        ):
            payment.reference = bill.number

        logger.info(
            f"Applied {to_apply} from payment {payment.id} to bill {bill.number} "
            f"(balance {bill.balance_amount})"
        )

    await db.flush()
    return bill


async def _write_audit(
    db: AsyncSession,
    payment: Payment,
    entries: List[PaymentAuditEntry],
    notes: Optional[str],
    processed_by: Optional[str],
) -> Optional[PaymentAudit]:
    """Audit trail is best effort; a failure never undoes the payment"""
    try:
        audit = PaymentAudit(
            payment_id=payment.id,
            entity_type=payment.entity_type,
            entity_id=payment.entity_id,
            payment_amount=payment.amount,
            payment_method=payment.method,
            payment_date=payment.date,
            processed_by=processed_by,
            notes=notes,
            entries=entries,
        )
        db.add(audit)
        await db.commit()
        return audit
    except Exception as e:
        logger.error(f"Failed to write audit for payment {payment.id}: {e}")
        await db.rollback()
        return None


async def record_payment(
    db: AsyncSession,
    entity_type: str,
    entity_id: int,
    amount: float,
    payment_date: date,
    method: str = "cash",
    reference: Optional[str] = None,
    bill_id: Optional[int] = None,
    notes: Optional[str] = None,
    processed_by: Optional[str] = None,
) -> PaymentResult:
    """Record a payment and allocate it to open bills, keeping any remainder as advance"""
    validate_entity_type(entity_type)
    validate_payment_method(method)
    amount = round2(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    if not payment_date:
        raise ValidationError("Payment date is required")
    await _ensure_entity(db, entity_type, entity_id)

    targets = await _target_bills(db, entity_type, entity_id, bill_id)

    if entity_type == "company" and bill_id:
        balance = targets[0].balance_amount
        if abs(amount - balance) > settings.COMPANY_PAYMENT_TOLERANCE:
            raise PartialCompanyPaymentError(
                "Company payments must be full payment only. No partial payments allowed."
            )

    payment = Payment(
        entity_type=entity_type,
        entity_id=entity_id,
        date=payment_date,
        amount=amount,
        method=method,
        reference=reference,
        notes=notes,
        allocations=[],
    )
    db.add(payment)

    remaining = amount
    audit_entries = []
    for bill in targets:
        if remaining <= 0:
            break
        to_apply = min(remaining, bill.balance_amount)
        if to_apply <= 0:
            continue

        previous_balance = bill.balance_amount
        payment.allocations.append(PaymentAllocation(bill_id=bill.id, amount=to_apply))
        bill.paid_amount = round2(bill.paid_amount + to_apply)
        recalc_bill_totals(bill)
        remaining = round2(remaining - to_apply)

        if bill.is_consolidated:
            await propagate_to_linked_bills(db, bill, to_apply)

        audit_entries.append(PaymentAuditEntry(
            bill_id=bill.id,
            bill_number=bill.number,
            allocated_amount=to_apply,
            previous_bill_balance=previous_balance,
            new_bill_balance=bill.balance_amount,
            bill_status=bill.status,
        ))

    if not payment.allocations and not (reference or "").strip():
        payment.reference = ADVANCE_REFERENCE

    await db.commit()
    payment_id = payment.id

    if remaining > 0:
        message = f"Advance recorded: {_format_amount(remaining)}"
    else:
        message = "Payment processed successfully"
    logger.info(
        f"Payment {payment_id} of {amount} for {entity_type} {entity_id}: "
        f"{len(audit_entries)} bill(s) allocated, {remaining} unallocated"
    )

    audit = await _write_audit(db, payment, audit_entries, notes, processed_by)
    return PaymentResult(payment=await _get_payment(db, payment_id), audit=audit, message=message)


async def list_payments(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
) -> List[Payment]:
    query = select(Payment).options(selectinload(Payment.allocations))
    if entity_type:
        query = query.where(Payment.entity_type == entity_type)
    if entity_id:
        query = query.where(Payment.entity_id == entity_id)
    query = query.order_by(Payment.date.desc(), Payment.created_at.desc(), Payment.id.desc())

    result = await db.execute(query)
    return list(result.scalars().all())


async def list_payment_audits(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    payment_id: Optional[int] = None,
) -> List[PaymentAudit]:
    query = select(PaymentAudit).options(selectinload(PaymentAudit.entries))
    if entity_type:
        query = query.where(PaymentAudit.entity_type == entity_type)
    if entity_id:
        query = query.where(PaymentAudit.entity_id == entity_id)
    if payment_id:
        query = query.where(PaymentAudit.payment_id == payment_id)
    query = query.order_by(PaymentAudit.created_at.desc(), PaymentAudit.id.desc())

    result = await db.execute(query)
    return list(result.scalars().all())
