"""
Billing engine.

Monthly bills are generated per customer from the month's order items, and
per company as a rollup of its customers' bills for the same period. A bill
for an (entity, period) that already exists is recomputed in place, keeping
whatever has been paid against it.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.config import get_settings
from backoffice.exceptions import (
    BackofficeError,
    CalculationError,
    NoBillableCustomersError,
    NotFoundError,
)
from backoffice.models.bill import Bill, BillItem, BillCounter
from backoffice.models.company import Company
from backoffice.models.customer import Customer
from backoffice.models.payment import Payment
from backoffice.services.calculation_engine import calculate_customer_monthly
from backoffice.utils.helpers import month_date_range, round2, utcnow
from backoffice.utils.validators import validate_entity_type, validate_year_month

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class BillBatchResult:
    bills: List[Bill] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)


def bill_status(balance_amount: float, paid_amount: float) -> str:
    if balance_amount == 0:
        return "paid"
    return "partial" if (paid_amount or 0) > 0 else "unpaid"


def recalc_bill_totals(bill: Bill) -> Bill:
    """
    Re-derive subtotal, total, balance and status from items and paid amount.

    Company rollups have no items; their subtotal is set by the rollup and
    kept as is. Safe to call repeatedly.
    """
    if bill.entity_type == "customer":
        bill.subtotal = round2(sum(item.amount for item in bill.items))
    else:
        bill.subtotal = round2(bill.subtotal)
    bill.tax = round2(bill.tax or 0)
    bill.paid_amount = round2(bill.paid_amount or 0)
    bill.total_amount = round2(bill.subtotal + bill.tax)
    bill.balance_amount = round2(max(0, bill.total_amount - bill.paid_amount))
    if bill.status != "cancelled":
        bill.status = bill_status(bill.balance_amount, bill.paid_amount)
    return bill


def _bill_number_base(prefix: str, year: int, month: int) -> str:
    return f"{prefix}-{year}{month:02d}"


async def _highest_sequence(db: AsyncSession, base: str) -> int:
    """Highest NNNN already issued under base, for seeding a new counter"""
    pattern = re.compile(rf"^{re.escape(base)}-(\d{{4}})$")
    result = await db.execute(select(Bill.number).where(Bill.number.like(f"{base}-%")))
    highest = 0
    for number in result.scalars().all():
        match = pattern.match(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


async def _bump_counter(db: AsyncSession, counter_filter) -> Optional[int]:
    """Increment an existing counter in one statement; None when there is no row yet"""
    bumped = await db.execute(
        update(BillCounter)
        .where(*counter_filter)
        .values(value=BillCounter.value + 1)
        .execution_options(synchronize_session=False)
    )
    if not bumped.rowcount:
        return None
    result = await db.execute(select(BillCounter.value).where(*counter_filter))
    return result.scalar_one()


async def next_bill_number(db: AsyncSession, prefix: str, year: int, month: int) -> str:
    """Allocate PREFIX-YYYYMM-NNNN; the sequence restarts every (prefix, year, month)"""
    base = _bill_number_base(prefix, year, month)
    counter_filter = (
        BillCounter.prefix == prefix,
        BillCounter.period_year == year,
        BillCounter.period_month == month,
    )

    sequence = await _bump_counter(db, counter_filter)
    if sequence is None:
        seed = await _highest_sequence(db, base) + 1
        try:
            async with db.begin_nested():
                db.add(BillCounter(prefix=prefix, period_year=year, period_month=month, value=seed))
                await db.flush()
            sequence = seed
        except IntegrityError:
            # Another writer seeded this period first
            logger.info(f"Bill counter for {base} already seeded, retrying increment")
            sequence = await _bump_counter(db, counter_filter)

    return f"{base}-{sequence:04d}"


def _bill_options():
    return (selectinload(Bill.items),)


async def get_bill(db: AsyncSession, bill_id: int) -> Bill:
    result = await db.execute(
        select(Bill).options(*_bill_options()).where(Bill.id == bill_id)
    )
    bill = result.scalar_one_or_none()
    if not bill:
        raise NotFoundError("Bill not found")
    return bill


async def _find_period_bill(
    db: AsyncSession, entity_type: str, entity_id: int, year: int, month: int
) -> Optional[Bill]:
    result = await db.execute(
        select(Bill)
        .options(*_bill_options())
        .where(
            Bill.entity_type == entity_type,
            Bill.entity_id == entity_id,
            Bill.period_year == year,
            Bill.period_month == month,
        )
    )
    return result.scalar_one_or_none()


async def _upsert_period_bill(
    db: AsyncSession,
    entity_type: str,
    entity_id: int,
    year: int,
    month: int,
    items: List[BillItem],
    subtotal: float,
    tax: float,
    prefix: str,
    **attrs,
) -> Bill:
    """Create the period's bill, or recompute the existing one keeping paid_amount"""
    start_date, end_date = month_date_range(year, month)
    bill = await _find_period_bill(db, entity_type, entity_id, year, month)

    if bill:
        bill.items = items
        bill.subtotal = subtotal
        bill.tax = tax
        bill.start_date = start_date
        bill.end_date = end_date
        for key, value in attrs.items():
            setattr(bill, key, value)
        recalc_bill_totals(bill)
    else:
        bill = Bill(
            number=await next_bill_number(db, prefix, year, month),
            entity_type=entity_type,
            entity_id=entity_id,
            period_year=year,
            period_month=month,
            start_date=start_date,
            end_date=end_date,
            items=items,
            subtotal=subtotal,
            tax=tax,
            paid_amount=0,
            status="unpaid",
            generated_at=utcnow(),
            **attrs,
        )
        recalc_bill_totals(bill)
        db.add(bill)

    await db.flush()
    return bill


async def generate_customer_bill(
    db: AsyncSession, customer_id: int, year: int, month: int
) -> Bill:
    """Generate (or regenerate) a customer's bill for a calendar month"""
    from backoffice.services.payment_service import apply_advance_payments

    validate_year_month(year, month)
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")

    start_date, end_date = month_date_range(year, month)
    calc = await calculate_customer_monthly(
        db, customer_id, start_date, end_date, tax_rate=settings.BILLING_TAX_RATE
    )
    if calc is None:
        raise CalculationError("Calculation failed")

    items = [
        BillItem(
            category_id=pb["category_id"],
            category_name=pb["category_name"] or "",
            unit_price=pb["unit_price"],
            quantity=pb["total_quantity"],
            amount=round2(pb["total_amount"]),
        )
        for pb in calc["package_breakdown"]
    ]
    subtotal = round2(sum(i.amount for i in items))
    tax = round2(subtotal * settings.BILLING_TAX_RATE)

    bill = await _upsert_period_bill(
        db, "customer", customer.id, year, month, items, subtotal, tax,
        prefix=settings.CUSTOMER_BILL_PREFIX,
    )
    if bill.parent_bill_id is None:
        bill.managed_by = "company" if customer.billing_type == "company" else "self"

    await apply_advance_payments(db, "customer", customer.id, bill)
    await db.commit()
    logger.info(f"Customer bill {bill.number}: total={bill.total_amount} status={bill.status}")
    return bill


async def generate_company_bill(
    db: AsyncSession, company_id: int, year: int, month: int
) -> Bill:
    """Roll the company's customer bills for the month into one consolidated bill"""
    from backoffice.services.payment_service import apply_advance_payments

    validate_year_month(year, month)
    company = await db.get(Company, company_id)
    if not company:
        raise NotFoundError("Company not found")

    result = await db.execute(
        select(Bill)
        .options(*_bill_options())
        .join(Customer, Customer.id == Bill.entity_id)
        .where(
            Bill.entity_type == "customer",
            Bill.period_year == year,
            Bill.period_month == month,
            Customer.company_id == company.id,
        )
        .order_by(Bill.number)
    )
    customer_bills = result.scalars().all()
    if not customer_bills:
        raise NoBillableCustomersError(
            "No customer bills for this company in the selected month"
        )

    subtotal = round2(sum(b.subtotal for b in customer_bills))
    tax = 0.0

    bill = await _upsert_period_bill(
        db, "company", company.id, year, month, [], subtotal, tax,
        prefix=settings.COMPANY_BILL_PREFIX,
        is_consolidated=True,
        managed_by="self",
    )

    for customer_bill in customer_bills:
        customer_bill.parent_bill_id = bill.id
        customer_bill.managed_by = "company"

    await apply_advance_payments(db, "company", company.id, bill)
    await db.commit()
    logger.info(
        f"Company bill {bill.number}: {len(customer_bills)} customer bill(s), "
        f"total={bill.total_amount} status={bill.status}"
    )
    return bill


async def generate_bill_for_entity(
    db: AsyncSession, entity_type: str, entity_id: int, year: int, month: int
) -> Bill:
    validate_entity_type(entity_type)
    if entity_type == "customer":
        return await generate_customer_bill(db, entity_id, year, month)
    return await generate_company_bill(db, entity_id, year, month)


async def generate_monthly_bills(db: AsyncSession, year: int, month: int) -> BillBatchResult:
    """
    Bill every active customer, then every active company.

    Company rollups read the customer bills, so customers always go first.
    Entities that cannot be billed are logged and reported in ``skipped``.
    """
    validate_year_month(year, month)
    batch = BillBatchResult()

    customers = await db.execute(
        select(Customer.id).where(Customer.is_active == True).order_by(Customer.id)
    )
    for customer_id in customers.scalars().all():
        try:
            batch.bills.append(await generate_customer_bill(db, customer_id, year, month))
        except BackofficeError as e:
            logger.warning(f"Skipping customer {customer_id} for {year}-{month:02d}: {e.message}")
            batch.skipped.append({"entity_type": "customer", "entity_id": customer_id, "reason": e.message})

    companies = await db.execute(
        select(Company.id).where(Company.is_active == True).order_by(Company.id)
    )
    for company_id in companies.scalars().all():
        try:
            batch.bills.append(await generate_company_bill(db, company_id, year, month))
        except BackofficeError as e:
            logger.info(f"Skipping company {company_id} for {year}-{month:02d}: {e.message}")
            batch.skipped.append({"entity_type": "company", "entity_id": company_id, "reason": e.message})

    logger.info(
        f"Monthly billing {year}-{month:02d}: {len(batch.bills)} bill(s), "
        f"{len(batch.skipped)} skipped"
    )
    return batch


async def list_bills(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    status: Optional[str] = None,
) -> List[Bill]:
    query = select(Bill).options(*_bill_options())
    if entity_type:
        query = query.where(Bill.entity_type == entity_type)
    if entity_id:
        query = query.where(Bill.entity_id == entity_id)
    if year:
        query = query.where(Bill.period_year == year)
    if month:
        query = query.where(Bill.period_month == month)
    if status:
        query = query.where(Bill.status == status)
    query = query.order_by(
        Bill.period_year.desc(), Bill.period_month.desc(), Bill.created_at.desc(), Bill.id.desc()
    )

    result = await db.execute(query)
    return list(result.scalars().all())


async def list_bills_with_linked(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    include_linked: bool = False,
) -> List[Bill]:
    """Bills for an entity; for company bills optionally their linked customer bills too"""
    bills = await list_bills(db, entity_type=entity_type, entity_id=entity_id)

    if entity_type == "company" and include_linked and bills:
        result = await db.execute(
            select(Bill)
            .options(*_bill_options())
            .where(Bill.parent_bill_id.in_([b.id for b in bills]))
            .order_by(Bill.number)
        )
        bills.extend(result.scalars().all())

    return bills


async def entity_names(db: AsyncSession, bills: List[Bill]) -> Dict[tuple, str]:
    """Map (entity_type, entity_id) -> display name for the given bills"""
    customer_ids = {b.entity_id for b in bills if b.entity_type == "customer"}
    company_ids = {b.entity_id for b in bills if b.entity_type == "company"}

    names: Dict[tuple, str] = {}
    if customer_ids:
        result = await db.execute(
            select(Customer.id, Customer.name).where(Customer.id.in_(customer_ids))
        )
        names.update({("customer", r.id): r.name for r in result.all()})
    if company_ids:
        result = await db.execute(
            select(Company.id, Company.name).where(Company.id.in_(company_ids))
        )
        names.update({("company", r.id): r.name for r in result.all()})
    return names


def _as_date(value) -> date:
    return value.date() if hasattr(value, "date") and callable(value.date) else value


async def get_ledger(db: AsyncSession, entity_type: str, entity_id: int) -> List[Dict[str, Any]]:
    """Bills as debits and payments as credits, oldest first, with running balance"""
    validate_entity_type(entity_type)

    bills = await db.execute(
        select(Bill).where(Bill.entity_type == entity_type, Bill.entity_id == entity_id)
    )
    payments = await db.execute(
        select(Payment).where(Payment.entity_type == entity_type, Payment.entity_id == entity_id)
    )

    entries = []
    for b in bills.scalars().all():
        entries.append({
            "type": "bill",
            "date": _as_date(b.generated_at),
            "ref": b.number,
            "debit": b.total_amount,
            "credit": 0.0,
        })
    for p in payments.scalars().all():
        entries.append({
            "type": "payment",
            "date": p.date,
            "ref": p.reference or str(p.id),
            "debit": 0.0,
            "credit": p.amount,
        })

    # Same-day bills post before payments
    entries.sort(key=lambda e: (e["date"], 0 if e["type"] == "bill" else 1))

    running = 0.0
    for entry in entries:
        running += entry["debit"] - entry["credit"]
        entry["balance"] = round2(running)
        entry["date"] = entry["date"].isoformat()
    return entries
