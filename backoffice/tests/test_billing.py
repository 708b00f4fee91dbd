"""
Billing engine tests
"""
from datetime import date, datetime

import pytest
from sqlalchemy import insert, select

from backoffice.exceptions import NoBillableCustomersError, NotFoundError, ValidationError
from backoffice.models.bill import BillCounter
from backoffice.models.company import Company
from backoffice.services import billing_service, payment_service
from backoffice.services.order_generator import generate_daily_orders
from backoffice.utils.helpers import utcnow


async def _january_orders(db_session):
    await generate_daily_orders(db_session, date(2024, 1, 8), datetime(2024, 1, 8, 10))


async def test_customer_bill_from_month_orders(db_session, dave):
    bill = await billing_service.generate_customer_bill(db_session, dave.id, 2024, 2)

    assert bill.number == "BILL-C-202402-0001"
    assert bill.entity_type == "customer"
    assert bill.entity_id == dave.id
    assert (bill.start_date, bill.end_date) == (date(2024, 2, 1), date(2024, 2, 29))
    assert bill.subtotal == 1000
    assert bill.tax == 0
    assert bill.total_amount == 1000
    assert bill.paid_amount == 0
    assert bill.balance_amount == 1000
    assert bill.status == "unpaid"
    assert bill.managed_by == "self"

    [item] = bill.items
    assert item.category_name == "Standard Meal"
    assert item.quantity == 100
    assert item.unit_price == 10
    assert item.amount == 1000


async def test_regenerate_updates_in_place_keeping_paid(db_session, seed_data, dave, order_factory):
    bill = await billing_service.generate_customer_bill(db_session, dave.id, 2024, 2)
    await payment_service.record_payment(db_session, "customer", dave.id, 400, date(2024, 2, 20))

    await order_factory(
        seed_data["south"], date(2024, 2, 7),
        [(dave, seed_data["standard"].id, "lunch", "50", 10)],
    )
    again = await billing_service.generate_customer_bill(db_session, dave.id, 2024, 2)

    assert again.id == bill.id
    assert again.number == "BILL-C-202402-0001"
    assert again.total_amount == 1500
    assert again.paid_amount == 400
    assert again.balance_amount == 1100
    assert again.status == "partial"
    assert len(again.items) == 1


async def test_bill_numbers_sequence_per_prefix_and_month(db_session, seed_data):
    numbers = [
        await billing_service.next_bill_number(db_session, "BILL-C", 2024, 5)
        for _ in range(3)
    ]
    assert numbers == ["BILL-C-202405-0001", "BILL-C-202405-0002", "BILL-C-202405-0003"]

    assert await billing_service.next_bill_number(db_session, "BILL-C", 2024, 6) == "BILL-C-202406-0001"
    assert await billing_service.next_bill_number(db_session, "BILL-CO", 2024, 5) == "BILL-CO-202405-0001"


async def test_bill_number_counter_seeded_from_existing_bills(db_session, seed_data, bill_factory):
    await bill_factory("BILL-C-202403-0007", "customer", seed_data["alice"].id, 100, year=2024, month=3)

    assert await billing_service.next_bill_number(db_session, "BILL-C", 2024, 3) == "BILL-C-202403-0008"
    assert await billing_service.next_bill_number(db_session, "BILL-C", 2024, 3) == "BILL-C-202403-0009"


async def test_bill_number_counter_seeded_concurrently(db_session, seed_data, monkeypatch):
    original = billing_service._highest_sequence

    async def seeded_by_other_writer(db, base):
        # Another generator creates the counter between our increment and our seed
        await db.execute(
            insert(BillCounter).values(prefix="BILL-C", period_year=2024, period_month=7, value=3)
        )
        return await original(db, base)

    monkeypatch.setattr(billing_service, "_highest_sequence", seeded_by_other_writer)

    assert await billing_service.next_bill_number(db_session, "BILL-C", 2024, 7) == "BILL-C-202407-0004"

    monkeypatch.setattr(billing_service, "_highest_sequence", original)
    assert await billing_service.next_bill_number(db_session, "BILL-C", 2024, 7) == "BILL-C-202407-0005"

    result = await db_session.execute(
        select(BillCounter).where(BillCounter.prefix == "BILL-C", BillCounter.period_month == 7)
    )
    [counter] = result.scalars().all()
    assert counter.value == 5


async def test_recalc_totals_is_idempotent(db_session, seed_data, bill_factory):
    bill = await bill_factory("BILL-C-202401-0001", "customer", seed_data["alice"].id, 250.5)
    bill.paid_amount = 100.25

    billing_service.recalc_bill_totals(bill)
    first = (bill.subtotal, bill.total_amount, bill.balance_amount, bill.status)
    billing_service.recalc_bill_totals(bill)

    assert (bill.subtotal, bill.total_amount, bill.balance_amount, bill.status) == first
    assert bill.balance_amount == 150.25
    assert bill.status == "partial"


async def test_recalc_status_rule(db_session, seed_data, bill_factory):
    bill = await bill_factory("BILL-C-202401-0001", "customer", seed_data["alice"].id, 100)
    assert bill.status == "unpaid"

    bill.paid_amount = 150
    billing_service.recalc_bill_totals(bill)
    assert bill.balance_amount == 0
    assert bill.status == "paid"


async def test_recalc_keeps_company_rollup_subtotal(db_session, seed_data, bill_factory):
    bill = await bill_factory(
        "BILL-CO-202401-0001", "company", seed_data["acme"].id, 900, is_consolidated=True
    )
    billing_service.recalc_bill_totals(bill)

    assert bill.subtotal == 900
    assert bill.total_amount == 900


async def test_company_bill_rolls_up_customer_bills(db_session, seed_data):
    await _january_orders(db_session)
    bob_bill = await billing_service.generate_customer_bill(db_session, seed_data["bob"].id, 2024, 1)
    assert bob_bill.managed_by == "company"

    company_bill = await billing_service.generate_company_bill(db_session, seed_data["acme"].id, 2024, 1)

    assert company_bill.number == "BILL-CO-202401-0001"
    assert company_bill.entity_type == "company"
    assert company_bill.is_consolidated
    assert company_bill.items == []
    assert company_bill.subtotal == 750
    assert company_bill.total_amount == 750
    assert company_bill.status == "unpaid"

    assert bob_bill.parent_bill_id == company_bill.id
    assert bob_bill.managed_by == "company"


async def test_company_bill_without_customer_bills(db_session, seed_data):
    with pytest.raises(NoBillableCustomersError, match="No customer bills"):
        await billing_service.generate_company_bill(db_session, seed_data["acme"].id, 2024, 1)


async def test_missing_entities(db_session, seed_data):
    with pytest.raises(NotFoundError, match="Customer not found"):
        await billing_service.generate_customer_bill(db_session, 9999, 2024, 1)
    with pytest.raises(NotFoundError, match="Company not found"):
        await billing_service.generate_company_bill(db_session, 9999, 2024, 1)
    with pytest.raises(ValidationError, match="Invalid entityType"):
        await billing_service.generate_bill_for_entity(db_session, "driver", 1, 2024, 1)
    with pytest.raises(ValidationError):
        await billing_service.generate_customer_bill(db_session, seed_data["alice"].id, 2024, 13)


async def test_monthly_batch_bills_customers_then_companies(db_session, seed_data):
    globex = Company(name="Globex", address="2 Shenton Way", is_active=True)
    db_session.add(globex)
    await db_session.commit()
    await _january_orders(db_session)

    batch = await billing_service.generate_monthly_bills(db_session, 2024, 1)

    assert [b.entity_type for b in batch.bills] == ["customer", "customer", "customer", "company"]
    assert batch.skipped == [{
        "entity_type": "company",
        "entity_id": globex.id,
        "reason": "No customer bills for this company in the selected month",
    }]

    carol_bill = next(b for b in batch.bills if b.entity_id == seed_data["carol"].id and b.entity_type == "customer")
    assert carol_bill.total_amount == 0
    assert carol_bill.status == "paid"


async def test_list_bills_and_linked(db_session, seed_data):
    await _january_orders(db_session)
    await billing_service.generate_monthly_bills(db_session, 2024, 1)

    customer_bills = await billing_service.list_bills(db_session, entity_type="customer")
    assert len(customer_bills) == 3

    names = await billing_service.entity_names(db_session, customer_bills)
    assert names[("customer", seed_data["alice"].id)] == "Alice"

    unpaid = await billing_service.list_bills(db_session, status="unpaid", year=2024, month=1)
    assert {b.total_amount for b in unpaid} == {750}

    company_only = await billing_service.list_bills_with_linked(
        db_session, "company", seed_data["acme"].id
    )
    assert len(company_only) == 1

    with_linked = await billing_service.list_bills_with_linked(
        db_session, "company", seed_data["acme"].id, include_linked=True
    )
    assert len(with_linked) == 2
    assert with_linked[1].entity_id == seed_data["bob"].id


async def test_get_bill(db_session, dave):
    bill = await billing_service.generate_customer_bill(db_session, dave.id, 2024, 2)

    fetched = await billing_service.get_bill(db_session, bill.id)
    assert fetched.number == bill.number

    with pytest.raises(NotFoundError):
        await billing_service.get_bill(db_session, 9999)


async def test_ledger_running_balance(db_session, dave):
    await billing_service.generate_customer_bill(db_session, dave.id, 2024, 2)
    await payment_service.record_payment(
        db_session, "customer", dave.id, 600, utcnow().date(), reference="CHQ-1"
    )

    ledger = await billing_service.get_ledger(db_session, "customer", dave.id)

    assert [e["type"] for e in ledger] == ["bill", "payment"]
    assert ledger[0]["debit"] == 1000
    assert ledger[0]["balance"] == 1000
    assert ledger[1]["credit"] == 600
    assert ledger[1]["ref"] == "CHQ-1"
    assert ledger[1]["balance"] == 400


def test_month_date_range():
    assert billing_service.month_date_range(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert billing_service.month_date_range(2023, 12) == (date(2023, 12, 1), date(2023, 12, 31))


def test_round2_half_up():
    assert billing_service.round2(2.675) == 2.68
    assert billing_service.round2(1.005) == 1.01
    assert billing_service.round2(None) == 0.0
