"""
Test fixtures - in-memory SQLite database, seeded delivery book + HTTP client
"""
from datetime import date

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from backoffice.database import Base, get_db
from backoffice.main import app
from backoffice.models.bill import Bill, BillItem
from backoffice.models.company import Company
from backoffice.models.customer import Customer, CustomerPackage
from backoffice.models.daily_order import DailyOrder, OrderItem
from backoffice.models.driver import Driver
from backoffice.models.food_category import FoodCategory
from backoffice.services.bag_format import parse_bag_format
from backoffice.services.billing_service import recalc_bill_totals
from backoffice.services.order_generator import recalc_daily_order_totals
from backoffice.utils.helpers import month_date_range, utcnow


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """
    Two drivers, two categories, one company and three customers.

    Alice and Bob ride with the north driver on the $50 standard package with
    lunch "5+5" and dinner "3+2"; Bob belongs to Acme. Carol rides south on the
    premium package with no meals set.
    """
    north = Driver(name="Ravi", route="North - Yishun", is_active=True)
    south = Driver(name="Mei", route="South - Bukit Merah", is_active=True)
    standard = FoodCategory(name="Standard Meal", is_active=True)
    premium = FoodCategory(name="Premium Meal", is_active=True)
    acme = Company(name="Acme Pte Ltd", address="1 Raffles Place", is_active=True)
    db_session.add_all([north, south, standard, premium, acme])
    await db_session.flush()

    alice = Customer(
        name="Alice", address="10 Yishun Ave", driver_id=north.id,
        billing_type="individual", start_date=date(2024, 1, 1),
        daily_food_lunch="5+5", daily_food_dinner="3+2", is_active=True,
        packages=[CustomerPackage(category_id=standard.id, unit_price=50)],
    )
    bob = Customer(
        name="Bob", address="12 Yishun Ave", driver_id=north.id, company_id=acme.id,
        billing_type="company", start_date=date(2024, 1, 1),
        daily_food_lunch="5+5", daily_food_dinner="3+2", is_active=True,
        packages=[CustomerPackage(category_id=standard.id, unit_price=50)],
    )
    carol = Customer(
        name="Carol", address="3 Bukit Merah", driver_id=south.id,
        billing_type="individual", start_date=date(2024, 1, 1),
        daily_food_lunch="", daily_food_dinner="", is_active=True,
        packages=[CustomerPackage(category_id=premium.id, unit_price=80)],
    )
    db_session.add_all([alice, bob, carol])
    await db_session.commit()

    return {
        "north": north, "south": south,
        "standard": standard, "premium": premium,
        "acme": acme,
        "alice": alice, "bob": bob, "carol": carol,
    }


@pytest_asyncio.fixture()
async def order_factory(db_session):
    """Insert a DailyOrder directly: lines are (customer, category_id, meal, bag_format, unit_price)"""

    async def create(driver, day, lines):
        items = []
        for customer, category_id, meal_type, bag_format, unit_price in lines:
            parsed = parse_bag_format(bag_format)
            items.append(OrderItem(
                customer_id=customer.id,
                category_id=category_id,
                meal_type=meal_type,
                bag_format=bag_format,
                non_veg_count=parsed.non_veg_count,
                veg_count=parsed.veg_count,
                total_count=parsed.total_count,
                unit_price=unit_price,
                total_amount=parsed.total_count * unit_price,
            ))
        order = DailyOrder(date=day, driver_id=driver.id, status="pending", items=items)
        recalc_daily_order_totals(order)
        db_session.add(order)
        await db_session.commit()
        return order

    return create


@pytest_asyncio.fixture()
async def dave(db_session, seed_data, order_factory):
    """Customer with 100 standard bags at $10 across two days of February 2024"""
    customer = Customer(
        name="Dave", address="8 Bukit Merah", driver_id=seed_data["south"].id,
        billing_type="individual", start_date=date(2024, 2, 1),
        daily_food_lunch="50", daily_food_dinner="", is_active=True,
        packages=[CustomerPackage(category_id=seed_data["standard"].id, unit_price=10)],
    )
    db_session.add(customer)
    await db_session.commit()

    for day in (date(2024, 2, 5), date(2024, 2, 6)):
        await order_factory(
            seed_data["south"], day,
            [(customer, seed_data["standard"].id, "lunch", "50", 10)],
        )
    return customer


@pytest_asyncio.fixture()
async def bill_factory(db_session, seed_data):
    """Insert a Bill directly; customer bills get one item carrying the amount"""

    async def create(number, entity_type, entity_id, amount, year=2024, month=1, **attrs):
        start_date, end_date = month_date_range(year, month)
        items = []
        if entity_type == "customer":
            items.append(BillItem(
                category_id=seed_data["standard"].id,
                category_name="Standard Meal",
                unit_price=amount,
                quantity=1,
                amount=amount,
            ))
        bill = Bill(
            number=number,
            entity_type=entity_type,
            entity_id=entity_id,
            period_year=year,
            period_month=month,
            start_date=start_date,
            end_date=end_date,
            items=items,
            subtotal=amount,
            tax=0,
            paid_amount=0,
            status="unpaid",
            generated_at=utcnow(),
            **attrs,
        )
        recalc_bill_totals(bill)
        db_session.add(bill)
        await db_session.commit()
        return bill

    return create


@pytest_asyncio.fixture()
async def client(db_session, seed_data):
    """httpx AsyncClient bound to the FastAPI app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()
