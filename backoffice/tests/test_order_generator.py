"""
Daily order generation and item correction tests
"""
from datetime import date, datetime

import pytest

from backoffice.exceptions import DuplicateGenerationError, NotFoundError, ValidationError
from backoffice.services import order_generator

DAY = date(2024, 1, 8)
NEA_START = datetime(2024, 1, 8, 10, 0)


def _by_driver(orders, driver):
    return next(o for o in orders if o.driver_id == driver.id)


async def test_generate_one_order_per_driver(db_session, seed_data):
    orders = await order_generator.generate_daily_orders(db_session, DAY, NEA_START)

    assert len(orders) == 2
    assert {o.driver_id for o in orders} == {seed_data["north"].id, seed_data["south"].id}
    assert all(o.date == DAY for o in orders)
    assert all(o.status == "pending" for o in orders)


async def test_generate_totals_for_two_customers(db_session, seed_data):
    orders = await order_generator.generate_daily_orders(db_session, DAY, NEA_START)
    north = _by_driver(orders, seed_data["north"])

    # lunch "5+5" (10) and dinner "3+2" (5) for each of two customers at $50
    assert north.total_food == 30
    assert north.total_amount == 1500
    assert north.total_non_veg_food == 16
    assert north.total_veg_food == 14
    assert len(north.items) == 4


async def test_generate_sets_nea_window(db_session, seed_data):
    orders = await order_generator.generate_daily_orders(db_session, DAY, NEA_START)
    north = _by_driver(orders, seed_data["north"])

    assert north.nea_start_time.replace(tzinfo=None) == NEA_START
    assert north.nea_end_time.replace(tzinfo=None) == datetime(2024, 1, 8, 14, 0)


async def test_blank_templates_still_emit_zero_items(db_session, seed_data):
    orders = await order_generator.generate_daily_orders(db_session, DAY, NEA_START)
    south = _by_driver(orders, seed_data["south"])

    assert len(south.items) == 2
    assert {i.meal_type for i in south.items} == {"lunch", "dinner"}
    assert all(i.total_count == 0 and i.total_amount == 0 for i in south.items)
    assert south.total_food == 0
    assert south.total_amount == 0


async def test_generate_skips_inactive_customers(db_session, seed_data):
    seed_data["bob"].is_active = False
    await db_session.commit()

    orders = await order_generator.generate_daily_orders(db_session, DAY, NEA_START)
    north = _by_driver(orders, seed_data["north"])

    assert north.total_food == 15
    assert {i.customer_id for i in north.items} == {seed_data["alice"].id}


async def test_generate_twice_for_same_date_rejected(db_session, seed_data):
    await order_generator.generate_daily_orders(db_session, DAY, NEA_START)

    with pytest.raises(DuplicateGenerationError, match="already exist"):
        await order_generator.generate_daily_orders(db_session, DAY, NEA_START)


async def test_update_item_recomputes_order(db_session, seed_data):
    orders = await order_generator.generate_daily_orders(db_session, DAY, NEA_START)
    north = _by_driver(orders, seed_data["north"])
    item = next(
        i for i in north.items
        if i.customer_id == seed_data["alice"].id and i.meal_type == "lunch"
    )

    updated = await order_generator.update_order_item(db_session, north.id, item.id, "10+2")

    changed = next(i for i in updated.items if i.id == item.id)
    assert (changed.non_veg_count, changed.veg_count, changed.total_count) == (10, 2, 12)
    assert changed.total_amount == 600
    assert updated.total_food == 32
    assert updated.total_amount == 1600


async def test_update_item_is_idempotent(db_session, seed_data):
    orders = await order_generator.generate_daily_orders(db_session, DAY, NEA_START)
    north = _by_driver(orders, seed_data["north"])
    item_id = north.items[0].id

    first = await order_generator.update_order_item(db_session, north.id, item_id, "7+1")
    first_totals = (first.total_food, first.total_amount)
    second = await order_generator.update_order_item(db_session, north.id, item_id, "7+1")

    assert (second.total_food, second.total_amount) == first_totals


async def test_update_item_rejects_invalid_bag_format(db_session, seed_data):
    orders = await order_generator.generate_daily_orders(db_session, DAY, NEA_START)
    north = _by_driver(orders, seed_data["north"])

    with pytest.raises(ValidationError):
        await order_generator.update_order_item(db_session, north.id, north.items[0].id, "abc")


async def test_update_item_from_another_order_not_found(db_session, seed_data):
    orders = await order_generator.generate_daily_orders(db_session, DAY, NEA_START)
    north = _by_driver(orders, seed_data["north"])
    south = _by_driver(orders, seed_data["south"])

    with pytest.raises(NotFoundError, match="Order item not found"):
        await order_generator.update_order_item(db_session, north.id, south.items[0].id, "5")

    with pytest.raises(NotFoundError, match="Daily order not found"):
        await order_generator.update_order_item(db_session, 9999, south.items[0].id, "5")


async def test_update_status(db_session, seed_data):
    orders = await order_generator.generate_daily_orders(db_session, DAY, NEA_START)

    updated = await order_generator.update_order_status(db_session, orders[0].id, "completed")
    assert updated.status == "completed"

    with pytest.raises(ValidationError):
        await order_generator.update_order_status(db_session, orders[0].id, "lost")


async def test_list_and_summary(db_session, seed_data):
    await order_generator.generate_daily_orders(db_session, DAY, NEA_START)
    await order_generator.generate_daily_orders(db_session, date(2024, 1, 9), NEA_START)

    listed = await order_generator.list_daily_orders(db_session, order_date=DAY)
    assert len(listed) == 2

    by_driver = await order_generator.list_daily_orders(db_session, driver_id=seed_data["north"].id)
    assert [o.date for o in by_driver] == [date(2024, 1, 9), DAY]

    summary = await order_generator.order_summary(db_session, DAY, date(2024, 1, 9))
    assert summary["total_orders"] == 4
    assert summary["total_food"] == 60
    assert summary["total_revenue"] == 3000
