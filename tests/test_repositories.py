"""
Tests for the entity and DTO query repositories.
"""

from datetime import datetime

import pytest
from sqlalchemy import inspect

from exceptions import MissingAssociationError
from models import Address, Delivery, Order, OrderItem, OrderStatus
from repositories import (
    OrderQueryRepository,
    OrderRepository,
    OrderSearch,
    OrderSimpleQueryRepository,
)


def is_loaded(entity, attribute):
    return attribute not in inspect(entity).unloaded


@pytest.mark.asyncio
async def test_find_all_by_string_leaves_associations_lazy(session, seeded):
    orders = await OrderRepository(session).find_all_by_string(OrderSearch())
    assert [order.id for order in orders] == [1, 2]
    for order in orders:
        assert not is_loaded(order, "member")
        assert not is_loaded(order, "delivery")
        assert not is_loaded(order, "order_items")


@pytest.mark.asyncio
async def test_find_all_by_string_filters(session, seeded):
    repository = OrderRepository(session)
    assert len(await repository.find_all_by_string(OrderSearch(member_name="user"))) == 2
    assert len(await repository.find_all_by_string(OrderSearch(member_name="userA"))) == 1
    assert len(await repository.find_all_by_string(OrderSearch(member_name="%"))) == 0
    assert len(await repository.find_all_by_string(OrderSearch(order_status=OrderStatus.ORDER))) == 2


@pytest.mark.asyncio
async def test_find_all_with_member_delivery(session, seeded, queries):
    queries.reset()
    orders = await OrderRepository(session).find_all_with_member_delivery()
    assert queries.count == 1
    for order in orders:
        assert is_loaded(order, "member")
        assert is_loaded(order, "delivery")
        assert not is_loaded(order, "order_items")


@pytest.mark.asyncio
async def test_find_all_with_member_delivery_paging(session, many_orders):
    repository = OrderRepository(session)
    page = await repository.find_all_with_member_delivery(offset=1, limit=2)
    assert [order.id for order in page] == [2, 3]
    assert await repository.find_all_with_member_delivery(offset=10, limit=2) == []


@pytest.mark.asyncio
async def test_find_all_with_item_collapses_joined_rows(session, seeded, queries):
    queries.reset()
    orders = await OrderRepository(session).find_all_with_item()
    assert queries.count == 1
    assert [order.id for order in orders] == [1, 2]
    for order in orders:
        assert is_loaded(order, "order_items")
        assert len(order.order_items) == 2
        assert all(is_loaded(order_item, "item") for order_item in order.order_items)


@pytest.mark.asyncio
async def test_load_order_items_in_batches(session, many_orders, queries):
    repository = OrderRepository(session)
    orders = await repository.find_all_with_member_delivery()
    queries.reset()
    await repository.load_order_items(orders, batch_size=2)
    assert queries.count == 3
    for order in orders:
        assert is_loaded(order, "order_items")
        assert len(order.order_items) == 1
        assert order.order_items[0].item.name == f"BOOK {order.id}"


@pytest.mark.asyncio
async def test_load_order_items_without_orders(session, queries):
    queries.reset()
    await OrderRepository(session).load_order_items([], batch_size=100)
    assert queries.count == 0


@pytest.mark.asyncio
async def test_load_order_items_rejects_bad_batch_size(session):
    with pytest.raises(ValueError):
        await OrderRepository(session).load_order_items([], batch_size=0)


@pytest.mark.asyncio
async def test_find_order_dtos(session, seeded, queries):
    queries.reset()
    result = await OrderSimpleQueryRepository(session).find_order_dtos()
    assert queries.count == 1
    assert [(dto.order_id, dto.name) for dto in result] == [(1, "userA"), (2, "userB")]
    assert result[1].address.city == "Jinju"


@pytest.mark.asyncio
async def test_find_order_query_dtos_queries_items_per_order(session, seeded, queries):
    queries.reset()
    result = await OrderQueryRepository(session).find_order_query_dtos()
    assert queries.count == 3
    assert [item.item_name for item in result[0].order_items] == ["JPA1 BOOK", "JPA2 BOOK"]


@pytest.mark.asyncio
async def test_find_all_by_dto_optimization(session, seeded, queries):
    repository = OrderQueryRepository(session)
    queries.reset()
    result = await repository.find_all_by_dto_optimization()
    assert queries.count == 2
    assert result == await repository.find_order_query_dtos()


@pytest.mark.asyncio
async def test_find_all_by_dto_flat(session, order_without_items, queries):
    queries.reset()
    flats = await OrderQueryRepository(session).find_all_by_dto_flat()
    assert queries.count == 1
    assert [(flat.order_id, flat.item_name) for flat in flats] == [
        (1, "JPA1 BOOK"),
        (1, "JPA2 BOOK"),
        (2, "SPRING1 BOOK"),
        (2, "SPRING2 BOOK"),
        (order_without_items, None),
    ]


@pytest.mark.asyncio
async def test_query_repositories_reject_order_without_member(session, seeded):
    session.add(Order(status=OrderStatus.ORDER, order_date=datetime.now(), delivery=Delivery(address=Address("a", "b", "c"))))
    await session.commit()
    with pytest.raises(MissingAssociationError) as exc_info:
        await OrderSimpleQueryRepository(session).find_order_dtos()
    assert exc_info.value.association == "member"
    with pytest.raises(MissingAssociationError):
        await OrderQueryRepository(session).find_all_by_dto_optimization()


@pytest.mark.asyncio
async def test_query_repository_rejects_order_item_without_item(session, seeded):
    order = await session.get(Order, 1)
    session.add(OrderItem(order=order, order_price=500, count=1))
    await session.commit()
    with pytest.raises(MissingAssociationError) as exc_info:
        await OrderQueryRepository(session).find_all_by_dto_optimization()
    assert exc_info.value.association == "item"
