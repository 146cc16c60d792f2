from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from exceptions import EntityNotFoundError
from logger import logger
from models import Address, Book, Delivery, DeliveryStatus, Item, Member, Order, OrderItem
from repositories import OrderRepository, OrderSearch


class OrderService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.order_repository = OrderRepository(session)

    async def order(self, member_id: int, item_id: int, count: int) -> int:
        member = await self.session.get(Member, member_id)
        if member is None:
            raise EntityNotFoundError("member", member_id)
        item = await self.session.get(Item, item_id)
        if item is None:
            raise EntityNotFoundError("item", item_id)

        delivery = Delivery(address=member.address, status=DeliveryStatus.READY)
        order_item = OrderItem.create_order_item(item, item.price, count)
        order = Order.create_order(member, delivery, order_item)
        self.session.add(order)
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to save order: {e}", extra={"member_id": member_id, "item_id": item_id})
            raise
        logger.info("Order created", extra={"order_id": order.id, "member_id": member_id, "item_id": item_id, "count": count})
        return order.id

    async def cancel_order(self, order_id: int) -> None:
        result = await self.session.execute(
            select(Order)
            .where(Order.id == order_id)
            .options(
                joinedload(Order.delivery),
                selectinload(Order.order_items).joinedload(OrderItem.item),
            )
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise EntityNotFoundError("order", order_id)
        order.cancel()
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to cancel order: {e}", extra={"order_id": order_id})
            raise
        logger.info("Order cancelled", extra={"order_id": order_id})

    async def find_orders(self, search: OrderSearch) -> List[Order]:
        return await self.order_repository.find_all_by_string(search)


def _book(name: str, price: int, stock_quantity: int) -> Book:
    return Book(name=name, price=price, stock_quantity=stock_quantity)


def _member(name: str, city: str, street: str, zipcode: str) -> Member:
    return Member(name=name, address=Address(city, street, zipcode))


async def init_sample_data(session: AsyncSession) -> None:
    """Two members, each with one order of two books."""
    members = await session.scalar(select(func.count()).select_from(Member))
    if members:
        logger.info("Sample data already present", extra={"members": members})
        return

    samples = [
        (_member("userA", "Seoul", "1", "1111"), [(_book("JPA1 BOOK", 10000, 100), 1), (_book("JPA2 BOOK", 20000, 100), 2)]),
        (_member("userB", "Jinju", "2", "2222"), [(_book("SPRING1 BOOK", 20000, 200), 3), (_book("SPRING2 BOOK", 40000, 300), 4)]),
    ]
    for member, books in samples:
        order_items = [OrderItem.create_order_item(book, book.price, count) for book, count in books]
        delivery = Delivery(address=member.address, status=DeliveryStatus.READY)
        session.add(Order.create_order(member, delivery, *order_items))
    await session.commit()
    logger.info("Sample data inserted", extra={"members": len(samples)})
