from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.attributes import set_committed_value

from database import get_session
from exceptions import MissingAssociationError
from models import Delivery, Item, Member, Order, OrderItem, OrderStatus
from schemas import AddressDto, OrderFlatDto, OrderItemQueryDto, OrderQueryDto, OrderSimpleQueryDto

SEARCH_LIMIT = 1000


@dataclass
class OrderSearch:
    member_name: Optional[str] = None
    order_status: Optional[OrderStatus] = None


class OrderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_all_by_string(self, search: OrderSearch) -> List[Order]:
        stmt = select(Order)
        if search.order_status is not None:
            stmt = stmt.where(Order.status == search.order_status)
        if search.member_name:
            stmt = stmt.join(Order.member).where(Member.name.contains(search.member_name, autoescape=True))
        stmt = stmt.order_by(Order.id).limit(SEARCH_LIMIT)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_all_with_member_delivery(
        self, offset: Optional[int] = None, limit: Optional[int] = None
    ) -> List[Order]:
        """Fetch join of the to-one associations; safe to paginate."""
        stmt = (
            select(Order)
            .options(joinedload(Order.member), joinedload(Order.delivery))
            .order_by(Order.id)
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_all_with_item(self) -> List[Order]:
        # joined rows repeat each order per item: collapsed by unique(), not pageable
        stmt = (
            select(Order)
            .options(
                joinedload(Order.member),
                joinedload(Order.delivery),
                joinedload(Order.order_items).joinedload(OrderItem.item),
            )
            .order_by(Order.id)
        )
        result = await self.session.execute(stmt)
        return list(result.unique().scalars().all())

    async def load_order_items(self, orders: Sequence[Order], batch_size: int) -> None:
        """Initialize ``order_items`` (and their items) with one IN query per ``batch_size`` orders."""
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        by_id = {order.id: order for order in orders}
        order_ids = list(by_id)
        loaded: Dict[int, List[OrderItem]] = defaultdict(list)
        for start in range(0, len(order_ids), batch_size):
            chunk = order_ids[start:start + batch_size]
            result = await self.session.execute(
                select(OrderItem)
                .options(joinedload(OrderItem.item))
                .where(OrderItem.order_id.in_(chunk))
                .order_by(OrderItem.id)
            )
            for order_item in result.scalars():
                loaded[order_item.order_id].append(order_item)
        for order_id, order in by_id.items():
            set_committed_value(order, "order_items", loaded[order_id])


def _order_columns():
    # member/delivery ids are selected only to tell a dangling reference apart
    return (
        Order.id.label("order_id"),
        Member.id.label("member_id"),
        Member.name.label("name"),
        Order.order_date.label("order_date"),
        Order.status.label("order_status"),
        Delivery.id.label("delivery_id"),
        Delivery.city.label("city"),
        Delivery.street.label("street"),
        Delivery.zipcode.label("zipcode"),
    )


def _order_fields(row: RowMapping) -> dict:
    if row["member_id"] is None:
        raise MissingAssociationError(row["order_id"], "member")
    if row["delivery_id"] is None:
        raise MissingAssociationError(row["order_id"], "delivery")
    return dict(
        order_id=row["order_id"],
        name=row["name"],
        order_date=row["order_date"],
        order_status=row["order_status"],
        address=AddressDto(city=row["city"], street=row["street"], zipcode=row["zipcode"]),
    )


def _orders_with_to_one():
    return (
        select(*_order_columns())
        .select_from(Order)
        .outerjoin(Order.member)
        .outerjoin(Order.delivery)
    )


class OrderSimpleQueryRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_order_dtos(self) -> List[OrderSimpleQueryDto]:
        result = await self.session.execute(_orders_with_to_one().order_by(Order.id))
        return [OrderSimpleQueryDto(**_order_fields(row)) for row in result.mappings()]


class OrderQueryRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_order_query_dtos(self) -> List[OrderQueryDto]:
        """To-one projection first, then one item query per order."""
        result = await self._find_orders()
        for order in result:
            order.order_items = await self._find_order_items([order.order_id])
        return result

    async def find_all_by_dto_optimization(self) -> List[OrderQueryDto]:
        """To-one projection, then every order's items in a single IN query."""
        result = await self._find_orders()
        order_items = await self._find_order_items([order.order_id for order in result])
        by_order: Dict[int, List[OrderItemQueryDto]] = defaultdict(list)
        for order_item in order_items:
            by_order[order_item.order_id].append(order_item)
        for order in result:
            order.order_items = by_order[order.order_id]
        return result

    async def find_all_by_dto_flat(self) -> List[OrderFlatDto]:
        stmt = (
            _orders_with_to_one()
            .add_columns(
                OrderItem.id.label("order_item_id"),
                Item.name.label("item_name"),
                OrderItem.order_price.label("order_price"),
                OrderItem.count.label("count"),
            )
            .outerjoin(Order.order_items)
            .outerjoin(OrderItem.item)
            .order_by(Order.id, OrderItem.id)
        )
        result = await self.session.execute(stmt)
        return [
            OrderFlatDto(
                **_order_fields(row),
                order_item_id=row["order_item_id"],
                item_name=row["item_name"],
                order_price=row["order_price"],
                count=row["count"],
            )
            for row in result.mappings()
        ]

    async def _find_orders(self) -> List[OrderQueryDto]:
        result = await self.session.execute(_orders_with_to_one().order_by(Order.id))
        return [OrderQueryDto(**_order_fields(row)) for row in result.mappings()]

    async def _find_order_items(self, order_ids: Iterable[int]) -> List[OrderItemQueryDto]:
        order_ids = list(order_ids)
        if not order_ids:
            return []
        result = await self.session.execute(
            select(
                OrderItem.order_id.label("order_id"),
                Item.id.label("item_id"),
                Item.name.label("item_name"),
                OrderItem.order_price.label("order_price"),
                OrderItem.count.label("count"),
            )
            .select_from(OrderItem)
            .outerjoin(OrderItem.item)
            .where(OrderItem.order_id.in_(order_ids))
            .order_by(OrderItem.id)
        )
        order_items = []
        for row in result.mappings():
            if row["item_id"] is None:
                raise MissingAssociationError(row["order_id"], "item")
            order_items.append(
                OrderItemQueryDto(
                    order_id=row["order_id"],
                    item_name=row["item_name"],
                    order_price=row["order_price"],
                    count=row["count"],
                )
            )
        return order_items


def get_order_repository(db: AsyncSession = Depends(get_session)) -> OrderRepository:
    return OrderRepository(db)


def get_order_simple_query_repository(db: AsyncSession = Depends(get_session)) -> OrderSimpleQueryRepository:
    return OrderSimpleQueryRepository(db)


def get_order_query_repository(db: AsyncSession = Depends(get_session)) -> OrderQueryRepository:
    return OrderQueryRepository(db)
