import dataclasses
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from sqlalchemy import inspect

from database import Base
from exceptions import MissingAssociationError
from models import Address, DeliveryStatus, Order, OrderItem, OrderStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class AddressDto(CamelModel):
    city: Optional[str] = None
    street: Optional[str] = None
    zipcode: Optional[str] = None

    @classmethod
    def from_address(cls, address: Optional[Address]) -> "AddressDto":
        if address is None:
            return cls()
        return cls(city=address.city, street=address.street, zipcode=address.zipcode)


# Entity shaped schemas (v1 endpoints)

class EntityModel(CamelModel):
    """Unloaded associations render as null; back-references are never declared."""

    @model_validator(mode="before")
    @classmethod
    def _skip_unloaded(cls, data: Any) -> Any:
        if not isinstance(data, Base):
            return data
        state = inspect(data)
        unloaded = state.unloaded.intersection(state.mapper.relationships.keys())
        values = {}
        for name in cls.model_fields:
            if name in unloaded:
                values[name] = None
                continue
            value = getattr(data, name)
            if dataclasses.is_dataclass(value):
                value = dataclasses.asdict(value)
            values[name] = value
        return values


class MemberEntity(EntityModel):
    id: int
    name: str
    address: Optional[AddressDto] = None


class DeliveryEntity(EntityModel):
    id: int
    address: Optional[AddressDto] = None
    status: Optional[DeliveryStatus] = None


class ItemEntity(EntityModel):
    id: int
    name: str
    price: int
    stock_quantity: int


class OrderItemEntity(EntityModel):
    id: int
    item: Optional[ItemEntity] = None
    order_price: int
    count: int
    total_price: int


class SimpleOrderEntity(EntityModel):
    id: int
    member: Optional[MemberEntity] = None
    delivery: Optional[DeliveryEntity] = None
    order_items: Optional[List[OrderItemEntity]] = None
    order_date: Optional[datetime] = None
    status: Optional[OrderStatus] = None


class OrderEntity(SimpleOrderEntity):
    total_price: int


# DTOs mapped from entities (v2, v3, v3.1)
#
# Mapping awaits every association it needs: a lazy association costs one
# query here, one that was fetched up front costs nothing.

async def _member_and_delivery(order: Order):
    member = await order.awaitable_attrs.member
    if member is None:
        raise MissingAssociationError(order.id, "member")
    delivery = await order.awaitable_attrs.delivery
    if delivery is None:
        raise MissingAssociationError(order.id, "delivery")
    return member, delivery


class SimpleOrderDto(CamelModel):
    order_id: int
    name: str
    order_date: datetime
    order_status: OrderStatus
    address: AddressDto

    @classmethod
    async def from_order(cls, order: Order) -> "SimpleOrderDto":
        member, delivery = await _member_and_delivery(order)
        return cls(
            order_id=order.id,
            name=member.name,
            order_date=order.order_date,
            order_status=order.status,
            address=AddressDto.from_address(delivery.address),
        )


class OrderItemDto(CamelModel):
    item_name: str
    order_price: int
    count: int

    @classmethod
    async def from_order_item(cls, order_item: OrderItem) -> "OrderItemDto":
        item = await order_item.awaitable_attrs.item
        if item is None:
            raise MissingAssociationError(order_item.order_id, "item")
        return cls(item_name=item.name, order_price=order_item.order_price, count=order_item.count)


class OrderDto(CamelModel):
    order_id: int
    name: str
    order_date: datetime
    order_status: OrderStatus
    address: AddressDto
    order_items: List[OrderItemDto] = Field(default_factory=list)

    @classmethod
    async def from_order(cls, order: Order) -> "OrderDto":
        member, delivery = await _member_and_delivery(order)
        order_items = await order.awaitable_attrs.order_items
        return cls(
            order_id=order.id,
            name=member.name,
            order_date=order.order_date,
            order_status=order.status,
            address=AddressDto.from_address(delivery.address),
            order_items=[await OrderItemDto.from_order_item(order_item) for order_item in order_items],
        )


# DTOs projected by the database (v4, v5, v6)

class OrderSimpleQueryDto(CamelModel):
    order_id: int
    name: str
    order_date: datetime
    order_status: OrderStatus
    address: AddressDto


class OrderItemQueryDto(CamelModel):
    order_id: Optional[int] = Field(default=None, exclude=True)
    item_name: str
    order_price: int
    count: int


class OrderQueryDto(CamelModel):
    order_id: int
    name: str
    order_date: datetime
    order_status: OrderStatus
    address: AddressDto
    order_items: List[OrderItemQueryDto] = Field(default_factory=list)


class OrderFlatDto(CamelModel):
    """One row of the orders x order items outer join."""

    order_id: int
    name: str
    order_date: datetime
    order_status: OrderStatus
    address: AddressDto
    order_item_id: Optional[int] = Field(default=None, exclude=True)
    item_name: Optional[str] = None
    order_price: Optional[int] = None
    count: Optional[int] = None
