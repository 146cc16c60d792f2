import enum
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, composite, mapped_column, relationship

from database import Base
from exceptions import AlreadyDeliveredError, NotEnoughStockError


class OrderStatus(str, enum.Enum):
    ORDER = "ORDER"
    CANCEL = "CANCEL"


class DeliveryStatus(str, enum.Enum):
    READY = "READY"
    COMP = "COMP"


@dataclass
class Address:
    city: Optional[str] = None
    street: Optional[str] = None
    zipcode: Optional[str] = None


class Member(Base):
    __tablename__ = "member"

    id: Mapped[int] = mapped_column("member_id", primary_key=True)
    name: Mapped[str] = mapped_column(String(64))
    city: Mapped[Optional[str]] = mapped_column(String(64))
    street: Mapped[Optional[str]] = mapped_column(String(128))
    zipcode: Mapped[Optional[str]] = mapped_column(String(16))
    address: Mapped[Address] = composite("city", "street", "zipcode")

    orders: Mapped[List["Order"]] = relationship(back_populates="member", order_by="Order.id")


class Item(Base):
    __tablename__ = "item"

    id: Mapped[int] = mapped_column("item_id", primary_key=True)
    dtype: Mapped[str] = mapped_column(String(8))
    name: Mapped[str] = mapped_column(String(128))
    price: Mapped[int]
    stock_quantity: Mapped[int] = mapped_column(default=0)

    __mapper_args__ = {"polymorphic_on": "dtype", "polymorphic_identity": "I"}

    def add_stock(self, quantity: int) -> None:
        self.stock_quantity += quantity

    def remove_stock(self, quantity: int) -> None:
        rest = self.stock_quantity - quantity
        if rest < 0:
            raise NotEnoughStockError(self.name, self.stock_quantity, quantity)
        self.stock_quantity = rest


class Book(Item):
    author: Mapped[Optional[str]] = mapped_column(String(64))
    isbn: Mapped[Optional[str]] = mapped_column(String(32))

    __mapper_args__ = {"polymorphic_identity": "B"}


class Album(Item):
    artist: Mapped[Optional[str]] = mapped_column(String(64))
    etc: Mapped[Optional[str]] = mapped_column(String(128))

    __mapper_args__ = {"polymorphic_identity": "A"}


class Movie(Item):
    director: Mapped[Optional[str]] = mapped_column(String(64))
    actor: Mapped[Optional[str]] = mapped_column(String(64))

    __mapper_args__ = {"polymorphic_identity": "M"}


class Delivery(Base):
    __tablename__ = "delivery"

    id: Mapped[int] = mapped_column("delivery_id", primary_key=True)
    city: Mapped[Optional[str]] = mapped_column(String(64))
    street: Mapped[Optional[str]] = mapped_column(String(128))
    zipcode: Mapped[Optional[str]] = mapped_column(String(16))
    address: Mapped[Address] = composite("city", "street", "zipcode")
    status: Mapped[Optional[DeliveryStatus]] = mapped_column(
        Enum(DeliveryStatus, native_enum=False, length=16)
    )

    order: Mapped[Optional["Order"]] = relationship(back_populates="delivery")


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column("order_id", primary_key=True)
    member_id: Mapped[Optional[int]] = mapped_column(ForeignKey("member.member_id"))
    delivery_id: Mapped[Optional[int]] = mapped_column(ForeignKey("delivery.delivery_id"))
    order_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    status: Mapped[Optional[OrderStatus]] = mapped_column(
        Enum(OrderStatus, native_enum=False, length=16)
    )

    # every association is lazy; callers decide how each one gets loaded
    member: Mapped[Optional[Member]] = relationship(back_populates="orders")
    delivery: Mapped[Optional[Delivery]] = relationship(back_populates="order", cascade="all")
    order_items: Mapped[List["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )

    @classmethod
    def create_order(cls, member: Member, delivery: Delivery, *order_items: "OrderItem") -> "Order":
        order = cls(member=member, delivery=delivery, status=OrderStatus.ORDER, order_date=datetime.now())
        for order_item in order_items:
            order.add_order_item(order_item)
        return order

    def add_order_item(self, order_item: "OrderItem") -> None:
        self.order_items.append(order_item)

    def cancel(self) -> None:
        """Cancel the order and give the stock back.

        Requires ``delivery`` and ``order_items`` (with their items) to be loaded.
        """
        if self.delivery is not None and self.delivery.status == DeliveryStatus.COMP:
            raise AlreadyDeliveredError(self.id)
        self.status = OrderStatus.CANCEL
        for order_item in self.order_items:
            order_item.cancel()

    @property
    def total_price(self) -> int:
        return sum(order_item.total_price for order_item in self.order_items)


class OrderItem(Base):
    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column("order_item_id", primary_key=True)
    item_id: Mapped[Optional[int]] = mapped_column(ForeignKey("item.item_id"))
    order_id: Mapped[Optional[int]] = mapped_column(ForeignKey("orders.order_id"))
    order_price: Mapped[int]
    count: Mapped[int]

    item: Mapped[Optional[Item]] = relationship()
    order: Mapped[Optional[Order]] = relationship(back_populates="order_items")

    @classmethod
    def create_order_item(cls, item: Item, order_price: int, count: int) -> "OrderItem":
        order_item = cls(item=item, order_price=order_price, count=count)
        item.remove_stock(count)
        return order_item

    def cancel(self) -> None:
        self.item.add_stock(self.count)

    @property
    def total_price(self) -> int:
        return self.order_price * self.count
