"""
Shared fixtures: an in-memory SQLite database per test, the ASGI app wired
to it, and a counter for the SELECT statements a request issues.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("INIT_DB", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from database import Base, get_session
from main import app
from models import Address, Book, Delivery, DeliveryStatus, Member, Order, OrderItem
from services import init_sample_data


class QueryCounter:
    """Counts SELECT statements sent to the database."""

    def __init__(self):
        self.statements = []

    @property
    def count(self) -> int:
        return len(self.statements)

    def reset(self) -> None:
        self.statements.clear()

    def __call__(self, conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            self.statements.append(statement)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(session_factory):
    async with session_factory() as session:
        await init_sample_data(session)


@pytest_asyncio.fixture
async def order_without_items(session_factory, seeded):
    async with session_factory() as session:
        member = Member(name="userC", address=Address("Busan", "3", "3333"))
        delivery = Delivery(address=member.address, status=DeliveryStatus.READY)
        order = Order.create_order(member, delivery)
        session.add(order)
        await session.commit()
        return order.id


@pytest_asyncio.fixture
async def many_orders(session_factory):
    """Five single-item orders for paging and batching."""
    async with session_factory() as session:
        for n in range(1, 6):
            member = Member(name=f"member{n}", address=Address(f"city{n}", str(n), f"{n}{n}{n}"))
            book = Book(name=f"BOOK {n}", price=1000 * n, stock_quantity=10)
            delivery = Delivery(address=member.address, status=DeliveryStatus.READY)
            session.add(Order.create_order(member, delivery, OrderItem.create_order_item(book, book.price, n)))
        await session.commit()


@pytest.fixture
def queries(engine):
    counter = QueryCounter()
    event.listen(engine.sync_engine, "before_cursor_execute", counter)
    yield counter
    event.remove(engine.sync_engine, "before_cursor_execute", counter)


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
