"""Pytest fixtures for the order service tests."""

import asyncio
import json
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from nekomart.auth import create_access_token
from nekomart.database import get_session, init_db
from nekomart.main import app, get_redis
from nekomart.schema import coupons, order_items, orders, products, stores, users


class FakeRedis:
    """In-memory stand-in for the handful of redis.asyncio calls the service makes."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.published: list[tuple[str, dict]] = []

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    async def expire(self, key, seconds):
        return True

    async def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))
        return 0


class Database:
    """Synchronous helpers to arrange and inspect rows in the test database."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def run(self, fn):
        async def runner():
            async with self.session_factory() as session:
                return await fn(session)

        return asyncio.run(runner())

    def _insert(self, table, **values):
        async def fn(session):
            await session.execute(table.insert().values(**values))
            await session.commit()

        self.run(fn)
        return values["id"]

    def add_user(self, role="USER", cart_items=None, is_active=True):
        user_id = str(uuid.uuid4())
        cart = None
        if cart_items is not None:
            total = sum(Decimal(str(i["price"])) * i["quantity"] for i in cart_items)
            cart = json.dumps({"items": cart_items, "total": float(total)})
        return self._insert(
            users,
            id=user_id,
            name=f"{role.title()} User",
            email=f"{user_id}@nekomart.test",
            role=role,
            is_active=is_active,
            cart=cart,
        )

    def add_store(self, owner_id):
        store_id = str(uuid.uuid4())
        return self._insert(
            stores,
            id=store_id,
            user_id=owner_id,
            name="Store " + store_id[:8],
            username="store-" + store_id[:8],
            is_active=True,
        )

    def add_product(self, store_id, price, in_stock=True, name=None):
        product_id = str(uuid.uuid4())
        return self._insert(
            products,
            id=product_id,
            store_id=store_id,
            name=name or "Product " + product_id[:8],
            price=Decimal(str(price)),
            in_stock=in_stock,
        )

    def add_coupon(self, code, discount, discount_type="PERCENTAGE", usage_limit=0,
                   usage_count=0, is_active=True, expires_in=timedelta(days=30)):
        now = datetime.now(timezone.utc)
        return self._insert(
            coupons,
            id=str(uuid.uuid4()),
            code=code,
            description="test coupon",
            discount=Decimal(str(discount)),
            discount_type=discount_type,
            is_active=is_active,
            usage_limit=usage_limit,
            usage_count=usage_count,
            expires_at=now + expires_in,
            created_at=now,
        )

    def set_product(self, product_id, **values):
        async def fn(session):
            await session.execute(products.update().where(products.c.id == product_id).values(**values))
            await session.commit()

        self.run(fn)

    def set_order_status(self, order_id, status):
        async def fn(session):
            await session.execute(orders.update().where(orders.c.id == order_id).values(status=status))
            await session.commit()

        self.run(fn)

    def cart(self, user_id):
        async def fn(session):
            result = await session.execute(select(users.c.cart).where(users.c.id == user_id))
            raw = result.scalar_one()
            return json.loads(raw) if raw else None

        return self.run(fn)

    def orders(self):
        async def fn(session):
            result = await session.execute(select(orders))
            return [dict(row._mapping) for row in result.fetchall()]

        return self.run(fn)

    def order_items(self):
        async def fn(session):
            result = await session.execute(select(order_items))
            return [dict(row._mapping) for row in result.fetchall()]

        return self.run(fn)

    def coupon_usage(self, code):
        async def fn(session):
            result = await session.execute(select(coupons.c.usage_count).where(coupons.c.code == code))
            return result.scalar_one()

        return self.run(fn)


def cart_item(product_id, quantity, price):
    return {"productId": product_id, "quantity": quantity, "price": price}


def auth_headers(user_id, role="USER"):
    token = create_access_token(user_id, f"{user_id}@nekomart.test", role)
    return {"Authorization": f"Bearer {token}"}


SHIPPING = {
    "name": "Budi Santoso",
    "address": "Jl. Sudirman No. 123, Jakarta Pusat",
    "phone": "081234567890",
}


@pytest.fixture
def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    asyncio.run(init_db(engine))
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    return Database(session_factory)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def client(session_factory, fake_redis):
    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_redis] = lambda: fake_redis
    yield TestClient(app)
    app.dependency_overrides.clear()
