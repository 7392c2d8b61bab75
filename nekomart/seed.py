"""
Order Service — 開発用シードデータ

    python -m nekomart.seed

管理者・出品者・一般ユーザー、ストア、商品、クーポンを投入し、
各ユーザーの開発用アクセストークンをログに出す。
"""

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select

from .auth import create_access_token
from .cart import Cart
from .database import async_session, init_db
from .logging_config import setup_logging
from .schema import coupons, products, stores, users

logger = logging.getLogger(__name__)

USERS = [
    {"name": "Admin User", "email": "admin@nekomart.com", "role": "ADMIN"},
    {"name": "Seller User", "email": "seller@nekomart.com", "role": "SELLER"},
    {"name": "Regular User", "email": "user@nekomart.com", "role": "USER"},
]

PRODUCTS = [
    ("iPhone 15 Pro Max", Decimal("18500000")),
    ("MacBook Air M2", Decimal("16500000")),
    ("Samsung Galaxy S24 Ultra", Decimal("17500000")),
    ("Sony WH-1000XM5", Decimal("4800000")),
]

COUPONS = [
    ("WELCOME10", "Welcome discount for new users - 10% off", Decimal("10"), "PERCENTAGE", 1000, 30),
    ("MEMBER20", "Exclusive member discount - 20% off", Decimal("20"), "PERCENTAGE", 500, 60),
    ("SAVE500K", "Save 500,000 IDR on large purchases", Decimal("500000"), "FIXED", 100, 15),
]


async def seed() -> None:
    await init_db()
    now = datetime.now(timezone.utc)

    async with async_session() as session:
        existing = await session.execute(select(users.c.id).where(users.c.email == USERS[0]["email"]))
        if existing.scalar_one_or_none():
            logger.info("Database already seeded, skipping")
            return

        ids = {}
        for user in USERS:
            ids[user["role"]] = str(uuid.uuid4())
            await session.execute(users.insert().values(
                id=ids[user["role"]],
                name=user["name"],
                email=user["email"],
                role=user["role"],
                is_active=True,
                cart=Cart().to_json(),
            ))

        store_id = str(uuid.uuid4())
        await session.execute(stores.insert().values(
            id=store_id,
            user_id=ids["SELLER"],
            name="NekoMart Electronics",
            username="nekomart-electronics",
            is_active=True,
        ))

        for name, price in PRODUCTS:
            await session.execute(products.insert().values(
                id=str(uuid.uuid4()), store_id=store_id, name=name, price=price, in_stock=True,
            ))

        for code, description, discount, discount_type, limit, days in COUPONS:
            await session.execute(coupons.insert().values(
                id=str(uuid.uuid4()),
                code=code,
                description=description,
                discount=discount,
                discount_type=discount_type,
                is_active=True,
                usage_limit=limit,
                usage_count=0,
                expires_at=now + timedelta(days=days),
                created_at=now,
            ))

        await session.commit()

    for user in USERS:
        token = create_access_token(
            ids[user["role"]], user["email"], user["role"], expires_delta=timedelta(days=7)
        )
        logger.info("%s (%s): %s", user["email"], user["role"], token)
    logger.info("Database seeding completed")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(seed())
