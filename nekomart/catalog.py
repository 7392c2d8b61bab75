"""
Order Service — カタログ参照

商品とストアは別サービスの持ち物で、ここでは読み取りのみ行う。
価格・在庫は読んだ時点の値であり、予約やロックはしない。
"""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import NotFound
from .schema import products, stores


@dataclass(frozen=True)
class ProductSnapshot:
    id: str
    name: str
    price: Decimal
    in_stock: bool
    store_id: str


async def get_product(session: AsyncSession, product_id: str) -> ProductSnapshot:
    result = await session.execute(
        select(
            products.c.id,
            products.c.name,
            products.c.price,
            products.c.in_stock,
            products.c.store_id,
        ).where(products.c.id == product_id)
    )
    row = result.fetchone()
    if not row:
        raise NotFound(f"Product {product_id} not found")
    return ProductSnapshot(
        id=row.id,
        name=row.name,
        price=Decimal(row.price),
        in_stock=bool(row.in_stock),
        store_id=row.store_id,
    )


async def get_store_owner(session: AsyncSession, store_id: str) -> str:
    """ストアの所有者ユーザー ID を返す。"""
    result = await session.execute(
        select(stores.c.user_id).where(stores.c.id == store_id)
    )
    owner_id = result.scalar_one_or_none()
    if owner_id is None:
        raise NotFound("Store not found")
    return owner_id
