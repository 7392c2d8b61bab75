"""
Order Service — カート

カートはユーザー行の cart カラムに JSON で保存されている。
読み出しは Redis キャッシュ優先、書き込みは DB に書いてからキャッシュを更新する。
楽観ロックは無いので、同時更新は後勝ちになる。
"""

import json
import logging
from decimal import Decimal

import redis.asyncio as aioredis
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from . import cache, catalog
from .catalog import ProductSnapshot
from .errors import InvalidState, NotFound
from .money import Money, quantize
from .schema import users

logger = logging.getLogger(__name__)


class CartItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId")
    quantity: int = Field(ge=1, le=100)
    price: Money = Field(gt=0)


class Cart(BaseModel):
    items: list[CartItem] = []
    total: Money = Decimal("0")

    @classmethod
    def of(cls, items: list[CartItem]) -> "Cart":
        total = sum((item.price * item.quantity for item in items), Decimal("0"))
        return cls(items=items, total=quantize(total))

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


# ── 検証 ─────────────────────────────────────────

async def validate_item(session: AsyncSession, item: CartItem) -> ProductSnapshot:
    """
    カート項目を現在のカタログと照合する。

    商品が存在し、在庫があり、カートに入れた時の価格が現在価格と
    一致することを確認する。最初の失敗で例外を送出する。
    """
    product = await catalog.get_product(session, item.product_id)
    if not product.in_stock:
        raise InvalidState(f"Product {product.name} is out of stock")
    if quantize(product.price) != quantize(item.price):
        raise InvalidState(f"Price changed for product {product.name}")
    return product


# ── 読み書き ─────────────────────────────────────

async def load_cart(session: AsyncSession, user_id: str) -> Cart:
    """DB からカートを読む（キャッシュを経由しない）。"""
    result = await session.execute(select(users.c.cart).where(users.c.id == user_id))
    row = result.fetchone()
    if not row:
        raise NotFound("User not found")
    if not row.cart:
        return Cart()
    try:
        return Cart.model_validate(json.loads(row.cart))
    except (json.JSONDecodeError, ValidationError):
        logger.warning("Stored cart for user %s is malformed", user_id, exc_info=True)
        raise InvalidState("Invalid cart")


async def _require_user(session: AsyncSession, user_id: str) -> None:
    result = await session.execute(select(users.c.id).where(users.c.id == user_id))
    if result.scalar_one_or_none() is None:
        raise NotFound("User not found")


async def save_cart(session: AsyncSession, user_id: str, cart: Cart) -> None:
    """カートを書き込む。コミットは呼び出し側で行う。"""
    await session.execute(
        update(users).where(users.c.id == user_id).values(cart=cart.to_json())
    )


async def get_cart(
    session: AsyncSession,
    redis: aioredis.Redis | None,
    user_id: str,
) -> Cart:
    cached = await cache.get_json(redis, cache.user_cart_key(user_id))
    if cached:
        return Cart.model_validate(cached)

    cart = await load_cart(session, user_id)
    await cache.set_json(
        redis,
        cache.user_cart_key(user_id),
        cart.model_dump(mode="json", by_alias=True),
        cache.CART_TTL,
    )
    return cart


async def update_cart(
    session: AsyncSession,
    redis: aioredis.Redis | None,
    user_id: str,
    items: list[CartItem],
) -> Cart:
    """カートを丸ごと置き換える。各項目は注文時と同じ条件で検証する。"""
    await _require_user(session, user_id)
    for item in items:
        await validate_item(session, item)

    cart = Cart.of(items)
    await save_cart(session, user_id, cart)
    await session.commit()

    await cache.set_json(
        redis,
        cache.user_cart_key(user_id),
        cart.model_dump(mode="json", by_alias=True),
        cache.CART_TTL,
    )
    logger.info("Cart updated for user: %s", user_id)
    return cart


async def clear_cart(
    session: AsyncSession,
    redis: aioredis.Redis | None,
    user_id: str,
) -> None:
    await _require_user(session, user_id)
    await save_cart(session, user_id, Cart())
    await session.commit()
    await cache.delete(redis, cache.user_cart_key(user_id))
    logger.info("Cart cleared for user: %s", user_id)
