"""
Order Service — コマンドハンドラ (書き込み側)

注文作成（チェックアウト）とステータス変更。
状態を変えたコマンドは、コミット後に order_events へイベントを発行する。
"""

import logging
import secrets
import string
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import redis.asyncio as aioredis
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from . import cart as carts
from . import coupons, events
from .aggregate import OrderAggregate, OrderStatus
from .auth import Actor
from .cart import CartItem
from .errors import AccessDenied, InvalidState
from .money import quantize
from .queries import load_aggregate, serialize_order
from .schema import order_items, orders
from .schemas import CreateOrderRequest

logger = logging.getLogger(__name__)

_ORDER_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase


def generate_order_number() -> str:
    """ORD-<ミリ秒>-<ランダム9文字>。order_number には一意制約もある。"""
    suffix = "".join(secrets.choice(_ORDER_SUFFIX_ALPHABET) for _ in range(9))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def group_by_store(validated: list[tuple[CartItem, str]]) -> dict[str, list[CartItem]]:
    """
    カート項目をストアごとに分ける。グループの順序は最初に現れた順。

    同じ商品が複数行あれば数量を合算して1行にする（価格は検証済みで同じ）。
    """
    groups: dict[str, dict[str, CartItem]] = {}
    for item, store_id in validated:
        lines = groups.setdefault(store_id, {})
        existing = lines.get(item.product_id)
        if existing is None:
            lines[item.product_id] = item
        else:
            lines[item.product_id] = existing.model_copy(
                update={"quantity": existing.quantity + item.quantity}
            )
    return {store_id: list(lines.values()) for store_id, lines in groups.items()}


def store_subtotal(items: list[CartItem]) -> Decimal:
    return quantize(sum((item.price * item.quantity for item in items), Decimal("0")))


async def create_order(
    session: AsyncSession,
    redis: aioredis.Redis | None,
    user_id: str,
    req: CreateOrderRequest,
) -> dict | list[dict]:
    """
    カートから注文を作成する。

    1. カートを読む（空なら失敗）
    2. 各項目を現在のカタログで検証（存在・在庫・価格）
    3. ストアごとにグループ化し、小計を計算
    4. 使えるクーポンがあれば各グループの小計に適用し、グループごとに利用回数を加算
       （存在しない・無効・期限切れのコードは無視、上限到達はエラー）
    5. グループごとに orders + order_items を INSERT
    6. カートを空にする
    7. すべてを1トランザクションでコミット

    途中で失敗した場合は何も書き込まれず、カートもそのまま残る。
    ストアが1つなら注文1件、複数なら処理順の注文リストを返す。
    キャッシュの無効化は呼び出し側の責務。
    """
    try:
        cart = await carts.load_cart(session, user_id)
        if not cart.items:
            raise InvalidState("Cart is empty")

        validated = []
        for item in cart.items:
            product = await carts.validate_item(session, item)
            validated.append((item, product.store_id))
        groups = group_by_store(validated)

        coupon = None
        if req.coupon_code:
            coupon = await coupons.get_redeemable(session, req.coupon_code)

        now = datetime.now(timezone.utc)
        shipping_address = req.shipping_address.model_dump()
        created = []

        for store_id, items in groups.items():
            total = store_subtotal(items)
            if coupon:
                total = coupons.apply_discount(total, coupon)
                await coupons.redeem(session, coupon.id)

            values = {
                "id": str(uuid.uuid4()),
                "order_number": generate_order_number(),
                "total": total,
                "status": OrderStatus.PENDING.value,
                "user_id": user_id,
                "store_id": store_id,
                "is_paid": False,
                "payment_method": req.payment_method.value,
                "payment_id": None,
                "is_coupon_used": coupon is not None,
                "coupon": coupon.code if coupon else None,
                "shipping_address": shipping_address,
                "created_at": now,
                "updated_at": now,
            }
            await session.execute(orders.insert().values(**values))
            await session.execute(
                order_items.insert(),
                [
                    {
                        "id": str(uuid.uuid4()),
                        "order_id": values["id"],
                        "product_id": item.product_id,
                        "quantity": item.quantity,
                        "price": item.price,
                    }
                    for item in items
                ],
            )

            order = serialize_order(values)
            order["items"] = [
                {"productId": i.product_id, "quantity": i.quantity, "price": float(i.price)}
                for i in items
            ]
            created.append(order)

        await carts.save_cart(session, user_id, carts.Cart())
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info("Orders created for user %s, count %d", user_id, len(created))

    for order in created:
        await events.publish(redis, events.OrderCreated(
            order_id=order["id"],
            order_number=order["orderNumber"],
            user_id=user_id,
            store_id=order["storeId"],
            total=Decimal(str(order["total"])),
            coupon=order["coupon"],
            timestamp=now,
        ))

    return created[0] if len(created) == 1 else created


# ── ステータス変更 ───────────────────────────────

async def _apply_transition(
    session: AsyncSession,
    redis: aioredis.Redis | None,
    agg: OrderAggregate,
    previous: OrderStatus,
    actor_id: str | None,
) -> None:
    now = datetime.now(timezone.utc)
    await session.execute(
        update(orders)
        .where(orders.c.id == agg.id)
        .values(status=agg.status.value, updated_at=now)
    )
    await session.commit()

    await events.publish(redis, events.OrderStatusChanged(
        order_id=agg.id,
        from_status=previous.value,
        to_status=agg.status.value,
        actor_id=actor_id,
        timestamp=now,
    ))


async def update_order_status(
    session: AsyncSession,
    redis: aioredis.Redis | None,
    order_id: str,
    status: OrderStatus,
    actor: Actor,
) -> OrderAggregate:
    """ストア所有者（または管理者）がステータスを進める。"""
    agg = await load_aggregate(session, order_id)
    if not actor.is_admin and not agg.is_seller(actor.id):
        raise AccessDenied()

    previous = agg.transition_to(status)
    await _apply_transition(session, redis, agg, previous, actor.id)
    logger.info("Order status updated: %s %s -> %s", order_id, previous.value, agg.status.value)
    return agg


async def cancel_order(
    session: AsyncSession,
    redis: aioredis.Redis | None,
    order_id: str,
    actor: Actor,
) -> OrderAggregate:
    """購入者・ストア所有者・管理者が出荷前の注文をキャンセルする。"""
    agg = await load_aggregate(session, order_id)
    if not (actor.is_admin or agg.is_buyer(actor.id) or agg.is_seller(actor.id)):
        raise AccessDenied()

    previous = agg.cancel()
    await _apply_transition(session, redis, agg, previous, actor.id)
    logger.info("Order cancelled: %s", order_id)
    return agg


async def refund_order(
    session: AsyncSession,
    redis: aioredis.Redis | None,
    order_id: str,
    actor: Actor,
) -> OrderAggregate:
    agg = await load_aggregate(session, order_id)
    previous = agg.refund()
    await _apply_transition(session, redis, agg, previous, actor.id)
    logger.info("Order refunded: %s", order_id)
    return agg
