"""
Order Service — クエリハンドラ (読み取り側)

注文の参照系。一覧はすべて新しい順で、ページネーション情報を付けて返す。
"""

import math

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from . import catalog
from .aggregate import OrderAggregate
from .auth import Actor
from .errors import AccessDenied, NotFound
from .schema import order_items, orders, products, stores, users


def serialize_order(row) -> dict:
    """orders 行（または同じキーを持つ dict）を API 表現に変換する。"""
    return {
        "id": row["id"],
        "orderNumber": row["order_number"],
        "total": float(row["total"]),
        "status": row["status"],
        "userId": row["user_id"],
        "storeId": row["store_id"],
        "isPaid": bool(row["is_paid"]),
        "paymentMethod": row["payment_method"],
        "paymentId": row["payment_id"],
        "isCouponUsed": bool(row["is_coupon_used"]),
        "coupon": row["coupon"],
        "shippingAddress": row["shipping_address"],
        "createdAt": row["created_at"].isoformat() if row["created_at"] else None,
        "updatedAt": row["updated_at"].isoformat() if row["updated_at"] else None,
    }


def _pagination(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "hasNext": page * limit < total,
        "hasPrev": page > 1,
    }


async def load_aggregate(session: AsyncSession, order_id: str) -> OrderAggregate:
    result = await session.execute(
        select(
            orders.c.id,
            orders.c.status,
            orders.c.user_id,
            stores.c.user_id.label("store_owner_id"),
        )
        .select_from(orders.join(stores, stores.c.id == orders.c.store_id))
        .where(orders.c.id == order_id)
    )
    row = result.fetchone()
    if not row:
        raise NotFound("Order not found")
    return OrderAggregate.from_row(row)


async def ensure_order_access(session: AsyncSession, order_id: str, actor: Actor) -> None:
    """購入者・ストア所有者・管理者のみ注文を参照できる。"""
    if actor.is_admin:
        return
    agg = await load_aggregate(session, order_id)
    if not (agg.is_buyer(actor.id) or agg.is_seller(actor.id)):
        raise AccessDenied("Access denied. You can only access your own orders")


async def get_order(session: AsyncSession, order_id: str) -> dict:
    result = await session.execute(select(orders).where(orders.c.id == order_id))
    row = result.fetchone()
    if not row:
        raise NotFound("Order not found")

    order = serialize_order(row._mapping)
    order["items"] = await _load_items(session, [order_id])
    return order


async def _load_items(session: AsyncSession, order_ids: list[str]) -> list[dict]:
    result = await session.execute(
        select(
            order_items.c.id,
            order_items.c.order_id,
            order_items.c.product_id,
            order_items.c.quantity,
            order_items.c.price,
            products.c.name.label("product_name"),
        )
        .select_from(order_items.join(products, products.c.id == order_items.c.product_id))
        .where(order_items.c.order_id.in_(order_ids))
    )
    return [
        {
            "id": row.id,
            "orderId": row.order_id,
            "productId": row.product_id,
            "productName": row.product_name,
            "quantity": row.quantity,
            "price": float(row.price),
        }
        for row in result.fetchall()
    ]


async def _list_orders(
    session: AsyncSession,
    where,
    page: int,
    limit: int,
    with_items: bool = True,
) -> dict:
    query = select(orders).order_by(orders.c.created_at.desc())
    count_query = select(func.count()).select_from(orders)
    if where is not None:
        query = query.where(where)
        count_query = count_query.where(where)

    result = await session.execute(query.offset((page - 1) * limit).limit(limit))
    data = [serialize_order(row._mapping) for row in result.fetchall()]
    total = (await session.execute(count_query)).scalar_one()

    if with_items and data:
        items = await _load_items(session, [o["id"] for o in data])
        for order in data:
            order["items"] = [i for i in items if i["orderId"] == order["id"]]

    return {"data": data, "pagination": _pagination(page, limit, total)}


async def list_orders_by_user(session: AsyncSession, user_id: str, page: int = 1, limit: int = 20) -> dict:
    result = await session.execute(select(users.c.id).where(users.c.id == user_id))
    if result.scalar_one_or_none() is None:
        raise NotFound("User not found")
    return await _list_orders(session, orders.c.user_id == user_id, page, limit)


async def list_orders_by_store(
    session: AsyncSession,
    store_id: str,
    actor: Actor,
    page: int = 1,
    limit: int = 20,
) -> dict:
    owner_id = await catalog.get_store_owner(session, store_id)
    if not actor.is_admin and owner_id != actor.id:
        raise AccessDenied()
    return await _list_orders(session, orders.c.store_id == store_id, page, limit)


async def list_all_orders(session: AsyncSession, page: int = 1, limit: int = 20) -> dict:
    """全注文一覧（管理者用）。明細は含めない。"""
    return await _list_orders(session, None, page, limit, with_items=False)
