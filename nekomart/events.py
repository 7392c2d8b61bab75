"""
Order Service — イベント定義

注文に起きた事実を過去形で命名し、order_events チャネルに発行する。
Redis Pub/Sub は fire-and-forget なので、購読側が落ちていれば失われる。
"""

import json
import logging
from datetime import datetime
from decimal import Decimal

import redis.asyncio as aioredis
from pydantic import BaseModel
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

ORDER_EVENTS_CHANNEL = "order_events"


class OrderCreated(BaseModel):
    """注文が作成された（ストアごとに1件）"""
    order_id: str
    order_number: str
    user_id: str
    store_id: str
    total: Decimal
    coupon: str | None = None
    timestamp: datetime


class OrderStatusChanged(BaseModel):
    """注文ステータスが変わった（キャンセル・返金を含む）"""
    order_id: str
    from_status: str
    to_status: str
    actor_id: str | None = None
    timestamp: datetime


async def publish(redis: aioredis.Redis | None, event: BaseModel) -> None:
    """
    イベントを発行する。

    DB のコミット後に呼ぶこと。発行に失敗しても書き込みは取り消さない。
    """
    if redis is None:
        return
    try:
        await redis.publish(ORDER_EVENTS_CHANNEL, json.dumps({
            "event_type": type(event).__name__,
            "data": event.model_dump(mode="json"),
        }, default=str))
    except RedisError:
        logger.warning("Failed to publish %s", type(event).__name__, exc_info=True)
