"""
Order Service — Redis キャッシュ

キャッシュはあくまで高速化のためのもので、正はデータベース側にある。
Redis が未接続・障害時はすべてキャッシュミスとして扱い、
リクエスト自体は失敗させない（ベストエフォート）。
"""

import json
import logging
import time

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .errors import RateLimited

logger = logging.getLogger(__name__)


# ── キーと TTL ───────────────────────────────────

def user_cart_key(user_id: str) -> str:
    return f"cart:{user_id}"


def product_key(product_id: str) -> str:
    return f"product:{product_id}"


def rate_limit_key(prefix: str, identifier: str, window_start: int) -> str:
    return f"rate_limit:{prefix}:{identifier}:{window_start}"


CART_TTL = 86400       # 24 時間
PRODUCT_TTL = 7200     # 2 時間


# ── 基本操作 ─────────────────────────────────────

async def get_json(redis: aioredis.Redis | None, key: str) -> dict | None:
    if redis is None:
        return None
    try:
        raw = await redis.get(key)
    except RedisError:
        logger.warning("Redis GET failed for %s", key, exc_info=True)
        return None
    return json.loads(raw) if raw else None


async def set_json(redis: aioredis.Redis | None, key: str, value: dict, ttl: int) -> bool:
    if redis is None:
        return False
    try:
        await redis.set(key, json.dumps(value, default=str), ex=ttl)
    except RedisError:
        logger.warning("Redis SET failed for %s", key, exc_info=True)
        return False
    return True


async def delete(redis: aioredis.Redis | None, *keys: str) -> bool:
    if redis is None or not keys:
        return False
    try:
        await redis.delete(*keys)
    except RedisError:
        logger.warning("Redis DEL failed for %s", keys, exc_info=True)
        return False
    return True


async def invalidate_checkout(
    redis: aioredis.Redis | None,
    user_id: str,
    product_ids: list[str],
) -> None:
    """注文作成後に古くなったカート・商品のキャッシュを消す。"""
    await delete(redis, user_cart_key(user_id), *(product_key(pid) for pid in product_ids))


# ── レート制限 ───────────────────────────────────

async def enforce_rate_limit(
    redis: aioredis.Redis | None,
    prefix: str,
    identifier: str,
    limit: int,
    window_seconds: int,
) -> int:
    """
    固定ウィンドウ方式のレート制限。

    ウィンドウごとのカウンタを INCR し、上限を超えたら RateLimited を送出する。
    Redis が使えない場合はリクエストを通す。残り回数を返す。
    """
    if redis is None:
        return limit
    now = time.time()
    window_start = int(now // window_seconds) * window_seconds
    key = rate_limit_key(prefix, identifier, window_start)
    try:
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, window_seconds)
    except RedisError:
        logger.warning("Rate limiter unavailable, allowing request", exc_info=True)
        return limit

    if count > limit:
        raise RateLimited(retry_after=max(1, int(window_start + window_seconds - now)))
    return limit - count
