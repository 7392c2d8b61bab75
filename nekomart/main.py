"""
Order Service — FastAPI エントリーポイント

マルチベンダー EC の注文サービス。
書き込み (commands) と読み取り (queries) のモジュールを分け、
注文イベントは Redis Pub/Sub の order_events チャネルに発行する。
レスポンスはすべて {status, message, data} 形式で返す。
"""

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from . import cache, commands, config, coupons, queries
from . import cart as carts
from .auth import ADMIN_ROLES, Actor, get_current_actor, require_roles
from .database import get_session, init_db
from .errors import ERROR_STATUS_CODES, AccessDenied, NekomartError, RateLimited
from .logging_config import setup_logging
from .schemas import (
    CreateCouponRequest,
    CreateOrderRequest,
    UpdateCartRequest,
    UpdateStatusRequest,
    success,
)

logger = logging.getLogger(__name__)

redis_pool: aioredis.Redis | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global redis_pool
    setup_logging()
    await init_db()
    if config.REDIS_URL:
        redis_pool = aioredis.from_url(config.REDIS_URL, decode_responses=True)
    else:
        logger.warning("REDIS_URL not configured. Running without Redis cache.")
    yield
    if redis_pool is not None:
        await redis_pool.aclose()
        redis_pool = None


app = FastAPI(title="NekoMart Order Service", lifespan=lifespan)

# CORS 設定（フロントエンドのオリジンを許可）
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=config.CORS_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_redis() -> aioredis.Redis | None:
    return redis_pool


# ── 例外ハンドラ ─────────────────────────────────

@app.exception_handler(NekomartError)
async def nekomart_error_handler(request: Request, exc: NekomartError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": str(exc)},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(p) for p in err["loc"] if p != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"status": "error", "message": "Validation failed", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = "Internal server error"
    if config.ENVIRONMENT == "production":
        message = "Something went wrong"
    return JSONResponse(status_code=500, content={"status": "error", "message": message})


# ── 注文 (Command) ───────────────────────────────

@app.post("/api/orders", status_code=201)
async def create_order(
    req: CreateOrderRequest,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    redis: aioredis.Redis | None = Depends(get_redis),
):
    """カートから注文を作成する（ストアごとに1件）"""
    await cache.enforce_rate_limit(
        redis,
        "order_creation",
        actor.id,
        config.ORDER_RATE_LIMIT,
        config.ORDER_RATE_WINDOW_SECONDS,
    )
    result = await commands.create_order(session, redis, actor.id, req)

    placed = result if isinstance(result, list) else [result]
    product_ids = sorted({item["productId"] for order in placed for item in order["items"]})
    await cache.invalidate_checkout(redis, actor.id, product_ids)

    return success("Order created successfully", result)


@app.put("/api/orders/{order_id}/status")
async def update_order_status(
    order_id: str,
    req: UpdateStatusRequest,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    redis: aioredis.Redis | None = Depends(get_redis),
):
    await commands.update_order_status(session, redis, order_id, req.status, actor)
    order = await queries.get_order(session, order_id)
    return success("Order status updated successfully", order)


@app.post("/api/orders/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    redis: aioredis.Redis | None = Depends(get_redis),
):
    await commands.cancel_order(session, redis, order_id, actor)
    order = await queries.get_order(session, order_id)
    return success("Order cancelled successfully", order)


@app.post("/api/orders/{order_id}/refund")
async def refund_order(
    order_id: str,
    actor: Actor = Depends(require_roles(*ADMIN_ROLES)),
    session: AsyncSession = Depends(get_session),
    redis: aioredis.Redis | None = Depends(get_redis),
):
    await commands.refund_order(session, redis, order_id, actor)
    order = await queries.get_order(session, order_id)
    return success("Order refunded successfully", order)


# ── 注文 (Query) ─────────────────────────────────

@app.get("/api/orders")
async def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(require_roles(*ADMIN_ROLES)),
    session: AsyncSession = Depends(get_session),
):
    result = await queries.list_all_orders(session, page, limit)
    return success("All orders retrieved successfully", result["data"], pagination=result["pagination"])


@app.get("/api/orders/user/{user_id}")
async def list_user_orders(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    if not actor.is_admin and actor.id != user_id:
        raise AccessDenied()
    result = await queries.list_orders_by_user(session, user_id, page, limit)
    return success("User orders retrieved successfully", result["data"], pagination=result["pagination"])


@app.get("/api/orders/store/{store_id}")
async def list_store_orders(
    store_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    result = await queries.list_orders_by_store(session, store_id, actor, page, limit)
    return success("Store orders retrieved successfully", result["data"], pagination=result["pagination"])


@app.get("/api/orders/{order_id}")
async def get_order(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
):
    await queries.ensure_order_access(session, order_id, actor)
    order = await queries.get_order(session, order_id)
    return success("Order retrieved successfully", order)


# ── カート ───────────────────────────────────────

@app.get("/api/users/cart")
async def get_cart(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    redis: aioredis.Redis | None = Depends(get_redis),
):
    cart = await carts.get_cart(session, redis, actor.id)
    return success("Cart retrieved successfully", cart.model_dump(mode="json", by_alias=True))


@app.post("/api/users/cart")
async def update_cart(
    req: UpdateCartRequest,
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    redis: aioredis.Redis | None = Depends(get_redis),
):
    cart = await carts.update_cart(session, redis, actor.id, req.items)
    return success("Cart updated successfully", cart.model_dump(mode="json", by_alias=True))


@app.delete("/api/users/cart")
async def clear_cart(
    actor: Actor = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session),
    redis: aioredis.Redis | None = Depends(get_redis),
):
    await carts.clear_cart(session, redis, actor.id)
    return success("Cart cleared successfully")


# ── クーポン（管理者） ───────────────────────────

@app.get("/api/coupons")
async def list_coupons(
    actor: Actor = Depends(require_roles(*ADMIN_ROLES)),
    session: AsyncSession = Depends(get_session),
):
    return success("Coupons retrieved successfully", await coupons.list_coupons(session))


@app.post("/api/coupons", status_code=201)
async def create_coupon(
    req: CreateCouponRequest,
    actor: Actor = Depends(require_roles(*ADMIN_ROLES)),
    session: AsyncSession = Depends(get_session),
):
    coupon = await coupons.create_coupon(session, req.model_dump())
    return success("Coupon created successfully", coupon)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "order-service"}
