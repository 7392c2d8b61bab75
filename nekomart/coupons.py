"""
Order Service — クーポン

割引計算と利用回数の管理。
利用回数の加算は必ず DB 側の条件付き UPDATE で行い、
アプリ側で読んで足して書く（read-modify-write）ことはしない。
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import Conflict, InvalidState
from .money import quantize
from .schema import coupons

logger = logging.getLogger(__name__)


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


@dataclass(frozen=True)
class Coupon:
    id: str
    code: str
    discount: Decimal
    discount_type: DiscountType
    is_active: bool
    expires_at: datetime
    usage_limit: int
    usage_count: int

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit > 0 and self.usage_count >= self.usage_limit

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or datetime.now(timezone.utc))


def _aware(value: datetime) -> datetime:
    # SQLite は tzinfo を落として返す
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _from_row(row) -> Coupon:
    return Coupon(
        id=row.id,
        code=row.code,
        discount=Decimal(row.discount),
        discount_type=DiscountType(row.discount_type),
        is_active=bool(row.is_active),
        expires_at=_aware(row.expires_at),
        usage_limit=row.usage_limit,
        usage_count=row.usage_count,
    )


def apply_discount(subtotal: Decimal, coupon: Coupon) -> Decimal:
    """
    小計に割引を適用する。

    PERCENTAGE: subtotal * (1 - d/100)
    FIXED:      max(0, subtotal - d)
    """
    if coupon.discount_type is DiscountType.PERCENTAGE:
        discounted = subtotal * (1 - coupon.discount / 100)
    else:
        discounted = subtotal - coupon.discount
    return quantize(max(Decimal("0"), discounted))


async def get_redeemable(session: AsyncSession, code: str) -> Coupon | None:
    """
    コードでクーポンを引き、今使えるものだけを返す。

    存在しない・無効・期限切れのクーポンは None（割引なしで注文を続ける）。
    利用上限に達したクーポンだけは InvalidState で注文自体を止める。
    """
    result = await session.execute(select(coupons).where(coupons.c.code == code))
    row = result.fetchone()
    if not row:
        logger.info("Coupon %s not found, ignoring", code)
        return None

    coupon = _from_row(row)
    if not coupon.is_active or coupon.is_expired():
        logger.info("Coupon %s is inactive or expired, ignoring", code)
        return None
    if coupon.is_exhausted:
        raise InvalidState("Coupon usage limit exceeded")
    return coupon


async def redeem(session: AsyncSession, coupon_id: str) -> None:
    """
    利用回数を 1 増やす。

    上限付きクーポンは usage_count < usage_limit の行だけを更新するので、
    同時に使われても上限を超えない。更新 0 行なら上限到達。
    """
    result = await session.execute(
        update(coupons)
        .where(coupons.c.id == coupon_id)
        .where(or_(coupons.c.usage_limit == 0, coupons.c.usage_count < coupons.c.usage_limit))
        .values(usage_count=coupons.c.usage_count + 1)
    )
    if result.rowcount == 0:
        raise InvalidState("Coupon usage limit exceeded")


# ── 管理者向け ───────────────────────────────────

async def create_coupon(session: AsyncSession, data: dict) -> dict:
    coupon_id = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    values = {
        "id": coupon_id,
        "code": data["code"],
        "description": data.get("description", ""),
        "discount": data["discount"],
        "discount_type": DiscountType(data["discount_type"]).value,
        "for_new_user": data.get("for_new_user", False),
        "for_member": data.get("for_member", False),
        "is_public": data.get("is_public", True),
        "is_active": True,
        "usage_limit": data.get("usage_limit", 0),
        "usage_count": 0,
        "expires_at": data["expires_at"],
        "created_at": now,
    }
    try:
        await session.execute(coupons.insert().values(**values))
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict(f"Coupon code {data['code']} already exists")

    logger.info("Coupon created: %s", data["code"])
    return _to_dict(values)


async def list_coupons(session: AsyncSession) -> list[dict]:
    result = await session.execute(select(coupons).order_by(coupons.c.created_at.desc()))
    return [_to_dict(row._mapping) for row in result.fetchall()]


def _to_dict(row) -> dict:
    return {
        "id": row["id"],
        "code": row["code"],
        "description": row["description"],
        "discount": float(row["discount"]),
        "discountType": row["discount_type"],
        "forNewUser": bool(row["for_new_user"]),
        "forMember": bool(row["for_member"]),
        "isPublic": bool(row["is_public"]),
        "isActive": bool(row["is_active"]),
        "usageLimit": row["usage_limit"],
        "usageCount": row["usage_count"],
        "expiresAt": row["expires_at"].isoformat() if row["expires_at"] else None,
    }
