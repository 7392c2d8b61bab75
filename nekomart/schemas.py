"""
Order Service — リクエスト / レスポンスモデル

リクエストボディの検証は pydantic に任せる。JSON のキーは camelCase。
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .aggregate import OrderStatus
from .cart import CartItem
from .coupons import DiscountType

PHONE_PATTERN = r"^(\+62|62|0)8[1-9][0-9]{6,9}$"
COUPON_CODE_PATTERN = r"^[A-Z0-9_-]+$"


class PaymentMethod(str, Enum):
    COD = "COD"
    BANK_TRANSFER = "BANK_TRANSFER"
    GOPAY = "GOPAY"
    OVO = "OVO"
    DANA = "DANA"
    CREDIT_CARD = "CREDIT_CARD"


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── 注文 ─────────────────────────────────────────

class ShippingAddress(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    address: str = Field(min_length=10, max_length=500)
    phone: str = Field(pattern=PHONE_PATTERN)


class CreateOrderRequest(CamelModel):
    payment_method: PaymentMethod = Field(alias="paymentMethod")
    coupon_code: str | None = Field(default=None, alias="couponCode", min_length=3, max_length=50)
    shipping_address: ShippingAddress = Field(alias="shippingAddress")


class UpdateStatusRequest(CamelModel):
    status: OrderStatus


# ── カート ───────────────────────────────────────

class UpdateCartRequest(CamelModel):
    items: list[CartItem]


# ── クーポン ─────────────────────────────────────

class CreateCouponRequest(CamelModel):
    code: str = Field(min_length=3, max_length=50, pattern=COUPON_CODE_PATTERN)
    description: str = Field(default="", max_length=500)
    discount: Decimal = Field(gt=0)
    discount_type: DiscountType = Field(alias="discountType")
    for_new_user: bool = Field(default=False, alias="forNewUser")
    for_member: bool = Field(default=False, alias="forMember")
    is_public: bool = Field(default=True, alias="isPublic")
    usage_limit: int = Field(default=0, ge=0, alias="usageLimit")
    expires_at: datetime = Field(alias="expiresAt")

    @model_validator(mode="after")
    def check_percentage(self) -> "CreateCouponRequest":
        if self.discount_type is DiscountType.PERCENTAGE and self.discount > 100:
            raise ValueError("Percentage discount cannot exceed 100%")
        return self


# ── レスポンス ───────────────────────────────────

def success(message: str, data: Any = None, **extra: Any) -> dict:
    """{status, message, data} 形式で包む。"""
    body = {"status": "success", "message": message}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body
