"""
Order Service — テーブル定義

SQLAlchemy Core の Table で定義する。
ユーザー(カートを保持)・ストア・商品・クーポンは他サービスの持ち物だが、
注文ワークフローが参照するカラムだけをここに宣言している。
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
)

metadata = MetaData()

MONEY = Numeric(12, 2)


users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(100), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("role", String(16), nullable=False, default="USER"),
    Column("is_active", Boolean, nullable=False, default=True),
    # {"items": [...], "total": ...} を JSON 文字列で保持する
    Column("cart", Text, nullable=True),
)

stores = Table(
    "stores",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id"), nullable=False),
    Column("name", String(100), nullable=False),
    Column("username", String(50), nullable=False, unique=True),
    Column("is_active", Boolean, nullable=False, default=True),
)

products = Table(
    "products",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("store_id", String(36), ForeignKey("stores.id"), nullable=False, index=True),
    Column("name", String(200), nullable=False),
    Column("price", MONEY, nullable=False),
    Column("in_stock", Boolean, nullable=False, default=True),
)

coupons = Table(
    "coupons",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("code", String(50), nullable=False, unique=True),
    Column("description", String(500), nullable=False, default=""),
    Column("discount", MONEY, nullable=False),
    Column("discount_type", String(16), nullable=False),
    Column("for_new_user", Boolean, nullable=False, default=False),
    Column("for_member", Boolean, nullable=False, default=False),
    Column("is_public", Boolean, nullable=False, default=True),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("usage_limit", Integer, nullable=False, default=0),
    Column("usage_count", Integer, nullable=False, default=0),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

orders = Table(
    "orders",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("order_number", String(64), nullable=False, unique=True),
    Column("total", MONEY, nullable=False),
    Column("status", String(16), nullable=False, default="PENDING"),
    Column("user_id", String(36), ForeignKey("users.id"), nullable=False, index=True),
    Column("store_id", String(36), ForeignKey("stores.id"), nullable=False, index=True),
    Column("is_paid", Boolean, nullable=False, default=False),
    Column("payment_method", String(32), nullable=False),
    Column("payment_id", String(128), nullable=True),
    Column("is_coupon_used", Boolean, nullable=False, default=False),
    Column("coupon", String(50), nullable=True),
    Column("shipping_address", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

order_items = Table(
    "order_items",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("order_id", String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("product_id", String(36), ForeignKey("products.id"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("price", MONEY, nullable=False),
)
