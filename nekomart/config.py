"""
Order Service — 設定

すべての設定は環境変数から読み込む。
REDIS_URL が未設定の場合、キャッシュ・レート制限・イベント発行は無効になる。
"""

import os

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./nekomart.db")
REDIS_URL = os.environ.get("REDIS_URL")

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")

CORS_ORIGINS = os.environ.get("CORS_ORIGIN", "http://localhost:3000").split(",")
CORS_CREDENTIALS = os.environ.get("CORS_CREDENTIALS") == "true"

# ── JWT ──────────────────────────────────────────

JWT_ACCESS_SECRET = os.environ.get("JWT_ACCESS_SECRET", "nekomart-dev-access-secret")
JWT_ALGORITHM = "HS256"
JWT_ISSUER = os.environ.get("JWT_ISSUER", "nekomart-api")
JWT_AUDIENCE = os.environ.get("JWT_AUDIENCE", "nekomart-client")
ACCESS_TOKEN_EXPIRES_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRES_MINUTES", "15"))

# ── レート制限（注文作成） ────────────────────────

ORDER_RATE_LIMIT = int(os.environ.get("ORDER_RATE_LIMIT", "5"))
ORDER_RATE_WINDOW_SECONDS = int(os.environ.get("ORDER_RATE_WINDOW_SECONDS", "60"))

# ── ログ ─────────────────────────────────────────

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = os.environ.get(
    "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
