"""
Order Service — 認証・認可

アクセストークンの発行は認証サービスの責務。このサービスは
Bearer トークン(JWT, HS256)を検証し、ユーザー行を読んで Actor を作るだけ。
create_access_token は開発・テスト用。
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from . import config
from .database import get_session
from .errors import AccessDenied, Unauthorized
from .schema import users

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class Role(str, Enum):
    USER = "USER"
    SELLER = "SELLER"
    ADMIN = "ADMIN"
    FOUNDER = "FOUNDER"


ADMIN_ROLES = frozenset({Role.ADMIN, Role.FOUNDER})


@dataclass(frozen=True)
class Actor:
    id: str
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def create_access_token(user_id: str, email: str, role: str, expires_delta: timedelta | None = None) -> str:
    """JWT アクセストークンを生成する。"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRES_MINUTES)
    )
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "exp": expire,
        "iss": config.JWT_ISSUER,
        "aud": config.JWT_AUDIENCE,
    }
    return jwt.encode(payload, config.JWT_ACCESS_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            config.JWT_ACCESS_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            issuer=config.JWT_ISSUER,
            audience=config.JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except jwt.PyJWTError:
        logger.debug("Access token verification failed", exc_info=True)
        raise Unauthorized("Invalid or expired access token")


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> Actor:
    if credentials is None:
        raise Unauthorized("Access token required")

    payload = decode_access_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthorized("Invalid or expired access token")

    result = await session.execute(
        select(users.c.id, users.c.email, users.c.role, users.c.is_active)
        .where(users.c.id == user_id)
    )
    row = result.fetchone()
    if not row:
        raise Unauthorized("Session expired or invalid")
    if not row.is_active:
        raise Unauthorized("Account is deactivated")
    return Actor(id=row.id, email=row.email, role=Role(row.role))


def require_roles(*roles: Role):
    """指定ロールのいずれかを要求する依存関係を返す。"""

    async def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise AccessDenied("Insufficient permissions")
        return actor

    return dependency
