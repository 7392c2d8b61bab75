"""
Order Service — データベース接続

エンジンとセッションファクトリはモジュールレベルで1つだけ作る。
リクエストごとのセッションは get_session 依存関係から受け取る。
"""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from .config import DATABASE_URL
from .schema import metadata

engine = create_async_engine(DATABASE_URL, echo=False)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


async def init_db(bind: AsyncEngine = engine) -> None:
    """テーブルが無ければ作成する。"""
    async with bind.begin() as conn:
        await conn.run_sync(metadata.create_all)
