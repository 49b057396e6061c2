"""
数据库配置和连接管理
"""
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.engine import make_url
from sqlalchemy.pool import NullPool
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from core.config import settings
from infrastructure.models import Base

ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def _build_async_url(database_url: str) -> str:
    """确保数据库URL使用异步驱动"""
    url = make_url(database_url)
    if "+" in url.drivername:
        return database_url
    if url.drivername not in ASYNC_DRIVERS:
        raise ValueError(f"不支持的数据库驱动: {url.drivername}. 请使用 async 驱动或更新 DATABASE__URL")
    return url.set(drivername=ASYNC_DRIVERS[url.drivername]).render_as_string(hide_password=False)


engine = create_async_engine(
    _build_async_url(settings.database.url),
    echo=False,
    future=True,
)

# 创建异步会话工厂（提交后不过期）
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """获取数据库会话；仓储在 save 时提交。"""
    async with AsyncSessionLocal() as session:
        yield session


async def create_tables():
    """根据 models 中定义的模型创建订单、客户与支付方式表"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def task_session() -> AsyncGenerator[AsyncSession, None]:
    """Celery 任务专用会话：每次 asyncio.run 使用独立引擎，避免跨事件循环复用连接。"""
    task_engine = create_async_engine(_build_async_url(settings.database.url), poolclass=NullPool)
    try:
        async with async_sessionmaker(bind=task_engine, expire_on_commit=False)() as session:
            yield session
    finally:
        await task_engine.dispose()
