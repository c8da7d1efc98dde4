"""
数据库引擎与会话工厂
"""
from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings
from core.logging_config import get_logger
from infrastructure.models import Base


logger = get_logger(__name__)

_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def build_async_url(database_url: str) -> str:
    """确保数据库URL使用异步驱动（asyncpg / aiosqlite）"""
    url = make_url(database_url)
    drivername = url.drivername
    if "+" in drivername:
        return database_url
    if drivername not in _ASYNC_DRIVERS:
        raise ValueError(f"不支持的数据库驱动: {drivername}. 请使用 async 驱动或更新 DATABASE__URL")
    return url.set(drivername=_ASYNC_DRIVERS[drivername]).render_as_string(hide_password=False)


def build_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    url = build_async_url(database_url)
    kwargs = {"echo": echo}
    if not url.startswith("sqlite"):
        kwargs["pool_pre_ping"] = True
    return create_async_engine(url, **kwargs)


engine = build_engine(settings.database.url, echo=False)

# 会话在提交后不过期，便于仓储把模型转换为实体
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """获取数据库会话（不自动提交，由调用方控制事务）"""
    async with AsyncSessionLocal() as session:
        yield session


async def create_tables(target: AsyncEngine = engine) -> None:
    """根据 models 中定义的模型建表（开发环境启动时调用）"""
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_tables_created", url=make_url(str(target.url)).render_as_string(hide_password=True))


async def dispose_engine(target: AsyncEngine = engine) -> None:
    await target.dispose()
