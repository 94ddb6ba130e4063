"""数据库会话管理"""

import threading
from collections.abc import AsyncGenerator

import structlog
from fastapi import Request
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from studymate.core.config import DatabaseSettings
from studymate.db.server_version import ServerVersion

logger = structlog.get_logger()


class DatabaseContextFactory:
    """数据库上下文工厂

    引擎在第一次使用时才创建，注册阶段不会建立任何连接。
    """

    def __init__(self, url: URL, server_version: ServerVersion, settings: DatabaseSettings) -> None:
        self.url = url
        self.server_version = server_version
        self.settings = settings
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None
        self._lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        return self._ensure_engine()

    def _ensure_engine(self) -> AsyncEngine:
        with self._lock:
            if self._engine is None:
                # SQLite 不支持连接池参数
                engine_kwargs: dict = {"echo": self.settings.echo}
                if self.url.get_backend_name() != "sqlite":
                    engine_kwargs["pool_pre_ping"] = self.settings.pool_pre_ping
                    engine_kwargs["pool_size"] = self.settings.pool_size
                    engine_kwargs["max_overflow"] = self.settings.max_overflow

                self._engine = create_async_engine(self.url, **engine_kwargs)
                self._sessionmaker = async_sessionmaker(
                    self._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                    autoflush=False,
                )
                logger.info(
                    "Database engine created",
                    url=self.url.render_as_string(hide_password=True),
                    server_version=str(self.server_version),
                )
            return self._engine

    def session(self) -> AsyncSession:
        """创建新的会话，每次使用单独获取"""
        self._ensure_engine()
        return self._sessionmaker()

    async def dispose(self) -> None:
        with self._lock:
            engine, self._engine, self._sessionmaker = self._engine, None, None
        if engine is not None:
            await engine.dispose()
            logger.info("Database engine disposed")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """获取数据库会话（依赖注入用）"""
    factory: DatabaseContextFactory = request.app.state.services.get(DatabaseContextFactory)
    async with factory.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
