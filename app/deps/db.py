import logging
from typing import AsyncIterable

from dishka import Provider, Scope, provide
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.db import new_engine, new_session_maker
from app.settings.db import DatabaseSettings

logger = logging.getLogger(__name__)


class DbConnectionProvider(Provider):
    @provide(scope=Scope.APP)
    async def get_engine(self, settings: DatabaseSettings) -> AsyncIterable[AsyncEngine]:
        engine = new_engine(settings)
        yield engine
        await engine.dispose()
        logger.info("Database engine disposed")

    @provide(scope=Scope.APP)
    def get_session_maker(
        self, engine: AsyncEngine
    ) -> async_sessionmaker[AsyncSession]:
        return new_session_maker(engine)

    @provide(scope=Scope.REQUEST)
    async def get_session(
        self, session_maker: async_sessionmaker[AsyncSession]
    ) -> AsyncIterable[AsyncSession]:
        """Сессия на запрос; коммитит сам сервис, а не провайдер."""
        async with session_maker() as session:
            yield session
