from typing import AsyncGenerator
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.database import async_session
from catalog_sync.services.storage.base import CatalogStore
from catalog_sync.services.storage.sql import SqlCatalogStore
from catalog_sync.services.transport.base import FeedTransport
from catalog_sync.services.transport import default_transport


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_store(db: AsyncSession = Depends(get_db)) -> CatalogStore:
    return SqlCatalogStore(db)


def get_transport() -> FeedTransport:
    return default_transport()
