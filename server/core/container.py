"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from core.database import Database
from core.cache import CacheService
from services.messages import DatabaseRowStore, MessageService


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    settings = providers.Singleton(
        Settings,
    )

    # Row store, and the SQL fallback for the cache
    database = providers.Singleton(
        Database,
        settings=settings
    )

    # Cache service (Redis when available, SQL otherwise)
    cache = providers.Singleton(
        CacheService,
        settings=settings,
        database=database
    )

    row_store = providers.Singleton(
        DatabaseRowStore,
        database=database
    )

    message_service = providers.Singleton(
        MessageService,
        store=row_store,
        cache=cache,
        settings=settings
    )


# Global container instance
container = Container()
