"""Engine construction shared by the HTTP lifespan and the admin bootstrap command."""

from typing import Optional

from number_pool_service.config.settings import Settings, settings
from number_pool_service.models.schemas import AdminCreatedResult
from number_pool_service.repositories.connection import RedisConnectionManager
from number_pool_service.repositories.memory_repository import (
    InMemoryInventoryRepository,
    InMemoryUserRepository,
)
from number_pool_service.repositories.redis_repository import (
    RedisInventoryRepository,
    RedisUserRepository,
)
from number_pool_service.services.engine import NumberPoolEngine


def create_engine(
    config: Settings,
    manager: Optional[RedisConnectionManager] = None
) -> NumberPoolEngine:
    """Build the engine over the configured store.

    The Redis backend needs a connection manager; the memory backend
    ignores it.
    """
    if config.storage_backend == "memory":
        return NumberPoolEngine(
            InMemoryInventoryRepository(), InMemoryUserRepository(), settings=config
        )

    if manager is None:
        raise ValueError("A Redis connection manager is required for the redis backend")

    repository_options = {
        "key_prefix": config.redis_key_prefix,
        "batch_size": config.release_batch_size,
    }
    return NumberPoolEngine(
        RedisInventoryRepository(manager, **repository_options),
        RedisUserRepository(manager, **repository_options),
        settings=config
    )


async def setup_admin(config: Optional[Settings] = None) -> AdminCreatedResult:
    """Create the admin account out of band, outside the HTTP surface.

    Raises:
        ConflictError: If the admin account already exists
        InfrastructureError: If the store is unavailable
    """
    config = config or settings

    manager = None
    if config.storage_backend != "memory":
        manager = RedisConnectionManager(config)
        await manager.initialize()

    try:
        engine = create_engine(config, manager)
        return await engine.create_admin_user()
    finally:
        if manager is not None:
            await manager.close()
