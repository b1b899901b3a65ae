"""Repository layer for data access."""

from number_pool_service.repositories.base import InventoryRepository, UserRepository
from number_pool_service.repositories.connection import RedisConnectionManager
from number_pool_service.repositories.memory_repository import (
    InMemoryInventoryRepository,
    InMemoryUserRepository,
)
from number_pool_service.repositories.redis_repository import (
    RedisInventoryRepository,
    RedisUserRepository,
)

__all__ = [
    "InventoryRepository",
    "UserRepository",
    "RedisConnectionManager",
    "InMemoryInventoryRepository",
    "InMemoryUserRepository",
    "RedisInventoryRepository",
    "RedisUserRepository",
]
