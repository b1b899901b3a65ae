"""Redis connection pool shared by the inventory and user repositories."""

import logging
from typing import Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError, TimeoutError, RedisError

from number_pool_service.config.settings import Settings

logger = logging.getLogger(__name__)


class RedisConnectionManager:
    """Owns one connection pool built from injected settings.

    The application lifespan creates a single manager and passes it to both
    repositories. Every command runs with `redis_socket_timeout`, so a hung
    server surfaces as a TimeoutError instead of blocking a request.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None
        self._is_connected = False

    def _build_pool(self) -> ConnectionPool:
        config = self._settings
        return ConnectionPool(
            host=config.redis_host,
            port=config.redis_port,
            db=config.redis_db,
            password=config.redis_password,
            socket_timeout=config.redis_socket_timeout,
            socket_connect_timeout=config.redis_connection_timeout,
            max_connections=config.redis_max_connections,
            decode_responses=True,
            retry_on_timeout=True,
            health_check_interval=30
        )

    async def initialize(self) -> None:
        """Create the pool and verify the server answers PING.

        Raises:
            redis.exceptions.RedisError: If the server cannot be reached
        """
        target = {"redis_host": self._settings.redis_host, "redis_port": self._settings.redis_port}
        try:
            self._pool = self._build_pool()
            self._client = Redis(connection_pool=self._pool)
            self._is_connected = await self.health_check()
            if not self._is_connected:
                raise ConnectionError("Redis did not answer PING")
        except RedisError as e:
            logger.error(
                "Failed to initialize Redis connection",
                extra={"operation": "redis_connect", "error": str(e), **target}
            )
            raise

        logger.info(
            "Redis connection pool ready",
            extra={
                "operation": "redis_connect",
                "redis_db": self._settings.redis_db,
                "key_prefix": self._settings.redis_key_prefix,
                **target
            }
        )

    async def get_client(self) -> Redis:
        """Client bound to the pool; reconnects lazily after a failed health check."""
        if self._client is None or not self._is_connected:
            await self.initialize()
        return self._client

    async def health_check(self) -> bool:
        """PING the server; any Redis failure marks the manager disconnected."""
        if self._client is None:
            return False
        try:
            alive = bool(await self._client.ping())
        except (ConnectionError, TimeoutError) as e:
            logger.warning("Redis unreachable", extra={"operation": "health_check", "error": str(e)})
            alive = False
        except RedisError as e:
            logger.error("Redis health check failed", extra={"operation": "health_check", "error": str(e)})
            alive = False

        if not alive:
            self._is_connected = False
        return alive

    async def close(self) -> None:
        try:
            if self._client is not None:
                await self._client.aclose()
            if self._pool is not None:
                await self._pool.aclose()
        except RedisError as e:
            logger.error("Error closing Redis connection", extra={"operation": "redis_close", "error": str(e)})
        finally:
            self._client = None
            self._pool = None
            self._is_connected = False

    @property
    def is_connected(self) -> bool:
        return self._is_connected
