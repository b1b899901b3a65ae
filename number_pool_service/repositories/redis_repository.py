"""Redis implementation of the inventory and user repositories.

Key layout under the configured prefix:

    number:<number>   hash {number, is_assigned, assigned_owner}
    numbers           zset of every number scored by insertion sequence
    seq               insertion counter
    available         set of unassigned numbers
    owned:<user_id>   set of numbers linked to a user
    owners            set of user ids with a non-empty owned set
    user:<user_id>    hash {user_id, name, is_admin, assigned_count, used_count}
    users             set of every user id

Conditional writes run as Lua scripts so each check-and-set over a batch is
a single atomic step on the server.
"""

import functools
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set

from redis.asyncio import Redis
from redis.exceptions import ConnectionError, TimeoutError, RedisError

from number_pool_service.config.logging import LoggingService
from number_pool_service.exceptions import ConflictError, InfrastructureError
from number_pool_service.models.schemas import InsertOutcome, PhoneNumberRecord, UserRecord
from number_pool_service.repositories.base import InventoryRepository, UserRepository
from number_pool_service.repositories.connection import RedisConnectionManager

logger = logging.getLogger(__name__)
logging_service = LoggingService(__name__)


INSERT_NUMBERS_SCRIPT = """
local prefix = ARGV[1]
local inserted = {}
local conflicts = {}
for i = 2, #ARGV do
    local number = ARGV[i]
    local key = prefix .. 'number:' .. number
    if redis.call('EXISTS', key) == 1 then
        table.insert(conflicts, number)
    else
        redis.call('HSET', key, 'number', number, 'is_assigned', '0', 'assigned_owner', '')
        local seq = redis.call('INCR', prefix .. 'seq')
        redis.call('ZADD', prefix .. 'numbers', seq, number)
        redis.call('SADD', prefix .. 'available', number)
        table.insert(inserted, number)
    end
end
return {inserted, conflicts}
"""

CLAIM_NUMBERS_SCRIPT = """
local prefix = ARGV[1]
local owner = ARGV[2]
local claimed = {}
for i = 3, #ARGV do
    local number = ARGV[i]
    local key = prefix .. 'number:' .. number
    if redis.call('HGET', key, 'is_assigned') == '0' then
        redis.call('HSET', key, 'is_assigned', '1', 'assigned_owner', owner)
        redis.call('SREM', prefix .. 'available', number)
        redis.call('SADD', prefix .. 'owned:' .. owner, number)
        table.insert(claimed, number)
    end
end
if #claimed > 0 then
    redis.call('SADD', prefix .. 'owners', owner)
end
return claimed
"""

RELEASE_NUMBERS_SCRIPT = """
local prefix = ARGV[1]
local owner = ARGV[2]
local owned = prefix .. 'owned:' .. owner
local released = {}
for i = 3, #ARGV do
    local number = ARGV[i]
    local key = prefix .. 'number:' .. number
    local state = redis.call('HMGET', key, 'is_assigned', 'assigned_owner')
    if state[1] == '1' and state[2] == owner then
        redis.call('HSET', key, 'is_assigned', '0', 'assigned_owner', '')
        redis.call('SADD', prefix .. 'available', number)
        table.insert(released, number)
    end
    redis.call('SREM', owned, number)
end
if redis.call('SCARD', owned) == 0 then
    redis.call('SREM', prefix .. 'owners', owner)
end
return released
"""

CONSUME_NUMBERS_SCRIPT = """
local prefix = ARGV[1]
local owner = ARGV[2]
local owned = prefix .. 'owned:' .. owner
for i = 3, #ARGV do
    local state = redis.call('HMGET', prefix .. 'number:' .. ARGV[i], 'is_assigned', 'assigned_owner')
    if state[1] ~= '1' or state[2] ~= owner then
        return 0
    end
end
for i = 3, #ARGV do
    local number = ARGV[i]
    redis.call('DEL', prefix .. 'number:' .. number)
    redis.call('SREM', owned, number)
    redis.call('ZREM', prefix .. 'numbers', number)
end
if redis.call('SCARD', owned) == 0 then
    redis.call('SREM', prefix .. 'owners', owner)
end
return 1
"""

CREATE_USERS_SCRIPT = """
local prefix = ARGV[1]
local created = {}
for i = 2, #ARGV, 5 do
    local user_id = ARGV[i]
    local key = prefix .. 'user:' .. user_id
    if redis.call('EXISTS', key) == 0 then
        redis.call('HSET', key, 'user_id', user_id, 'name', ARGV[i + 1], 'is_admin', ARGV[i + 2],
                   'assigned_count', ARGV[i + 3], 'used_count', ARGV[i + 4])
        redis.call('SADD', prefix .. 'users', user_id)
        table.insert(created, user_id)
    end
end
return created
"""

INCREMENT_ASSIGNED_SCRIPT = """
local key = ARGV[1] .. 'user:' .. ARGV[2]
if redis.call('EXISTS', key) == 0 then
    return {}
end
redis.call('HINCRBY', key, 'assigned_count', ARGV[3])
return redis.call('HGETALL', key)
"""

RESERVE_USAGE_SCRIPT = """
local key = ARGV[1] .. 'user:' .. ARGV[2]
local amount = tonumber(ARGV[3])
local counters = redis.call('HMGET', key, 'assigned_count', 'used_count')
if not counters[1] then
    return {}
end
if tonumber(counters[2]) + amount > tonumber(counters[1]) then
    return {}
end
redis.call('HINCRBY', key, 'used_count', amount)
return redis.call('HGETALL', key)
"""

REFUND_USAGE_SCRIPT = """
local key = ARGV[1] .. 'user:' .. ARGV[2]
local used = redis.call('HGET', key, 'used_count')
if not used then
    return {}
end
redis.call('HSET', key, 'used_count', math.max(0, tonumber(used) - tonumber(ARGV[3])))
return redis.call('HGETALL', key)
"""

RESET_COUNTERS_SCRIPT = """
local prefix = ARGV[1]
local reset_assigned = ARGV[2] == '1'
local reset_used = ARGV[3] == '1'
local changed = 0
for i = 4, #ARGV do
    local key = prefix .. 'user:' .. ARGV[i]
    local counters = redis.call('HMGET', key, 'assigned_count', 'used_count')
    local modified = false
    if reset_assigned and counters[1] and counters[1] ~= '0' then
        redis.call('HSET', key, 'assigned_count', '0')
        modified = true
    end
    if reset_used and counters[2] and counters[2] ~= '0' then
        redis.call('HSET', key, 'used_count', '0')
        modified = true
    end
    if modified then
        changed = changed + 1
    end
end
return changed
"""

DELETE_USERS_SCRIPT = """
local prefix = ARGV[1]
local deleted = 0
for i = 2, #ARGV do
    local key = prefix .. 'user:' .. ARGV[i]
    local is_admin = redis.call('HGET', key, 'is_admin')
    if is_admin and is_admin ~= '1' then
        redis.call('DEL', key)
        redis.call('SREM', prefix .. 'users', ARGV[i])
        deleted = deleted + 1
    end
end
return deleted
"""


def store_operation(operation: str):
    """Translate Redis connectivity failures into InfrastructureError."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except (ConnectionError, TimeoutError) as e:
                logging_service.log_error(
                    f"Redis connection error during {operation} operation",
                    e,
                    operation=operation
                )
                raise InfrastructureError("Redis service unavailable") from e
            except RedisError as e:
                logging_service.log_error(
                    f"Redis error during {operation} operation",
                    e,
                    operation=operation
                )
                raise
        return wrapper

    return decorator


def _pairs_to_dict(flat: Sequence[str]) -> Dict[str, str]:
    """Convert a flat HGETALL reply from a script into a dict."""
    return dict(zip(flat[::2], flat[1::2]))


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class RedisRepositoryBase:
    """Shared client access and key helpers."""

    def __init__(self, connection_manager: RedisConnectionManager, key_prefix: str = "pool:",
                 batch_size: int = 1000):
        self._connection_manager = connection_manager
        self._key_prefix = key_prefix
        self._batch_size = batch_size

    def _make_key(self, *parts: str) -> str:
        """Create Redis key under the configured prefix."""
        return self._key_prefix + ":".join(parts)

    async def _get_redis_client(self) -> Redis:
        """Get Redis client with error handling."""
        try:
            return await self._connection_manager.get_client()
        except (ConnectionError, TimeoutError) as e:
            logging_service.log_error(
                "Redis connection error",
                e,
                operation="get_client"
            )
            raise InfrastructureError("Redis service unavailable") from e

    async def _eval(self, script: str, *args) -> object:
        redis_client = await self._get_redis_client()
        return await redis_client.eval(script, 0, self._key_prefix, *args)


class RedisInventoryRepository(RedisRepositoryBase, InventoryRepository):
    """Redis implementation of InventoryRepository."""

    @store_operation("find_existing")
    async def find_existing(self, numbers: Sequence[str]) -> Set[str]:
        if not numbers:
            return set()
        redis_client = await self._get_redis_client()
        async with redis_client.pipeline(transaction=False) as pipe:
            for number in numbers:
                pipe.exists(self._make_key("number", number))
            results = await pipe.execute()
        return {number for number, exists in zip(numbers, results) if exists}

    @store_operation("insert_many")
    async def insert_many(self, numbers: Sequence[str]) -> InsertOutcome:
        if not numbers:
            return InsertOutcome()
        try:
            inserted, conflicts = await self._eval(INSERT_NUMBERS_SCRIPT, *numbers)
        except (TypeError, ValueError) as e:
            raise ConflictError("Insert batch could not be classified") from e

        logger.debug(
            "Inserted number batch",
            extra={"operation": "insert_many", "inserted": len(inserted), "conflicts": len(conflicts)}
        )
        return InsertOutcome(inserted=list(inserted), conflicts=list(conflicts))

    @store_operation("find_unassigned")
    async def find_unassigned(self, limit: int) -> List[str]:
        if limit <= 0:
            return []
        redis_client = await self._get_redis_client()
        return list(await redis_client.srandmember(self._make_key("available"), limit))

    @store_operation("claim")
    async def claim(self, numbers: Sequence[str], owner: str) -> List[str]:
        if not numbers:
            return []
        return list(await self._eval(CLAIM_NUMBERS_SCRIPT, owner, *numbers))

    @store_operation("release")
    async def release(self, numbers: Sequence[str], owner: str) -> List[str]:
        if not numbers:
            return []
        return list(await self._eval(RELEASE_NUMBERS_SCRIPT, owner, *numbers))

    @store_operation("release_owners")
    async def release_owners(self, owners: Iterable[str]) -> int:
        redis_client = await self._get_redis_client()
        released = 0
        for owner in set(owners):
            owned_key = self._make_key("owned", owner)
            while True:
                batch = await redis_client.srandmember(owned_key, self._batch_size)
                if not batch:
                    break
                released += len(await self._eval(RELEASE_NUMBERS_SCRIPT, owner, *batch))
        return released

    @store_operation("release_all")
    async def release_all(self) -> int:
        redis_client = await self._get_redis_client()
        owners = await redis_client.smembers(self._make_key("owners"))
        return await self.release_owners(owners)

    @store_operation("find_assigned")
    async def find_assigned(self, owner: str, limit: int) -> List[str]:
        if limit <= 0:
            return []
        redis_client = await self._get_redis_client()
        return list(await redis_client.srandmember(self._make_key("owned", owner), limit))

    @store_operation("count_assigned")
    async def count_assigned(self, owner: Optional[str] = None) -> int:
        redis_client = await self._get_redis_client()
        if owner is not None:
            return await redis_client.scard(self._make_key("owned", owner))
        total = await redis_client.zcard(self._make_key("numbers"))
        available = await redis_client.scard(self._make_key("available"))
        return max(0, total - available)

    @store_operation("consume")
    async def consume(self, numbers: Sequence[str], owner: str) -> bool:
        if not numbers:
            return True
        return bool(await self._eval(CONSUME_NUMBERS_SCRIPT, owner, *numbers))

    @store_operation("drop_all")
    async def drop_all(self) -> int:
        redis_client = await self._get_redis_client()
        dropped = await redis_client.zcard(self._make_key("numbers"))

        for pattern in (self._make_key("number", "*"), self._make_key("owned", "*")):
            keys = []
            async for key in redis_client.scan_iter(match=pattern, count=self._batch_size):
                keys.append(key)
                if len(keys) >= self._batch_size:
                    await redis_client.unlink(*keys)
                    keys = []
            if keys:
                await redis_client.unlink(*keys)

        await redis_client.unlink(
            self._make_key("numbers"),
            self._make_key("available"),
            self._make_key("owners"),
            self._make_key("seq"),
        )
        logger.info("Inventory dropped", extra={"operation": "drop_all", "dropped": dropped})
        return dropped

    @store_operation("count_total")
    async def count_total(self) -> int:
        redis_client = await self._get_redis_client()
        return await redis_client.zcard(self._make_key("numbers"))

    @store_operation("list_page")
    async def list_page(self, offset: int, limit: int) -> List[PhoneNumberRecord]:
        redis_client = await self._get_redis_client()
        numbers = await redis_client.zrange(self._make_key("numbers"), offset, offset + limit - 1)
        if not numbers:
            return []
        async with redis_client.pipeline(transaction=False) as pipe:
            for number in numbers:
                pipe.hgetall(self._make_key("number", number))
            rows = await pipe.execute()

        records = []
        for row in rows:
            if not row:
                continue
            is_assigned = row.get("is_assigned") == "1"
            records.append(PhoneNumberRecord(
                number=row["number"],
                is_assigned=is_assigned,
                assigned_owner=row.get("assigned_owner") if is_assigned else None
            ))
        return records

    @store_operation("list_unassigned")
    async def list_unassigned(self) -> List[str]:
        redis_client = await self._get_redis_client()
        return sorted(await redis_client.smembers(self._make_key("available")))

    async def health_check(self) -> bool:
        return await self._connection_manager.health_check()


class RedisUserRepository(RedisRepositoryBase, UserRepository):
    """Redis implementation of UserRepository."""

    @staticmethod
    def _to_record(data: Dict[str, str]) -> Optional[UserRecord]:
        if not data:
            return None
        return UserRecord(
            user_id=data["user_id"],
            name=data["name"],
            is_admin=data.get("is_admin") == "1",
            assigned_count=int(data.get("assigned_count", 0)),
            used_count=int(data.get("used_count", 0)),
        )

    @staticmethod
    def _to_args(user: UserRecord) -> List[str]:
        return [
            user.user_id,
            user.name,
            "1" if user.is_admin else "0",
            str(user.assigned_count),
            str(user.used_count),
        ]

    @store_operation("get_user")
    async def get(self, user_id: str) -> Optional[UserRecord]:
        redis_client = await self._get_redis_client()
        return self._to_record(await redis_client.hgetall(self._make_key("user", user_id)))

    @store_operation("create_user")
    async def create(self, user: UserRecord) -> UserRecord:
        created = await self._eval(CREATE_USERS_SCRIPT, *self._to_args(user))
        if not created:
            logger.warning(
                "Attempted to create duplicate user",
                extra={"user_id": user.user_id, "operation": "create_user"}
            )
            raise ConflictError(f"User ID {user.user_id} already exists")
        return user

    @store_operation("create_users")
    async def create_many(self, users: Sequence[UserRecord]) -> List[UserRecord]:
        created_ids: Set[str] = set()
        for batch in _chunks(list(users), self._batch_size):
            args = [arg for user in batch for arg in self._to_args(user)]
            created_ids.update(await self._eval(CREATE_USERS_SCRIPT, *args))
        return [user for user in users if user.user_id in created_ids]

    @store_operation("find_existing_users")
    async def find_existing(self, user_ids: Sequence[str]) -> Set[str]:
        if not user_ids:
            return set()
        redis_client = await self._get_redis_client()
        flags = await redis_client.smismember(self._make_key("users"), list(user_ids))
        return {user_id for user_id, flag in zip(user_ids, flags) if flag}

    @store_operation("list_users")
    async def list_users(self, include_admins: bool = False) -> List[UserRecord]:
        redis_client = await self._get_redis_client()
        user_ids = sorted(await redis_client.smembers(self._make_key("users")))
        if not user_ids:
            return []
        async with redis_client.pipeline(transaction=False) as pipe:
            for user_id in user_ids:
                pipe.hgetall(self._make_key("user", user_id))
            rows = await pipe.execute()

        users = [self._to_record(row) for row in rows if row]
        return [user for user in users if include_admins or not user.is_admin]

    async def find_admin(self) -> Optional[UserRecord]:
        for user in await self.list_users(include_admins=True):
            if user.is_admin:
                return user
        return None

    @store_operation("increment_assigned")
    async def increment_assigned(self, user_id: str, amount: int) -> Optional[UserRecord]:
        reply = await self._eval(INCREMENT_ASSIGNED_SCRIPT, user_id, amount)
        return self._to_record(_pairs_to_dict(reply))

    @store_operation("reserve_usage")
    async def reserve_usage(self, user_id: str, amount: int) -> Optional[UserRecord]:
        reply = await self._eval(RESERVE_USAGE_SCRIPT, user_id, amount)
        return self._to_record(_pairs_to_dict(reply))

    @store_operation("refund_usage")
    async def refund_usage(self, user_id: str, amount: int) -> Optional[UserRecord]:
        reply = await self._eval(REFUND_USAGE_SCRIPT, user_id, amount)
        return self._to_record(_pairs_to_dict(reply))

    @store_operation("reset_counters")
    async def reset_counters(self, reset_assigned: bool, reset_used: bool) -> int:
        redis_client = await self._get_redis_client()
        user_ids = sorted(await redis_client.smembers(self._make_key("users")))
        changed = 0
        for batch in _chunks(user_ids, self._batch_size):
            changed += await self._eval(
                RESET_COUNTERS_SCRIPT,
                "1" if reset_assigned else "0",
                "1" if reset_used else "0",
                *batch
            )
        return changed

    @store_operation("delete_users")
    async def delete_many(self, user_ids: Sequence[str]) -> int:
        if not user_ids:
            return 0
        return await self._eval(DELETE_USERS_SCRIPT, *set(user_ids))

    async def sum_used(self) -> int:
        return sum(user.used_count for user in await self.list_users(include_admins=True))
