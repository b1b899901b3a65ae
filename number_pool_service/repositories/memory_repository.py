"""In-process implementations of the inventory and user repositories.

Each public coroutine yields to the event loop once and then performs its
whole read-check-write step without awaiting, so it is atomic with respect
to other coroutines, the same way a single Lua script is atomic in Redis.
"""

import asyncio
from typing import Dict, Iterable, List, Optional, Sequence, Set

from number_pool_service.exceptions import ConflictError
from number_pool_service.models.schemas import InsertOutcome, PhoneNumberRecord, UserRecord
from number_pool_service.repositories.base import InventoryRepository, UserRepository


class InMemoryInventoryRepository(InventoryRepository):
    """Dictionary-backed inventory keyed by number."""

    def __init__(self):
        # number -> owner (None when unassigned); insertion ordered
        self._records: Dict[str, Optional[str]] = {}
        # dicts used as ordered sets
        self._unassigned: Dict[str, None] = {}
        self._by_owner: Dict[str, Dict[str, None]] = {}

    async def find_existing(self, numbers: Sequence[str]) -> Set[str]:
        await asyncio.sleep(0)
        return {number for number in numbers if number in self._records}

    async def insert_many(self, numbers: Sequence[str]) -> InsertOutcome:
        await asyncio.sleep(0)
        outcome = InsertOutcome()
        for number in numbers:
            if number in self._records:
                outcome.conflicts.append(number)
                continue
            self._records[number] = None
            self._unassigned[number] = None
            outcome.inserted.append(number)
        return outcome

    async def find_unassigned(self, limit: int) -> List[str]:
        await asyncio.sleep(0)
        found = []
        for number in self._unassigned:
            if len(found) >= limit:
                break
            found.append(number)
        return found

    async def claim(self, numbers: Sequence[str], owner: str) -> List[str]:
        await asyncio.sleep(0)
        claimed = []
        for number in numbers:
            if number not in self._records or self._records[number] is not None:
                continue
            self._records[number] = owner
            del self._unassigned[number]
            self._by_owner.setdefault(owner, {})[number] = None
            claimed.append(number)
        return claimed

    def _unlink(self, number: str, owner: str) -> None:
        self._records[number] = None
        self._unassigned[number] = None
        owned = self._by_owner.get(owner)
        if owned is not None:
            owned.pop(number, None)
            if not owned:
                del self._by_owner[owner]

    async def release(self, numbers: Sequence[str], owner: str) -> List[str]:
        await asyncio.sleep(0)
        released = []
        for number in numbers:
            if self._records.get(number) != owner:
                continue
            self._unlink(number, owner)
            released.append(number)
        return released

    async def release_owners(self, owners: Iterable[str]) -> int:
        await asyncio.sleep(0)
        released = 0
        for owner in set(owners):
            for number in list(self._by_owner.get(owner, {})):
                self._unlink(number, owner)
                released += 1
        return released

    async def release_all(self) -> int:
        return await self.release_owners(list(self._by_owner))

    async def find_assigned(self, owner: str, limit: int) -> List[str]:
        await asyncio.sleep(0)
        return list(self._by_owner.get(owner, {}))[:limit]

    async def count_assigned(self, owner: Optional[str] = None) -> int:
        await asyncio.sleep(0)
        if owner is not None:
            return len(self._by_owner.get(owner, {}))
        return len(self._records) - len(self._unassigned)

    async def consume(self, numbers: Sequence[str], owner: str) -> bool:
        await asyncio.sleep(0)
        if any(self._records.get(number) != owner for number in numbers):
            return False
        for number in numbers:
            self._unlink(number, owner)
            del self._unassigned[number]
            del self._records[number]
        return True

    async def drop_all(self) -> int:
        await asyncio.sleep(0)
        dropped = len(self._records)
        self._records = {}
        self._unassigned = {}
        self._by_owner = {}
        return dropped

    async def count_total(self) -> int:
        await asyncio.sleep(0)
        return len(self._records)

    async def list_page(self, offset: int, limit: int) -> List[PhoneNumberRecord]:
        await asyncio.sleep(0)
        numbers = list(self._records.items())[offset:offset + limit]
        return [
            PhoneNumberRecord(number=number, is_assigned=owner is not None, assigned_owner=owner)
            for number, owner in numbers
        ]

    async def list_unassigned(self) -> List[str]:
        await asyncio.sleep(0)
        return list(self._unassigned)

    async def health_check(self) -> bool:
        return True


class InMemoryUserRepository(UserRepository):
    """Dictionary-backed user ledger keyed by user id."""

    def __init__(self):
        self._users: Dict[str, UserRecord] = {}

    async def get(self, user_id: str) -> Optional[UserRecord]:
        await asyncio.sleep(0)
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    async def create(self, user: UserRecord) -> UserRecord:
        await asyncio.sleep(0)
        if user.user_id in self._users:
            raise ConflictError(f"User ID {user.user_id} already exists")
        self._users[user.user_id] = user.model_copy()
        return user

    async def create_many(self, users: Sequence[UserRecord]) -> List[UserRecord]:
        await asyncio.sleep(0)
        created = []
        for user in users:
            if user.user_id in self._users:
                continue
            self._users[user.user_id] = user.model_copy()
            created.append(user)
        return created

    async def find_existing(self, user_ids: Sequence[str]) -> Set[str]:
        await asyncio.sleep(0)
        return {user_id for user_id in user_ids if user_id in self._users}

    async def list_users(self, include_admins: bool = False) -> List[UserRecord]:
        await asyncio.sleep(0)
        return [
            user.model_copy()
            for _, user in sorted(self._users.items())
            if include_admins or not user.is_admin
        ]

    async def find_admin(self) -> Optional[UserRecord]:
        await asyncio.sleep(0)
        for user in self._users.values():
            if user.is_admin:
                return user.model_copy()
        return None

    async def increment_assigned(self, user_id: str, amount: int) -> Optional[UserRecord]:
        await asyncio.sleep(0)
        user = self._users.get(user_id)
        if user is None:
            return None
        user.assigned_count += amount
        return user.model_copy()

    async def reserve_usage(self, user_id: str, amount: int) -> Optional[UserRecord]:
        await asyncio.sleep(0)
        user = self._users.get(user_id)
        if user is None or user.used_count + amount > user.assigned_count:
            return None
        user.used_count += amount
        return user.model_copy()

    async def refund_usage(self, user_id: str, amount: int) -> Optional[UserRecord]:
        await asyncio.sleep(0)
        user = self._users.get(user_id)
        if user is None:
            return None
        user.used_count = max(0, user.used_count - amount)
        return user.model_copy()

    async def reset_counters(self, reset_assigned: bool, reset_used: bool) -> int:
        await asyncio.sleep(0)
        changed = 0
        for user in self._users.values():
            modified = False
            if reset_assigned and user.assigned_count:
                user.assigned_count = 0
                modified = True
            if reset_used and user.used_count:
                user.used_count = 0
                modified = True
            changed += modified
        return changed

    async def delete_many(self, user_ids: Sequence[str]) -> int:
        await asyncio.sleep(0)
        deleted = 0
        for user_id in set(user_ids):
            user = self._users.get(user_id)
            if user is None or user.is_admin:
                continue
            del self._users[user_id]
            deleted += 1
        return deleted

    async def sum_used(self) -> int:
        await asyncio.sleep(0)
        return sum(user.used_count for user in self._users.values())
