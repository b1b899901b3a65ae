"""Abstract repository interfaces for the inventory and the user ledger.

Every mutating method that takes a set of records applies a per-record
condition (still unassigned, still owned by a given user, counter still
within quota) inside a single atomic step of the backing store. Callers
never need a broader lock.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence, Set

from number_pool_service.models.schemas import InsertOutcome, PhoneNumberRecord, UserRecord


class InventoryRepository(ABC):
    """Abstract repository interface for phone number records."""

    @abstractmethod
    async def find_existing(self, numbers: Sequence[str]) -> Set[str]:
        """Return the subset of numbers already present in the inventory."""
        pass

    @abstractmethod
    async def insert_many(self, numbers: Sequence[str]) -> InsertOutcome:
        """Insert unassigned records, continuing past uniqueness conflicts.

        Args:
            numbers: Normalized, in-call unique numbers

        Returns:
            InsertOutcome listing inserted numbers and numbers that already existed

        Raises:
            ConflictError: If the batch failed and could not be classified per record
        """
        pass

    @abstractmethod
    async def find_unassigned(self, limit: int) -> List[str]:
        """Return up to limit unassigned numbers, in no particular order."""
        pass

    @abstractmethod
    async def claim(self, numbers: Sequence[str], owner: str) -> List[str]:
        """Link numbers to owner, skipping any that are no longer unassigned.

        Returns:
            The numbers actually claimed by this call
        """
        pass

    @abstractmethod
    async def release(self, numbers: Sequence[str], owner: str) -> List[str]:
        """Unlink numbers from owner, skipping any not currently owned by owner.

        Returns:
            The numbers actually released
        """
        pass

    @abstractmethod
    async def release_owners(self, owners: Iterable[str]) -> int:
        """Unlink every number owned by any of the given users.

        Returns:
            Number of records flipped back to unassigned
        """
        pass

    @abstractmethod
    async def release_all(self) -> int:
        """Unlink every assigned number.

        Returns:
            Number of records flipped back to unassigned
        """
        pass

    @abstractmethod
    async def find_assigned(self, owner: str, limit: int) -> List[str]:
        """Return up to limit numbers currently linked to owner."""
        pass

    @abstractmethod
    async def count_assigned(self, owner: Optional[str] = None) -> int:
        """Count assigned numbers, optionally only those linked to owner."""
        pass

    @abstractmethod
    async def consume(self, numbers: Sequence[str], owner: str) -> bool:
        """Delete numbers if and only if every one is still linked to owner.

        Returns:
            True if all numbers were deleted, False if none were
        """
        pass

    @abstractmethod
    async def drop_all(self) -> int:
        """Destroy every record and recreate the uniqueness constraint.

        Returns:
            Number of records destroyed
        """
        pass

    @abstractmethod
    async def count_total(self) -> int:
        """Count every record in the inventory."""
        pass

    @abstractmethod
    async def list_page(self, offset: int, limit: int) -> List[PhoneNumberRecord]:
        """Return a stable-ordered slice of the inventory."""
        pass

    @abstractmethod
    async def list_unassigned(self) -> List[str]:
        """Return every unassigned number."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check that the backing store is reachable."""
        pass


class UserRepository(ABC):
    """Abstract repository interface for the user ledger."""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserRecord]:
        """Get a user by id, or None if not found."""
        pass

    @abstractmethod
    async def create(self, user: UserRecord) -> UserRecord:
        """Create a user.

        Raises:
            ConflictError: If the user id already exists
        """
        pass

    @abstractmethod
    async def create_many(self, users: Sequence[UserRecord]) -> List[UserRecord]:
        """Create users, skipping ids that already exist.

        Returns:
            The users actually created
        """
        pass

    @abstractmethod
    async def find_existing(self, user_ids: Sequence[str]) -> Set[str]:
        """Return the subset of user ids already present."""
        pass

    @abstractmethod
    async def list_users(self, include_admins: bool = False) -> List[UserRecord]:
        """List users ordered by id."""
        pass

    @abstractmethod
    async def find_admin(self) -> Optional[UserRecord]:
        """Return an admin user if one exists."""
        pass

    @abstractmethod
    async def increment_assigned(self, user_id: str, amount: int) -> Optional[UserRecord]:
        """Add amount to assigned_count; None if the user no longer exists."""
        pass

    @abstractmethod
    async def reserve_usage(self, user_id: str, amount: int) -> Optional[UserRecord]:
        """Add amount to used_count only if used_count + amount <= assigned_count.

        Returns:
            Updated user, or None if the user is missing or the quota would be exceeded
        """
        pass

    @abstractmethod
    async def refund_usage(self, user_id: str, amount: int) -> Optional[UserRecord]:
        """Subtract amount from used_count, never going below zero."""
        pass

    @abstractmethod
    async def reset_counters(self, reset_assigned: bool, reset_used: bool) -> int:
        """Zero the selected counters on every user.

        Returns:
            Number of users whose counters actually changed
        """
        pass

    @abstractmethod
    async def delete_many(self, user_ids: Sequence[str]) -> int:
        """Delete non-admin users by id; returns the number deleted."""
        pass

    @abstractmethod
    async def sum_used(self) -> int:
        """Sum used_count across every user."""
        pass
