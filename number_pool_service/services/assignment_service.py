"""Assignment engine: moves unassigned numbers to users."""

import logging
from typing import List

from number_pool_service.config.logging import LoggingService
from number_pool_service.exceptions import (
    InfrastructureError,
    InsufficientInventoryError,
    InvalidArgumentError,
    NotFoundError,
    NumberPoolError,
)
from number_pool_service.models.schemas import AssignResult, BulkAssignResult
from number_pool_service.repositories.base import InventoryRepository, UserRepository

logger = logging.getLogger(__name__)
logging_service = LoggingService(__name__)

DEFAULT_USER_BATCH_SIZE = 50


def validate_count(count, field: str = "count") -> int:
    """Reject non-integer and non-positive counts."""
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise InvalidArgumentError(
            f"Please provide a valid positive {field}",
            details={field: count}
        )
    return count


async def claim_numbers(inventory: InventoryRepository, owner: str, count: int) -> List[str]:
    """Claim up to count unassigned numbers for owner.

    Candidates are selected first and then claimed with a per-record
    still-unassigned guard. Candidates lost to a concurrent caller are
    replaced by a fresh selection until count is reached or the pool has
    nothing left to offer.
    """
    claimed: List[str] = []
    while len(claimed) < count:
        candidates = await inventory.find_unassigned(count - len(claimed))
        if not candidates:
            break
        won = await inventory.claim(candidates, owner)
        if len(won) < len(candidates):
            logger.debug(
                "Lost claim race for some candidates",
                extra={"user_id": owner, "operation": "claim", "lost": len(candidates) - len(won)}
            )
        claimed.extend(won)
    return claimed


class AssignmentService:
    """Assigns numbers to one user or to every regular user."""

    def __init__(self, inventory: InventoryRepository, users: UserRepository,
                 user_batch_size: int = DEFAULT_USER_BATCH_SIZE):
        self.inventory = inventory
        self.users = users
        self.user_batch_size = user_batch_size

    async def assign(self, user_id: str, count: int) -> AssignResult:
        """Assign exactly count numbers to a regular user.

        Args:
            user_id: Target user id
            count: Number of records to transfer

        Returns:
            AssignResult with the updated user

        Raises:
            InvalidArgumentError: If count is not a positive integer
            NotFoundError: If the user is missing or is an admin
            InsufficientInventoryError: If fewer than count numbers are unassigned
            InfrastructureError: If the store is unavailable
        """
        validate_count(count)

        user = await self.users.get(user_id)
        if user is None or user.is_admin:
            logging_service.log_pool_operation("assign", success=False, user_id=user_id)
            raise NotFoundError("User not found", details={"user_id": user_id})

        candidates = await self.inventory.find_unassigned(count)
        if len(candidates) < count:
            logging_service.log_operation(
                "warning",
                "Not enough unassigned numbers for assignment",
                user_id=user_id,
                operation="assign",
                requested=count,
                available=len(candidates)
            )
            raise InsufficientInventoryError(requested=count, available=len(candidates))

        claimed = await self.inventory.claim(candidates, user_id)
        if len(claimed) < count:
            claimed.extend(await claim_numbers(self.inventory, user_id, count - len(claimed)))

        if len(claimed) < count:
            # Pool drained by concurrent callers; hand back what we took.
            released = await self.inventory.release(claimed, user_id)
            logging_service.log_operation(
                "warning",
                "Assignment lost race for inventory; claimed numbers released",
                user_id=user_id,
                operation="assign",
                requested=count,
                claimed=len(claimed),
                released=len(released)
            )
            raise InsufficientInventoryError(requested=count, available=len(claimed))

        updated = await self.users.increment_assigned(user_id, len(claimed))
        if updated is None:
            await self.inventory.release(claimed, user_id)
            raise NotFoundError("User not found", details={"user_id": user_id})

        logging_service.log_pool_operation(
            "assign",
            success=True,
            user_id=user_id,
            assigned=len(claimed)
        )

        return AssignResult(
            message=f"{len(claimed)} phone numbers assigned to user {user_id}",
            user_id=user_id,
            assigned_count=len(claimed),
            user=updated
        )

    async def assign_to_all(self, count_per_user: int) -> BulkAssignResult:
        """Assign up to count_per_user numbers to every regular user.

        Users who can only be partly served get what is left; users who get
        nothing are counted as failed. Only infrastructure errors abort.
        """
        validate_count(count_per_user, field="count_per_user")

        regular_users = await self.users.list_users(include_admins=False)
        if not regular_users:
            return BulkAssignResult(message="No regular users found to assign numbers to.")

        numbers_assigned = 0
        users_processed = 0
        users_failed = 0

        for start in range(0, len(regular_users), self.user_batch_size):
            user_batch = regular_users[start:start + self.user_batch_size]

            for user in user_batch:
                try:
                    claimed = await claim_numbers(self.inventory, user.user_id, count_per_user)
                    if not claimed:
                        users_failed += 1
                        continue

                    if len(claimed) < count_per_user:
                        logging_service.log_operation(
                            "warning",
                            "Not enough numbers to fully satisfy user; assigned what was available",
                            user_id=user.user_id,
                            operation="assign_to_all",
                            requested=count_per_user,
                            assigned=len(claimed)
                        )

                    updated = await self.users.increment_assigned(user.user_id, len(claimed))
                    if updated is None:
                        await self.inventory.release(claimed, user.user_id)
                        users_failed += 1
                        continue

                    numbers_assigned += len(claimed)
                    users_processed += 1

                except InfrastructureError:
                    raise
                except NumberPoolError as e:
                    users_failed += 1
                    logging_service.log_error(
                        "Failed to assign numbers to user during bulk operation",
                        e,
                        user_id=user.user_id,
                        operation="assign_to_all"
                    )

        logging_service.log_pool_operation(
            "assign_to_all",
            success=True,
            users_processed=users_processed,
            numbers_assigned=numbers_assigned,
            users_failed=users_failed
        )

        return BulkAssignResult(
            message=(
                f"Bulk assignment attempted. Assigned {numbers_assigned} numbers to "
                f"{users_processed} users. {users_failed} users failed or had insufficient numbers."
            ),
            users_processed=users_processed,
            numbers_assigned=numbers_assigned,
            users_failed=users_failed
        )
