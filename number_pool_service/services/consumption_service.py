"""Consumption engine: hands assigned numbers to their owner and retires them."""

import logging

from number_pool_service.config.logging import LoggingService
from number_pool_service.exceptions import (
    InsufficientAllocationError,
    NotFoundError,
    QuotaExceededError,
)
from number_pool_service.models.schemas import GenerateResult
from number_pool_service.repositories.base import InventoryRepository, UserRepository
from number_pool_service.services.assignment_service import validate_count

logger = logging.getLogger(__name__)
logging_service = LoggingService(__name__)


def format_for_display(number: str) -> str:
    """Strip every '+' from a number."""
    return number.replace("+", "")


class ConsumptionService:
    """Generates numbers for a user out of their assigned allocation."""

    def __init__(self, inventory: InventoryRepository, users: UserRepository):
        self.inventory = inventory
        self.users = users

    async def generate(self, user_id: str, count: int) -> GenerateResult:
        """Consume count numbers linked to the user.

        The quota is reserved first with a conditional increment, then the
        selected records are deleted only if all of them are still linked to
        the user. If the delete guard fails, fresh candidates are selected
        and the delete retried; the reservation is refunded only once fewer
        than count numbers remain linked. Consumed numbers are gone from the inventory for good.

        Args:
            user_id: Caller's user id (trusted from the identity provider)
            count: How many numbers to generate

        Returns:
            GenerateResult with the consumed numbers, '+' stripped

        Raises:
            InvalidArgumentError: If count is not a positive integer
            NotFoundError: If the user does not exist
            QuotaExceededError: If count exceeds assigned_count - used_count
            InsufficientAllocationError: If fewer than count numbers are linked to the user
            InfrastructureError: If the store is unavailable
        """
        validate_count(count)

        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User not found", details={"user_id": user_id})

        if count > user.remaining:
            logging_service.log_pool_operation(
                "generate", success=False, user_id=user_id,
                requested=count, remaining=user.remaining
            )
            raise QuotaExceededError(requested=count, remaining=max(0, user.remaining))

        linked = await self.inventory.find_assigned(user_id, count)
        if len(linked) < count:
            logging_service.log_pool_operation(
                "generate", success=False, user_id=user_id,
                requested=count, linked=len(linked)
            )
            raise InsufficientAllocationError(requested=count, available=len(linked))

        reserved = await self.users.reserve_usage(user_id, count)
        if reserved is None:
            current = await self.users.get(user_id)
            if current is None:
                raise NotFoundError("User not found", details={"user_id": user_id})
            raise QuotaExceededError(requested=count, remaining=max(0, current.remaining))

        # A lost delete guard means another caller consumed or released some
        # candidates; select again until the links themselves run short.
        while not await self.inventory.consume(linked, user_id):
            linked = await self.inventory.find_assigned(user_id, count)
            if len(linked) < count:
                await self.users.refund_usage(user_id, count)
                logging_service.log_operation(
                    "warning",
                    "Assigned numbers ran short during generation; usage refunded",
                    user_id=user_id,
                    operation="generate",
                    requested=count,
                    linked=len(linked)
                )
                raise InsufficientAllocationError(requested=count, available=len(linked))
            logger.debug(
                "Lost consume race; retrying with fresh candidates",
                extra={"user_id": user_id, "operation": "generate", "requested": count}
            )

        logging_service.log_pool_operation(
            "generate",
            success=True,
            user_id=user_id,
            generated=len(linked),
            used_count=reserved.used_count
        )

        return GenerateResult(
            count=len(linked),
            numbers=[format_for_display(number) for number in linked]
        )
