"""Bulk resets and reconciliation of assignment links against counters."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from number_pool_service.config.logging import LoggingService
from number_pool_service.models.schemas import ReconcileResult, ResetResult
from number_pool_service.repositories.base import InventoryRepository, UserRepository
from number_pool_service.services.assignment_service import claim_numbers

logger = logging.getLogger(__name__)
logging_service = LoggingService(__name__)


class InventoryAction(str, Enum):
    """What a reset does to inventory records."""

    KEEP = "keep"
    RELEASE = "release"
    DESTROY = "destroy"


@dataclass(frozen=True)
class ResetPlan:
    """A point in the reset space: inventory action x counter scope.

    used_count is zeroed by every plan; reset_assigned widens the scope to
    assigned_count as well.
    """

    inventory: InventoryAction
    reset_assigned: bool


CLEAR_TOTAL = ResetPlan(InventoryAction.DESTROY, reset_assigned=True)
CLEAR_ASSIGNED = ResetPlan(InventoryAction.RELEASE, reset_assigned=True)
CLEAR_USED = ResetPlan(InventoryAction.KEEP, reset_assigned=False)


class ResetService:
    """Named reset entry points over one parameterized reset."""

    def __init__(self, inventory: InventoryRepository, users: UserRepository):
        self.inventory = inventory
        self.users = users

    async def _reset(self, plan: ResetPlan) -> Tuple[int, int]:
        """Apply a reset plan.

        Returns:
            (inventory records affected, users whose counters changed)
        """
        if plan.inventory is InventoryAction.DESTROY:
            numbers_affected = await self.inventory.drop_all()
        elif plan.inventory is InventoryAction.RELEASE:
            numbers_affected = await self.inventory.release_all()
        else:
            numbers_affected = 0

        users_reset = await self.users.reset_counters(
            reset_assigned=plan.reset_assigned,
            reset_used=True
        )

        logging_service.log_operation(
            "info",
            "Reset applied",
            operation="reset",
            inventory_action=plan.inventory.value,
            reset_assigned=plan.reset_assigned,
            numbers_affected=numbers_affected,
            users_reset=users_reset
        )
        return numbers_affected, users_reset

    async def clear_total_inventory(self) -> ResetResult:
        """Destroy every inventory record and zero every user's counters."""
        dropped, users_reset = await self._reset(CLEAR_TOTAL)

        if dropped == 0 and users_reset == 0:
            message = "No phone numbers or user counters to clear."
        else:
            message = (
                f"Successfully cleared {dropped} phone numbers from the database "
                f"and reset counters for {users_reset} users."
            )
        return ResetResult(message=message, numbers_affected=dropped, users_reset=users_reset)

    async def clear_assigned_links(self) -> ResetResult:
        """Unassign every assigned record and zero every user's counters."""
        unassigned, users_reset = await self._reset(CLEAR_ASSIGNED)

        if unassigned == 0 and users_reset == 0:
            message = "No assigned phone numbers found."
        else:
            message = (
                f"Successfully unassigned {unassigned} phone numbers. "
                f"Counters reset for {users_reset} users."
            )
        return ResetResult(message=message, numbers_affected=unassigned, users_reset=users_reset)

    async def clear_used_counters(self) -> ResetResult:
        """Zero used_count only; deleted numbers are not restored."""
        _, users_reset = await self._reset(CLEAR_USED)

        if users_reset == 0:
            message = "No users with used phone numbers found."
        else:
            message = f"Successfully reset used phone numbers count for {users_reset} users."
        return ResetResult(message=message, users_reset=users_reset)

    async def clear_all_assignments(self) -> ResetResult:
        """Make every assigned number available again and reset all counters.

        Same effect as clear_assigned_links; the message tells apart which of
        the two bulk updates changed anything.
        """
        made_available, users_reset = await self._reset(CLEAR_ASSIGNED)

        if made_available == 0 and users_reset == 0:
            message = (
                "No phone numbers were marked as assigned, "
                "and no user assignment counts needed clearing."
            )
        elif made_available == 0:
            message = (
                "No phone numbers were found marked as assigned to make available. "
                f"Assignment counts reset for {users_reset} users."
            )
        elif users_reset == 0:
            message = (
                f"Successfully made {made_available} phone numbers available. "
                "No user assignment counts needed clearing."
            )
        else:
            message = (
                f"Successfully made {made_available} phone numbers available. "
                f"Assignment counts reset for {users_reset} users."
            )
        return ResetResult(message=message, numbers_affected=made_available, users_reset=users_reset)

    async def unassign_all_and_reset(self) -> ResetResult:
        """Alias of clear_all_assignments."""
        return await self.clear_all_assignments()

    async def reconcile(self) -> ReconcileResult:
        """Top up each user's linked numbers to their assigned_count.

        Users the pool cannot fully satisfy are reported in issues; the
        call itself only fails on infrastructure errors.
        """
        users = await self.users.list_users(include_admins=False)
        total_reconciled = 0
        issues: List[str] = []

        for user in users:
            if user.assigned_count <= 0:
                continue

            linked = await self.inventory.count_assigned(user.user_id)
            needed = user.assigned_count - linked
            if needed <= 0:
                logger.debug(
                    "No reconciliation needed for user",
                    extra={"user_id": user.user_id, "operation": "reconcile", "linked": linked}
                )
                continue

            claimed = await claim_numbers(self.inventory, user.user_id, needed)
            if len(claimed) < needed:
                issues.append(
                    f"User {user.user_id}: Expected to assign {needed} more numbers, "
                    f"but only {len(claimed)} were available in the general pool."
                )
            if claimed:
                total_reconciled += len(claimed)
                logging_service.log_operation(
                    "info",
                    "Reconciled numbers for user",
                    user_id=user.user_id,
                    operation="reconcile",
                    reconciled=len(claimed)
                )

        logging_service.log_pool_operation(
            "reconcile",
            success=not issues,
            total_reconciled=total_reconciled,
            issues=len(issues)
        )

        if issues:
            return ReconcileResult(
                message=(
                    f"Reconciliation partially completed. Total {total_reconciled} phone numbers "
                    "had their assignment updated. Some issues encountered."
                ),
                total_reconciled=total_reconciled,
                issues=issues
            )

        return ReconcileResult(
            message=(
                f"Reconciliation complete. Total {total_reconciled} phone numbers "
                "had their assignment updated."
            ),
            total_reconciled=total_reconciled
        )
