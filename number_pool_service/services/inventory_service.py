"""Read-side views of the inventory: statistics, pages, export."""

import math

from number_pool_service.exceptions import InvalidArgumentError, NotFoundError
from number_pool_service.models.schemas import ExportResult, InventoryStats, NumberPage
from number_pool_service.repositories.base import InventoryRepository, UserRepository

MAX_PAGE_SIZE = 1000


class InventoryService:
    """Reports on the pool without mutating it."""

    def __init__(self, inventory: InventoryRepository, users: UserRepository):
        self.inventory = inventory
        self.users = users

    async def stats(self) -> InventoryStats:
        """Pool-wide counters; available is derived as total - assigned."""
        total = await self.inventory.count_total()
        assigned = await self.inventory.count_assigned()
        used = await self.users.sum_used()
        regular_users = await self.users.list_users(include_admins=False)

        return InventoryStats(
            total=total,
            available=max(0, total - assigned),
            assigned=assigned,
            used=used,
            user_count=len(regular_users)
        )

    async def list_numbers(self, page: int = 1, limit: int = 100) -> NumberPage:
        if page < 1:
            raise InvalidArgumentError("page must be at least 1", details={"page": page})
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise InvalidArgumentError(
                f"limit must be between 1 and {MAX_PAGE_SIZE}",
                details={"limit": limit}
            )

        total = await self.inventory.count_total()
        records = await self.inventory.list_page((page - 1) * limit, limit)

        return NumberPage(
            numbers=records,
            total=total,
            total_pages=math.ceil(total / limit),
            current_page=page
        )

    async def export_unused_numbers(self) -> ExportResult:
        """Every number not linked to a user.

        Raises:
            NotFoundError: If the pool has no unassigned numbers
        """
        numbers = await self.inventory.list_unassigned()
        if not numbers:
            raise NotFoundError("No unused phone numbers found")
        return ExportResult(count=len(numbers), numbers=numbers)
