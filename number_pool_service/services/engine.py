"""Number pool engine: the single entry point callers use."""

from typing import Iterable, List, Optional

from number_pool_service.config.settings import Settings, settings as default_settings
from number_pool_service.models.schemas import (
    AdminCreatedResult,
    AssignResult,
    BulkAssignResult,
    BulkUserImportResult,
    DeleteUsersResult,
    ExportResult,
    GenerateResult,
    IngestResult,
    InventoryStats,
    NumberPage,
    ReconcileResult,
    ResetResult,
    UserRecord,
)
from number_pool_service.repositories.base import InventoryRepository, UserRepository
from number_pool_service.services.assignment_service import AssignmentService
from number_pool_service.services.consumption_service import ConsumptionService
from number_pool_service.services.ingestion_service import IngestionService
from number_pool_service.services.inventory_service import InventoryService
from number_pool_service.services.reset_service import ResetService
from number_pool_service.services.user_service import ImportRow, UserService


class NumberPoolEngine:
    """Facade over the ingestion, assignment, consumption and reset services.

    The engine owns no connection of its own: both repositories are built by
    the caller and injected here.
    """

    def __init__(self, inventory: InventoryRepository, users: UserRepository,
                 settings: Optional[Settings] = None):
        settings = settings or default_settings
        self.inventory = inventory
        self.users = users
        self.ingestion = IngestionService(inventory, batch_size=settings.ingest_batch_size)
        self.assignment = AssignmentService(
            inventory, users, user_batch_size=settings.bulk_assign_user_batch_size
        )
        self.consumption = ConsumptionService(inventory, users)
        self.resets = ResetService(inventory, users)
        self.reporting = InventoryService(inventory, users)
        self.ledger = UserService(
            inventory, users,
            admin_user_id=settings.admin_user_id,
            admin_name=settings.admin_name
        )

    # Inventory

    async def ingest(self, candidate_numbers: Iterable[str]) -> IngestResult:
        return await self.ingestion.ingest(candidate_numbers)

    async def inventory_stats(self) -> InventoryStats:
        return await self.reporting.stats()

    async def list_numbers(self, page: int = 1, limit: int = 100) -> NumberPage:
        return await self.reporting.list_numbers(page, limit)

    async def export_unused_numbers(self) -> ExportResult:
        return await self.reporting.export_unused_numbers()

    # Assignment and consumption

    async def assign(self, user_id: str, count: int) -> AssignResult:
        return await self.assignment.assign(user_id, count)

    async def assign_to_all(self, count_per_user: int) -> BulkAssignResult:
        return await self.assignment.assign_to_all(count_per_user)

    async def generate(self, user_id: str, count: int) -> GenerateResult:
        return await self.consumption.generate(user_id, count)

    # Resets

    async def clear_total_inventory(self) -> ResetResult:
        return await self.resets.clear_total_inventory()

    async def clear_assigned_links(self) -> ResetResult:
        return await self.resets.clear_assigned_links()

    async def clear_used_counters(self) -> ResetResult:
        return await self.resets.clear_used_counters()

    async def clear_all_assignments(self) -> ResetResult:
        return await self.resets.clear_all_assignments()

    async def unassign_all_and_reset(self) -> ResetResult:
        return await self.resets.unassign_all_and_reset()

    async def reconcile(self) -> ReconcileResult:
        return await self.resets.reconcile()

    # Users

    async def create_user(self, user_id: str, name: str, assigned_count: int = 0) -> UserRecord:
        return await self.ledger.create_user(user_id, name, assigned_count)

    async def create_admin_user(self) -> AdminCreatedResult:
        return await self.ledger.create_admin_user()

    async def list_users(self) -> List[UserRecord]:
        return await self.ledger.list_users()

    async def get_user_profile(self, user_id: str) -> UserRecord:
        return await self.ledger.get_user_profile(user_id)

    async def bulk_create_users(self, rows: Iterable[ImportRow]) -> BulkUserImportResult:
        return await self.ledger.bulk_create_users(rows)

    async def delete_user(self, user_id: str) -> DeleteUsersResult:
        return await self.ledger.delete_user(user_id)

    async def delete_users(self, user_ids: List[str]) -> DeleteUsersResult:
        return await self.ledger.delete_users(user_ids)

    async def health_check(self) -> bool:
        return await self.inventory.health_check()
