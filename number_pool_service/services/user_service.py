"""User ledger administration: creation, bulk import, deletion."""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from number_pool_service.config.logging import LoggingService
from number_pool_service.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from number_pool_service.models.schemas import (
    AdminCreatedResult,
    BulkUserImportResult,
    DeleteUsersResult,
    UserImportRow,
    UserRecord,
    USER_ID_PATTERN,
)
from number_pool_service.repositories.base import InventoryRepository, UserRepository

logger = logging.getLogger(__name__)
logging_service = LoggingService(__name__)

ImportRow = Union[UserImportRow, Mapping[str, Any]]


def _validation_message(error: ValidationError) -> str:
    return "; ".join(item["msg"] for item in error.errors())


class UserService:
    """Creates, lists and deletes users in the ledger."""

    def __init__(self, inventory: InventoryRepository, users: UserRepository,
                 admin_user_id: str = "000000", admin_name: str = "Admin"):
        self.inventory = inventory
        self.users = users
        self.admin_user_id = admin_user_id
        self.admin_name = admin_name

    async def create_user(self, user_id: str, name: str, assigned_count: int = 0) -> UserRecord:
        """Create a regular user.

        A non-zero assigned_count creates the counter without links to any
        number; reconcile links numbers to it later.

        Raises:
            InvalidArgumentError: If user id, name or count is malformed
            ConflictError: If the user id already exists
        """
        try:
            user = UserRecord(user_id=user_id, name=name, assigned_count=assigned_count)
        except ValidationError as e:
            raise InvalidArgumentError(_validation_message(e), details={"user_id": user_id}) from e

        try:
            created = await self.users.create(user)
        except ConflictError:
            logging_service.log_pool_operation("create_user", success=False, user_id=user_id)
            raise

        logging_service.log_pool_operation("create_user", success=True, user_id=user_id)
        return created

    async def create_admin_user(self) -> AdminCreatedResult:
        """Create the bootstrap admin account unless an admin exists."""
        if await self.users.find_admin() is not None:
            raise ConflictError("Admin user already exists")

        admin = UserRecord(user_id=self.admin_user_id, name=self.admin_name, is_admin=True)
        await self.users.create(admin)

        logging_service.log_operation(
            "info",
            "Admin user created",
            user_id=admin.user_id,
            operation="create_admin_user"
        )
        return AdminCreatedResult(message="Admin user created successfully", user_id=admin.user_id)

    async def list_users(self) -> List[UserRecord]:
        """List regular users."""
        return await self.users.list_users(include_admins=False)

    async def get_user_profile(self, user_id: str) -> UserRecord:
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User not found", details={"user_id": user_id})
        return user

    async def bulk_create_users(self, rows: Iterable[ImportRow]) -> BulkUserImportResult:
        """Create users from import rows.

        Rows with a malformed id or blank name, rows repeating an id seen
        earlier in the same file, and rows for ids already in the ledger are
        skipped and counted separately.

        Raises:
            InvalidArgumentError: If no row is valid
        """
        rows = list(rows)
        candidates: List[UserRecord] = []
        seen = set()
        skipped_invalid = 0
        skipped_duplicates = 0

        for row in rows:
            record = self._parse_row(row)
            if record is None:
                skipped_invalid += 1
                continue
            if record.user_id in seen:
                skipped_duplicates += 1
                continue
            seen.add(record.user_id)
            candidates.append(record)

        if not candidates:
            raise InvalidArgumentError(
                "No valid user data found in file",
                details={"total_in_file": len(rows), "skipped_invalid": skipped_invalid}
            )

        existing = await self.users.find_existing([user.user_id for user in candidates])
        new_users = [user for user in candidates if user.user_id not in existing]
        created = await self.users.create_many(new_users) if new_users else []
        skipped_existing = len(candidates) - len(created)

        logging_service.log_pool_operation(
            "bulk_create_users",
            success=True,
            added=len(created),
            skipped_existing=skipped_existing,
            skipped_invalid=skipped_invalid,
            skipped_duplicates=skipped_duplicates
        )

        if not created:
            message = "All users in the file already exist in the database"
        else:
            message = f"Successfully added {len(created)} users"

        return BulkUserImportResult(
            message=message,
            added=len(created),
            total_in_file=len(rows),
            skipped_existing=skipped_existing,
            skipped_invalid=skipped_invalid,
            skipped_duplicates=skipped_duplicates
        )

    @staticmethod
    def _parse_row(row: ImportRow) -> Optional[UserRecord]:
        if not isinstance(row, UserImportRow):
            try:
                row = UserImportRow.model_validate(dict(row))
            except (ValidationError, TypeError, ValueError):
                return None
        user_id = (row.user_id or "").strip()
        name = (row.name or "").strip()
        if not name or not USER_ID_PATTERN.match(user_id):
            return None
        return UserRecord(user_id=user_id, name=name)

    async def delete_user(self, user_id: str) -> DeleteUsersResult:
        """Release a user's numbers back to the pool and delete the user.

        Raises:
            NotFoundError: If the user does not exist
            InvalidArgumentError: If the user is an admin
        """
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User not found", details={"user_id": user_id})
        if user.is_admin:
            raise InvalidArgumentError("Admin users cannot be deleted", details={"user_id": user_id})

        released = await self.inventory.release_owners([user_id])
        deleted = await self.users.delete_many([user_id])

        logging_service.log_pool_operation(
            "delete_user", success=deleted > 0, user_id=user_id, numbers_released=released
        )
        return DeleteUsersResult(
            message=f"User {user_id} has been deleted successfully",
            deleted_count=deleted,
            deleted_user_ids=[user_id],
            numbers_released=released
        )

    async def delete_users(self, user_ids: List[str]) -> DeleteUsersResult:
        """Delete several users at once; refuses the whole call if any is an admin."""
        if not user_ids:
            raise InvalidArgumentError("Please provide an array of user IDs")

        found = []
        for user_id in dict.fromkeys(user_ids):
            user = await self.users.get(user_id)
            if user is not None:
                found.append(user)

        if not found:
            raise NotFoundError("No users found", details={"user_ids": user_ids})

        admin_ids = [user.user_id for user in found if user.is_admin]
        if admin_ids:
            raise InvalidArgumentError(
                "Admin users cannot be deleted",
                details={"admin_user_ids": admin_ids}
            )

        found_ids = [user.user_id for user in found]
        released = await self.inventory.release_owners(found_ids)
        deleted = await self.users.delete_many(found_ids)

        logging_service.log_pool_operation(
            "delete_users", success=True, deleted_count=deleted, numbers_released=released
        )
        return DeleteUsersResult(
            message=f"{deleted} users have been deleted successfully",
            deleted_count=deleted,
            deleted_user_ids=found_ids,
            numbers_released=released
        )
