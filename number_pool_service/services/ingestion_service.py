"""Ingestion pipeline: de-duplicated batch upload of phone numbers."""

from typing import Iterable, List

from number_pool_service.config.logging import LoggingService
from number_pool_service.exceptions import InfrastructureError
from number_pool_service.models.schemas import IngestResult, normalize_number
from number_pool_service.repositories.base import InventoryRepository

logging_service = LoggingService(__name__)

DEFAULT_BATCH_SIZE = 10000


def prepare_candidates(candidates: Iterable[str]) -> List[str]:
    """Trim, drop blanks and de-duplicate, keeping first occurrences in order."""
    seen = {}
    for candidate in candidates:
        if candidate is None:
            continue
        number = normalize_number(candidate)
        if number:
            seen.setdefault(number, None)
    return list(seen)


class IngestionService:
    """Adds new numbers to the inventory in bounded batches."""

    def __init__(self, inventory: InventoryRepository, batch_size: int = DEFAULT_BATCH_SIZE):
        """Initialize service with repository dependency.

        Args:
            inventory: InventoryRepository implementation
            batch_size: Maximum numbers checked and inserted per store call
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.inventory = inventory
        self.batch_size = batch_size

    async def ingest(self, candidate_numbers: Iterable[str]) -> IngestResult:
        """Insert every candidate not already in the pool.

        Repeats within the call and numbers already stored are both reported
        as skipped duplicates. A concurrent writer inserting the same number
        between the existence check and the insert only moves that number
        from "added" to "skipped"; the rest of the batch still commits.

        Args:
            candidate_numbers: Raw number strings

        Returns:
            IngestResult with added and duplicates_skipped counts

        Raises:
            ConflictError: If a batch insert failed without per-record outcome
            InfrastructureError: If the store is unavailable
        """
        candidate_numbers = list(candidate_numbers)
        unique_numbers = prepare_candidates(candidate_numbers)
        non_blank = sum(
            1 for candidate in candidate_numbers
            if candidate is not None and normalize_number(candidate)
        )

        if not unique_numbers:
            logging_service.log_operation(
                "info",
                "No valid phone numbers provided to upload",
                operation="ingest"
            )
            return IngestResult(
                message="No valid phone numbers provided to upload.",
                added=0,
                duplicates_skipped=0
            )

        total_added = 0
        total_skipped = non_blank - len(unique_numbers)

        for start in range(0, len(unique_numbers), self.batch_size):
            batch = unique_numbers[start:start + self.batch_size]
            try:
                existing = await self.inventory.find_existing(batch)
                to_insert = [number for number in batch if number not in existing]

                outcome = await self.inventory.insert_many(to_insert)
            except InfrastructureError as e:
                logging_service.log_error(
                    "Store unavailable during ingestion",
                    e,
                    operation="ingest",
                    batch_start=start,
                    added_so_far=total_added
                )
                raise

            if outcome.conflicts:
                logging_service.log_operation(
                    "warning",
                    "Concurrent inserts detected in batch; conflicting numbers skipped",
                    operation="ingest",
                    conflicts=len(outcome.conflicts)
                )

            total_added += len(outcome.inserted)
            total_skipped += len(existing) + len(outcome.conflicts)

        logging_service.log_pool_operation(
            "ingest",
            success=True,
            added=total_added,
            duplicates_skipped=total_skipped
        )

        return IngestResult(
            message=(
                f"{total_added} phone numbers added successfully. "
                f"{total_skipped} duplicates were skipped."
            ),
            added=total_added,
            duplicates_skipped=total_skipped
        )
