"""Pydantic models for the number pool service."""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

USER_ID_PATTERN = re.compile(r'^[0-9]{6}$')


def validate_user_id(value: str) -> str:
    """Validate the 6-digit user id format."""
    user_id = str(value).strip()
    if not USER_ID_PATTERN.match(user_id):
        raise ValueError(f'{user_id} is not a valid 6-digit user ID!')
    return user_id


def normalize_number(value: str) -> str:
    """Trim a candidate phone number; returns an empty string for blanks."""
    return str(value).strip()


class PhoneNumberRecord(BaseModel):
    """A phone number held in the inventory."""

    number: str = Field(..., description="Phone number, unique across the pool", min_length=1)
    is_assigned: bool = Field(default=False, description="Whether the number is linked to a user")
    assigned_owner: Optional[str] = Field(default=None, description="User id owning the number")

    @field_validator('number')
    @classmethod
    def validate_number(cls, v: str) -> str:
        """Trim whitespace and reject blank numbers."""
        number = normalize_number(v)
        if not number:
            raise ValueError('Phone number cannot be empty or contain only whitespace')
        return number

    @model_validator(mode='after')
    def check_owner_matches_flag(self) -> 'PhoneNumberRecord':
        """An owner is set exactly when the number is assigned."""
        if self.is_assigned != (self.assigned_owner is not None):
            raise ValueError('assigned_owner must be set if and only if is_assigned is true')
        return self


class UserRecord(BaseModel):
    """A user in the ledger with its running counters."""

    user_id: str = Field(..., description="Exactly 6 numeric digits")
    name: str = Field(..., description="Display name", min_length=1)
    is_admin: bool = Field(default=False)
    assigned_count: int = Field(default=0, ge=0, description="Numbers assigned and not yet reset")
    used_count: int = Field(default=0, ge=0, description="Numbers consumed by the user")

    @field_validator('user_id')
    @classmethod
    def validate_user_id_format(cls, v: str) -> str:
        return validate_user_id(v)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name is not empty or just whitespace."""
        name = v.strip()
        if not name:
            raise ValueError('Name cannot be empty or contain only whitespace')
        return name

    @model_validator(mode='after')
    def check_usage_within_assignment(self) -> 'UserRecord':
        """used_count never exceeds assigned_count."""
        if self.used_count > self.assigned_count:
            raise ValueError('used_count cannot exceed assigned_count')
        return self

    @computed_field
    @property
    def remaining(self) -> int:
        """How many more numbers the user may generate."""
        return self.assigned_count - self.used_count


class Identity(BaseModel):
    """Authenticated caller as supplied by the identity provider."""

    user_id: str
    is_admin: bool = False


class InsertOutcome(BaseModel):
    """Result of a continue-on-conflict batch insert."""

    inserted: List[str] = Field(default_factory=list)
    conflicts: List[str] = Field(default_factory=list)


# Requests

class UploadNumbersRequest(BaseModel):
    """Request model for bulk number upload."""

    numbers: List[str] = Field(..., description="Candidate phone numbers")

    @field_validator('numbers', mode='before')
    @classmethod
    def coerce_numbers(cls, v):
        """Accept numeric spreadsheet cells as strings."""
        if isinstance(v, list):
            return [str(item) if item is not None else "" for item in v]
        return v


class AssignNumbersRequest(BaseModel):
    """Request model for assigning numbers to one user."""

    user_id: str
    count: int


class AssignToAllRequest(BaseModel):
    """Request model for assigning numbers to every regular user."""

    count_per_user: int


class GenerateNumbersRequest(BaseModel):
    """Request model for consuming assigned numbers."""

    count: int


class CreateUserRequest(BaseModel):
    """Request model for creating a single user."""

    user_id: str
    name: str
    assigned_count: int = 0


class UserImportRow(BaseModel):
    """One row of a bulk user import; validated by the engine."""

    user_id: Optional[str] = None
    name: Optional[str] = None

    @field_validator('user_id', 'name', mode='before')
    @classmethod
    def coerce_cell(cls, v):
        """Spreadsheet cells may arrive as numbers."""
        if v is None:
            return None
        return str(v)


class BulkCreateUsersRequest(BaseModel):
    """Request model for bulk user import."""

    rows: List[UserImportRow]


class DeleteUsersRequest(BaseModel):
    """Request model for deleting several users."""

    user_ids: List[str]


# Results

class IngestResult(BaseModel):
    """Outcome of a bulk number upload."""

    message: str
    added: int = 0
    duplicates_skipped: int = 0


class AssignResult(BaseModel):
    """Outcome of assigning numbers to one user."""

    message: str
    user_id: str
    assigned_count: int
    user: UserRecord


class BulkAssignResult(BaseModel):
    """Outcome of assigning numbers to every regular user."""

    message: str
    users_processed: int = 0
    numbers_assigned: int = 0
    users_failed: int = 0


class GenerateResult(BaseModel):
    """Numbers consumed by a user."""

    count: int
    numbers: List[str]


class ResetResult(BaseModel):
    """Outcome of a bulk reset operation."""

    message: str
    success: bool = True
    numbers_affected: int = 0
    users_reset: int = 0

    @computed_field
    @property
    def changed(self) -> bool:
        """Whether the reset modified anything."""
        return self.numbers_affected > 0 or self.users_reset > 0


class ReconcileResult(BaseModel):
    """Outcome of a reconciliation pass."""

    message: str
    total_reconciled: int = 0
    issues: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def partial(self) -> bool:
        return bool(self.issues)


class BulkUserImportResult(BaseModel):
    """Outcome of a bulk user import."""

    message: str
    added: int = 0
    total_in_file: int = 0
    skipped_existing: int = 0
    skipped_invalid: int = 0
    skipped_duplicates: int = 0


class DeleteUsersResult(BaseModel):
    """Outcome of deleting one or more users."""

    message: str
    deleted_count: int
    deleted_user_ids: List[str]
    numbers_released: int = 0


class AdminCreatedResult(BaseModel):
    message: str
    user_id: str


class InventoryStats(BaseModel):
    """Pool-wide counters."""

    total: int
    available: int
    assigned: int
    used: int
    user_count: int


class NumberPage(BaseModel):
    """A page of inventory records."""

    numbers: List[PhoneNumberRecord]
    total: int
    total_pages: int
    current_page: int


class ExportResult(BaseModel):
    """Unassigned numbers exported from the pool."""

    count: int
    numbers: List[str]


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    details: dict = Field(default_factory=dict, description="Structured data for self-correction")


class HealthCheckResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Service status")
    store_connected: bool = Field(..., description="Record store connection status")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
