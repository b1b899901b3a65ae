"""Data models for the number pool service."""

from .schemas import (
    PhoneNumberRecord,
    UserRecord,
    Identity,
    InsertOutcome,
    UploadNumbersRequest,
    AssignNumbersRequest,
    AssignToAllRequest,
    GenerateNumbersRequest,
    CreateUserRequest,
    UserImportRow,
    BulkCreateUsersRequest,
    DeleteUsersRequest,
    IngestResult,
    AssignResult,
    BulkAssignResult,
    GenerateResult,
    ResetResult,
    ReconcileResult,
    BulkUserImportResult,
    DeleteUsersResult,
    AdminCreatedResult,
    InventoryStats,
    NumberPage,
    ExportResult,
    ErrorResponse,
    HealthCheckResponse,
)

__all__ = [
    "PhoneNumberRecord",
    "UserRecord",
    "Identity",
    "InsertOutcome",
    "UploadNumbersRequest",
    "AssignNumbersRequest",
    "AssignToAllRequest",
    "GenerateNumbersRequest",
    "CreateUserRequest",
    "UserImportRow",
    "BulkCreateUsersRequest",
    "DeleteUsersRequest",
    "IngestResult",
    "AssignResult",
    "BulkAssignResult",
    "GenerateResult",
    "ResetResult",
    "ReconcileResult",
    "BulkUserImportResult",
    "DeleteUsersResult",
    "AdminCreatedResult",
    "InventoryStats",
    "NumberPage",
    "ExportResult",
    "ErrorResponse",
    "HealthCheckResponse",
]
