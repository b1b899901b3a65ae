"""FastAPI application factory and configuration."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, List

from fastapi import Depends, FastAPI, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware

from number_pool_service import __version__
from number_pool_service.api.dependencies import get_engine, get_identity, require_admin
from number_pool_service.api.middleware import (
    CorrelationIdMiddleware,
    ErrorHandlingMiddleware,
    LoggingMiddleware,
    number_pool_error_handler,
)
from number_pool_service.bootstrap import create_engine
from number_pool_service.config.logging import setup_logging, LoggingService
from number_pool_service.config.settings import Settings, settings
from number_pool_service.exceptions import NumberPoolError
from number_pool_service.models.schemas import (
    AssignNumbersRequest,
    AssignResult,
    AssignToAllRequest,
    BulkAssignResult,
    BulkCreateUsersRequest,
    BulkUserImportResult,
    CreateUserRequest,
    DeleteUsersRequest,
    DeleteUsersResult,
    ErrorResponse,
    ExportResult,
    GenerateNumbersRequest,
    GenerateResult,
    HealthCheckResponse,
    Identity,
    IngestResult,
    InventoryStats,
    NumberPage,
    ReconcileResult,
    ResetResult,
    UploadNumbersRequest,
    UserRecord,
)
from number_pool_service.repositories.connection import RedisConnectionManager
from number_pool_service.services.engine import NumberPoolEngine

logging_service = LoggingService(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request or capacity shortfall"},
    403: {"model": ErrorResponse, "description": "Admin role required"},
    404: {"model": ErrorResponse, "description": "User or numbers not found"},
    503: {"model": ErrorResponse, "description": "Service unavailable"},
}


async def build_engine(app: FastAPI, config: Settings) -> None:
    """Construct the store and the engine and attach them to app.state."""
    if config.storage_backend == "memory":
        app.state.connection_manager = None
        app.state.engine = create_engine(config)
        logging_service.log_operation(
            "info", "Using in-memory store", operation="store_startup"
        )
        return

    manager = RedisConnectionManager(config)
    try:
        await manager.initialize()
        logging_service.log_operation(
            "info",
            "Redis connection established successfully",
            operation="redis_startup",
            redis_host=config.redis_host,
            redis_port=config.redis_port
        )
    except Exception as e:
        # Startup continues; health check reports the degraded store
        logging_service.log_error(
            "Failed to establish Redis connection during startup",
            e,
            operation="redis_startup"
        )

    app.state.connection_manager = manager
    app.state.engine = create_engine(config, manager)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging(settings)
    logging_service.log_operation(
        "info",
        "Number Pool Service starting up...",
        operation="service_startup"
    )

    await build_engine(app, settings)

    yield

    logging_service.log_operation(
        "info",
        "Number Pool Service shutting down...",
        operation="service_shutdown"
    )

    manager = getattr(app.state, "connection_manager", None)
    if manager is not None:
        await manager.close()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    app = FastAPI(
        title="Number Pool Service",
        description="Phone-number inventory, assignment and consumption engine",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_exception_handler(NumberPoolError, number_pool_error_handler)

    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Outermost, so every log line of the request carries the id
    app.add_middleware(CorrelationIdMiddleware)

    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check(engine: NumberPoolEngine = Depends(get_engine)):
        """Health check endpoint with store connectivity check."""
        store_connected = await engine.health_check()

        if store_connected:
            status_value = "healthy"
        else:
            status_value = "degraded"
            logging_service.log_operation(
                "warning",
                "Health check shows degraded status - store unavailable",
                operation="health_check"
            )

        return HealthCheckResponse(status=status_value, store_connected=store_connected)

    # Inventory administration

    @app.post(
        "/admin/numbers/upload",
        response_model=IngestResult,
        status_code=status.HTTP_201_CREATED,
        responses=ERROR_RESPONSES
    )
    async def upload_numbers(
        request: UploadNumbersRequest,
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        """Add numbers to the pool, skipping duplicates."""
        return await engine.ingest(request.numbers)

    @app.get("/admin/numbers", response_model=NumberPage, responses=ERROR_RESPONSES)
    async def list_numbers(
        page: int = Query(default=1),
        limit: int = Query(default=100),
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.list_numbers(page, limit)

    @app.get("/admin/numbers/stats", response_model=InventoryStats, responses=ERROR_RESPONSES)
    async def inventory_stats(
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.inventory_stats()

    @app.get("/admin/numbers/export", response_model=ExportResult, responses=ERROR_RESPONSES)
    async def export_unused_numbers(
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.export_unused_numbers()

    @app.post("/admin/numbers/assign", response_model=AssignResult, responses=ERROR_RESPONSES)
    async def assign_numbers(
        request: AssignNumbersRequest,
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.assign(request.user_id, request.count)

    @app.post("/admin/numbers/assign-all", response_model=BulkAssignResult, responses=ERROR_RESPONSES)
    async def assign_numbers_to_all(
        request: AssignToAllRequest,
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.assign_to_all(request.count_per_user)

    @app.post("/admin/numbers/clear-total", response_model=ResetResult, responses=ERROR_RESPONSES)
    async def clear_total_inventory(
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.clear_total_inventory()

    @app.post("/admin/numbers/clear-assigned", response_model=ResetResult, responses=ERROR_RESPONSES)
    async def clear_assigned_links(
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.clear_assigned_links()

    @app.post("/admin/numbers/clear-used", response_model=ResetResult, responses=ERROR_RESPONSES)
    async def clear_used_counters(
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.clear_used_counters()

    @app.post("/admin/numbers/clear-all-assignments", response_model=ResetResult, responses=ERROR_RESPONSES)
    async def clear_all_assignments(
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.clear_all_assignments()

    @app.post("/admin/numbers/unassign-all", response_model=ResetResult, responses=ERROR_RESPONSES)
    async def unassign_all_and_reset(
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.unassign_all_and_reset()

    @app.post("/admin/numbers/reconcile", response_model=ReconcileResult, responses=ERROR_RESPONSES)
    async def reconcile(
        response: Response,
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        """Repair assignment links; 207 when some users could not be topped up."""
        result = await engine.reconcile()
        if result.partial:
            response.status_code = status.HTTP_207_MULTI_STATUS
        return result

    # User administration

    @app.post("/admin/users", response_model=UserRecord, status_code=status.HTTP_201_CREATED,
              responses={**ERROR_RESPONSES, 409: {"model": ErrorResponse, "description": "User ID already exists"}})
    async def create_user(
        request: CreateUserRequest,
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.create_user(request.user_id, request.name, request.assigned_count)

    @app.get("/admin/users", response_model=List[UserRecord], responses=ERROR_RESPONSES)
    async def list_users(
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.list_users()

    @app.post("/admin/users/bulk", response_model=BulkUserImportResult,
              status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
    async def bulk_create_users(
        request: BulkCreateUsersRequest,
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        """Import users from rows decoded upstream from a spreadsheet."""
        return await engine.bulk_create_users(request.rows)

    @app.post("/admin/users/delete", response_model=DeleteUsersResult, responses=ERROR_RESPONSES)
    async def delete_users(
        request: DeleteUsersRequest,
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.delete_users(request.user_ids)

    @app.delete("/admin/users/{user_id}", response_model=DeleteUsersResult, responses=ERROR_RESPONSES)
    async def delete_user(
        user_id: str,
        _: Identity = Depends(require_admin),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.delete_user(user_id)

    # Caller's own numbers

    @app.get("/users/me", response_model=UserRecord, responses=ERROR_RESPONSES)
    async def get_profile(
        identity: Identity = Depends(get_identity),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        return await engine.get_user_profile(identity.user_id)

    @app.post("/users/me/generate", response_model=GenerateResult, responses=ERROR_RESPONSES)
    async def generate_numbers(
        request: GenerateNumbersRequest,
        identity: Identity = Depends(get_identity),
        engine: NumberPoolEngine = Depends(get_engine)
    ):
        """Consume numbers assigned to the caller."""
        return await engine.generate(identity.user_id, request.count)

    return app


# Create the application instance
app = create_app()
