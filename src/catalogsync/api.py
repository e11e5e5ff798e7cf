"""HTTP entry point that triggers sync passes.

The application lifespan opens the warehouse connection and the table store
once and releases them on shutdown. Only one pass runs at a time; a request
that arrives while a pass is running is rejected with 409.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from catalogsync import __version__
from catalogsync.config import Settings, get_settings
from catalogsync.errors import CatalogFetchError, CatalogSyncError, ReconciliationError
from catalogsync.services.factory import open_reconciler
from catalogsync.services.reconciler import Reconciler, SyncResult

logger = structlog.get_logger(__name__)


def get_reconciler(request: Request) -> Reconciler:
    reconciler = getattr(request.app.state, "reconciler", None)
    if reconciler is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="reconciler not ready")
    return reconciler


def get_sync_lock(request: Request) -> asyncio.Lock:
    return request.app.state.sync_lock


def _error_response(status_code: int, exc: CatalogSyncError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


def create_application(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Settings to open the reconciler with. Defaults to the
            process settings.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with open_reconciler(settings) as reconciler:
            app.state.reconciler = reconciler
            logger.info("api_started")
            yield
            app.state.reconciler = None
        logger.info("api_stopped")

    application = FastAPI(title="catalogsync", version=__version__, lifespan=lifespan)
    application.state.sync_lock = asyncio.Lock()

    @application.exception_handler(CatalogFetchError)
    async def fetch_error_handler(request: Request, exc: CatalogFetchError) -> JSONResponse:
        return _error_response(status.HTTP_502_BAD_GATEWAY, exc)

    @application.exception_handler(ReconciliationError)
    async def reconciliation_error_handler(request: Request, exc: ReconciliationError) -> JSONResponse:
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc)

    @application.post("/sync", response_model=SyncResult)
    async def sync(
        reconciler: Reconciler = Depends(get_reconciler),
        sync_lock: asyncio.Lock = Depends(get_sync_lock),
    ) -> SyncResult:
        """Run one sync pass and return its summary."""
        if sync_lock.locked():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="sync already running")
        async with sync_lock:
            return await reconciler.run()

    @application.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy", "version": __version__}

    return application
