"""HTTP API for triggering syncs and browsing run history.

Serve with ``uvicorn stocksync.app.api:app``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Literal

from fastapi import FastAPI, HTTPException, Query, status

from stocksync import __version__
from stocksync.app.config import configure_observability
from stocksync.app.dependencies import SettingsDep, SyncServiceDep, get_settings
from stocksync.domain.models import TriggerType
from stocksync.infrastructure.observability import get_logger
from stocksync.services.dto import (SyncHistoryPageDTO, SyncRunRequestDTO,
                                    SyncStatusDTO, SyncSummaryDTO)
from stocksync.services.sync import SyncInProgressError

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_observability(get_settings())
    yield


app = FastAPI(title="stocksync API", version=__version__, lifespan=lifespan)


@app.get("/")
async def root(settings: SettingsDep):
    """API root endpoint with links."""
    return {
        "name": "stocksync API",
        "version": __version__,
        "target_id": settings.sync.target_id,
        "scheduled": settings.sync.enabled,
        "docs": "/docs",
        "endpoints": {
            "run": "/sync/run",
            "status": "/sync/status",
            "state": "/sync/state",
            "history": "/sync/history",
        },
    }


@app.post("/sync/run", response_model=SyncSummaryDTO)
def run_sync(service: SyncServiceDep, request: SyncRunRequestDTO | None = None) -> SyncSummaryDTO:
    """Trigger one sync invocation, or loop until the run finishes."""
    request = request or SyncRunRequestDTO()
    trigger = TriggerType(request.trigger_type)
    try:
        if request.until_complete:
            summary = service.run_until_complete(request.target_id, trigger)[-1]
        else:
            summary = service.run(request.target_id, trigger)
    except SyncInProgressError as exc:
        logger.info("Rejected sync request: %s", exc)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return SyncSummaryDTO.from_summary(summary)


@app.get("/sync/status", response_model=SyncStatusDTO)
def get_sync_status(service: SyncServiceDep, target_id: str | None = None) -> SyncStatusDTO:
    return service.status(target_id)


@app.delete("/sync/state")
def reset_sync_state(service: SyncServiceDep, target_id: str | None = None) -> dict[str, bool]:
    """Discard saved batch progress."""
    try:
        existed = service.reset(target_id)
    except SyncInProgressError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return {"cleared": existed}


@app.get("/sync/history", response_model=SyncHistoryPageDTO)
def get_sync_history(
    service: SyncServiceDep,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=200),
    status_filter: Literal["success", "error"] | None = Query(None, alias="status"),
    sync_type: Literal["manual", "scheduled"] | None = None,
    target_id: str | None = None,
) -> SyncHistoryPageDTO:
    return service.history(
        page,
        per_page,
        status=status_filter,
        sync_type=sync_type,
        target_id=target_id,
    )
