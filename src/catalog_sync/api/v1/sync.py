"""Sync trigger and status endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from catalog_sync.services.container import get_orchestrator
from catalog_sync.services.sync_orchestrator import SyncOrchestrator

router = APIRouter()


class SyncResultModel(BaseModel):
    """Counts from one completed sync run."""

    model_config = ConfigDict(from_attributes=True)

    success: bool
    orders_synced: int
    errors: int
    orders_deleted: int
    products_deleted: int
    timestamp: datetime


class SyncStatsModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_syncs: int
    successful_syncs: int
    failed_syncs: int
    last_error: str | None


class SyncStatusModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_running: bool
    last_sync: datetime | None
    stats: SyncStatsModel


class SyncResponse(BaseModel):
    success: bool
    message: str
    data: SyncResultModel


class SyncStatusResponse(BaseModel):
    success: bool
    data: SyncStatusModel
    next_scheduled_run: datetime | None = None


@router.post("", response_model=SyncResponse)
async def trigger_sync(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncResponse:
    """
    Run a full sync now: order ingestion followed by retention cleanup.

    Returns 409 if a sync is already running in this process.
    """
    result = await orchestrator.run_sync()
    return SyncResponse(
        success=True,
        message="Sync completed successfully",
        data=SyncResultModel.model_validate(result),
    )


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncStatusResponse:
    """Current run state, last completed run and cumulative counters."""
    return SyncStatusResponse(
        success=True,
        data=SyncStatusModel.model_validate(orchestrator.get_status()),
        next_scheduled_run=orchestrator.next_scheduled_run(),
    )
