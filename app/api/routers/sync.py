"""
app/api/routers/sync.py

Sync trigger and status HTTP endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.api.dependencies import get_runtime
from app.domain.resources import UnknownResourceError
from app.domain.sync import SyncAlreadyRunningError
from app.schemas.sync import SyncRequest, SyncRunResponse, SyncStatusResponse
from app.services.provider_registry import ProviderRuntime

router = APIRouter(tags=["sync"])


@router.post("/sync/{provider}", response_model=SyncRunResponse)
def trigger_sync(
    payload: SyncRequest | None = Body(default=None),
    runtime: ProviderRuntime = Depends(get_runtime),
) -> SyncRunResponse:
    """
    Run a sync for the requested resource types and return the run result.

    Partial failures are reported in ``errors`` with a 200 status.
    """

    resources = payload.resources if payload is not None else None
    try:
        run = runtime.orchestrator.sync(resources)
    except UnknownResourceError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except SyncAlreadyRunningError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    return SyncRunResponse(**run.to_dict())


@router.get("/status/{provider}", response_model=SyncStatusResponse)
def get_sync_status(runtime: ProviderRuntime = Depends(get_runtime)) -> SyncStatusResponse:
    sync_status = runtime.orchestrator.status()
    return SyncStatusResponse(
        provider=sync_status.provider,
        counts=sync_status.counts,
        total=sum(sync_status.counts.values()),
        last_synced_at=sync_status.last_synced_at,
        syncing=sync_status.syncing,
    )
