"""
app/api/routers/records.py

Read-only access to mirrored provider objects.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_runtime
from app.domain.resources import ResourceType, UnknownResourceError
from app.domain.sync import StoredRecord
from app.schemas.records import RecordListResponse, RecordResponse
from app.services.provider_registry import ProviderRuntime

router = APIRouter(tags=["records"])


def _resolve_resource(runtime: ProviderRuntime, resource: str) -> ResourceType:
    try:
        return runtime.catalog.get(resource)
    except UnknownResourceError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


def _to_response(record: StoredRecord) -> RecordResponse:
    return RecordResponse(
        provider=record.provider,
        resource=record.resource,
        id=record.id,
        parent_id=record.parent_id,
        synced_at=record.synced_at,
        deleted_at=record.deleted_at,
        data=record.data,
    )


@router.get("/records/{provider}/{resource}", response_model=RecordListResponse)
def list_records(
    resource: str,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    parent_id: str | None = Query(default=None),
    runtime: ProviderRuntime = Depends(get_runtime),
) -> RecordListResponse:
    resource_type = _resolve_resource(runtime, resource)
    records = runtime.records.list_records(
        runtime.provider,
        resource_type.name,
        limit=limit,
        offset=offset,
        parent_id=parent_id,
    )
    return RecordListResponse(
        provider=runtime.provider,
        resource=resource_type.name,
        limit=limit,
        offset=offset,
        records=[_to_response(record) for record in records],
    )


@router.get("/records/{provider}/{resource}/{record_id}", response_model=RecordResponse)
def get_record(
    resource: str,
    record_id: str,
    runtime: ProviderRuntime = Depends(get_runtime),
) -> RecordResponse:
    resource_type = _resolve_resource(runtime, resource)
    record = runtime.records.get(runtime.provider, resource_type.name, record_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource_type.name} '{record_id}' is not mirrored.",
        )
    return _to_response(record)
