"""
Bulk-edit API endpoints.

Paths and `{success, data}` envelopes match the admin frontend.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from auth import dependencies as auth_dependencies

from . import schemas, service
from .dependencies import get_resolver, get_store
from .errors import NoMatchingRecords, PartialBulkUpdateFailure
from .relations import RelationResolver, sessions
from .store import EntityStore

router = APIRouter(prefix="/api/v2/admin/bulk-edit")


@router.get("/metadata")
async def get_metadata(
    _: dict = Depends(auth_dependencies.require_bulk_editor),
) -> dict:
    return {"success": True, "data": service.metadata()}


@router.get("/relations/{relation_entity}")
async def get_relation_options(
    relation_entity: str,
    resolver: RelationResolver = Depends(get_resolver),
) -> dict:
    options = await service.relation_options(resolver, relation_entity)
    return {"success": True, "data": options}


@router.post("/query")
async def query_records(
    request: schemas.QueryRequest,
    store: EntityStore = Depends(get_store),
    _: dict = Depends(auth_dependencies.require_bulk_editor),
) -> dict:
    records = await service.query_records(
        store,
        request.entity_type,
        request.filters.to_conditions(),
        logic=request.filters.logic,
        limit=request.limit,
    )
    return {"success": True, "count": len(records), "data": records}


@router.post("/records")
async def fetch_records(
    request: schemas.RecordsRequest,
    store: EntityStore = Depends(get_store),
    _: dict = Depends(auth_dependencies.require_bulk_editor),
) -> dict:
    """
    Re-read specific records, e.g. to refresh the table after an execute.
    """
    records = await service.fetch_records(store, request.entity_type, request.ids)
    return {"success": True, "count": len(records), "data": records}


@router.post("/preview")
async def preview(
    request: schemas.BulkEditRequest,
    store: EntityStore = Depends(get_store),
    resolver: RelationResolver = Depends(get_resolver),
) -> dict:
    result = await service.preview(
        store,
        resolver,
        request.entity_type,
        request.filters.to_conditions(),
        service.BulkOperation(field=request.operation.field, value=request.operation.value),
        logic=request.filters.logic,
        limit=request.limit,
    )
    return {"success": True, "data": result.model_dump(by_alias=True)}


@router.post("/execute")
async def execute(
    request: schemas.BulkEditRequest,
    store: EntityStore = Depends(get_store),
    resolver: RelationResolver = Depends(get_resolver),
):
    result = await service.execute(
        store,
        resolver,
        request.entity_type,
        request.filters.to_conditions(),
        service.BulkOperation(field=request.operation.field, value=request.operation.value),
        logic=request.filters.logic,
        limit=request.limit,
    )
    if not result.success:
        no_match = result.error is not None and result.error.code == NoMatchingRecords.code
        status_code = NoMatchingRecords.status_code if no_match else PartialBulkUpdateFailure.status_code
        return JSONResponse(
            status_code=status_code,
            content=jsonable_encoder(
                {
                    "success": False,
                    "message": "Bulk edit failed",
                    "data": result.model_dump(by_alias=True),
                }
            ),
        )
    return {
        "success": True,
        "message": f"Successfully updated {result.updated_count} {result.entity_type}(s)",
        "data": result.model_dump(by_alias=True),
    }


@router.delete("/session")
async def end_session(
    current_user: dict = Depends(auth_dependencies.require_bulk_editor),
) -> dict:
    """
    Drop the caller's cached relation options.
    """
    return {"success": True, "ended": sessions.end(str(current_user["id"]))}
