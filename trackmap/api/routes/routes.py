# path: trackmap/api/routes/routes.py

from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from trackmap.api.deps import get_settings, get_store
from trackmap.config import AppSettings
from trackmap.errors import DuplicateRoute, RouteNotFound, StorageError
from trackmap.models.route_models import BackupFile, ImportOptions, PeriodKey, Route
from trackmap.services.gpx_export import export_backup, import_backup, route_to_gpx
from trackmap.services.gpx_parser import SourceFile, parse_files
from trackmap.services.route_builder import build_routes
from trackmap.storage.route_store import RouteStore

router = APIRouter(prefix="/routes", tags=["routes"])

logger = logging.getLogger(__name__)


class ImportRequest(BaseModel):
    files: List[SourceFile] = Field(min_length=1)
    options: ImportOptions = Field(default_factory=ImportOptions)


class FileImportResult(BaseModel):
    job_id: str
    name: str
    track_count: int = 0
    error: Optional[str] = None


class ImportResponse(BaseModel):
    results: List[FileImportResult]
    routes: List[Route]


class ExportRequest(BaseModel):
    route_ids: List[str] = Field(min_length=1)


class BackupImportResponse(BaseModel):
    imported: int


def _storage_http_error(e: StorageError) -> HTTPException:
    if isinstance(e, RouteNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, DuplicateRoute):
        return HTTPException(status_code=409, detail=str(e))
    logger.error(f"Storage failure: {e}")
    return HTTPException(status_code=503, detail=str(e))


@router.post("/import", response_model=ImportResponse)
def import_files(
    req: ImportRequest,
    store: RouteStore = Depends(get_store),
    settings: AppSettings = Depends(get_settings),
) -> ImportResponse:
    # A file that fails to parse is reported, the rest are still stored.
    results = parse_files(req.files, max_workers=settings.parse_workers)
    routes = build_routes(results, req.options)
    try:
        store.add_routes(routes)
    except StorageError as e:
        raise _storage_http_error(e)
    return ImportResponse(
        results=[
            FileImportResult(job_id=r.job_id, name=r.name, track_count=len(r.tracks), error=r.error)
            for r in results
        ],
        routes=routes,
    )


@router.get("", response_model=List[Route])
def list_routes(store: RouteStore = Depends(get_store)) -> List[Route]:
    try:
        return store.get_all()
    except StorageError as e:
        raise _storage_http_error(e)


@router.get("/period/{period_key}", response_model=List[Route])
def list_routes_by_period(period_key: PeriodKey, store: RouteStore = Depends(get_store)) -> List[Route]:
    try:
        return store.get_by_period(period_key)
    except StorageError as e:
        raise _storage_http_error(e)


@router.get("/{route_id}/gpx")
def export_route_gpx(route_id: str, store: RouteStore = Depends(get_store)) -> Response:
    route = store.get(route_id)
    if route is None:
        raise HTTPException(status_code=404, detail=f"Route not found: {route_id}")
    headers = {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(route.name)}.gpx"}
    return Response(content=route_to_gpx(route), media_type="application/gpx+xml", headers=headers)


@router.delete("/{route_id}", status_code=204)
def delete_route(route_id: str, store: RouteStore = Depends(get_store)) -> Response:
    try:
        store.delete(route_id)
    except StorageError as e:
        raise _storage_http_error(e)
    return Response(status_code=204)


@router.post("/export", response_model=BackupFile)
def export_routes(req: ExportRequest, store: RouteStore = Depends(get_store)) -> BackupFile:
    routes = []
    for route_id in req.route_ids:
        route = store.get(route_id)
        if route is None:
            raise HTTPException(status_code=404, detail=f"Route not found: {route_id}")
        routes.append(route)
    return export_backup(routes)


@router.post("/backup", response_model=BackupImportResponse)
def restore_backup(data: Dict[str, Any], store: RouteStore = Depends(get_store)) -> BackupImportResponse:
    try:
        routes = import_backup(data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        store.add_routes(routes)
    except StorageError as e:
        raise _storage_http_error(e)
    return BackupImportResponse(imported=len(routes))
