"""
routes_workloads.py

Purpose:
  Workload registry (one row per Kubernetes pod on a server) and the
  externally callable workload impact query.

Endpoints:
  - **POST /api/workloads**: Register a pod. Duplicate `(server_id, facility_id,
    pod_name)` -> 409 with the existing row.
  - **GET /api/workloads**: List, optional equality filters, newest first.
  - **GET/DELETE /api/workloads/{workload_id}**: UUID ids only.
  - **GET /api/workloads/{workload_id}/query?from=&to=**: Energy, emissions and
    embodied impact attributable to the pod over `[from, to)` (unix seconds).

Contract:
  - The query endpoint is guarded by CORS, rate limiting and `x-api-key`, in
    that order, and answers `OPTIONS` preflight with 204.
  - Successful query responses are cacheable privately for 5 minutes.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from nadiki_dashboard.config import Settings, allowed_origins
from nadiki_dashboard.deps import (
    InfluxFactory,
    enforce_rate_limit,
    get_influx_factory,
    get_registrar_client,
    get_session,
    get_settings,
)
from nadiki_dashboard.errors import ApiError, InfluxQueryError, RegistrarError
from nadiki_dashboard.middleware.api_key import require_api_key
from nadiki_dashboard.middleware.cors import CorsConfig, RouteCors
from nadiki_dashboard.models.db import WorkloadRecord
from nadiki_dashboard.schemas.workload import (
    WorkloadCreate,
    WorkloadDeleteResponse,
    WorkloadOut,
    WorkloadQueryResponse,
    validate_workload_payload,
)
from nadiki_dashboard.services.formatting import from_unix, to_rfc3339
from nadiki_dashboard.services.registrar_client import RegistrarClient
from nadiki_dashboard.services.workload_analysis import analyze_workload, facility_server_count

logger = logging.getLogger(__name__)

router = APIRouter()

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def _query_cors_config() -> CorsConfig:
    return CorsConfig(
        allowed_origins=allowed_origins(),
        allowed_methods=["GET", "OPTIONS"],
        allowed_headers=["Content-Type", "X-Api-Key"],
    )


query_cors = RouteCors(_query_cors_config)


def _to_out(rec: WorkloadRecord) -> WorkloadOut:
    return WorkloadOut(
        id=rec.id,
        server_id=rec.server_id,
        facility_id=rec.facility_id,
        pod_name=rec.pod_name,
        created_at=rec.created_at.isoformat(),
        updated_at=rec.updated_at.isoformat(),
    )


def _summary(rec: WorkloadRecord) -> Dict[str, Any]:
    return {
        "id": rec.id,
        "server_id": rec.server_id,
        "facility_id": rec.facility_id,
        "pod_name": rec.pod_name,
    }


def _check_id(workload_id: str) -> None:
    if not _UUID_RE.match(workload_id):
        raise ApiError(400, "Invalid workload ID", details="The provided ID is not a valid UUID format")


def _load(session: Session, workload_id: str) -> WorkloadRecord:
    rec = session.get(WorkloadRecord, workload_id.lower())
    if rec is None:
        raise ApiError(404, "Workload not found", details=f"No workload found with ID: {workload_id}")
    return rec


def _find_duplicate(session: Session, server_id: str, facility_id: str, pod_name: str) -> Optional[WorkloadRecord]:
    stmt = (
        select(WorkloadRecord)
        .where(WorkloadRecord.server_id == server_id)
        .where(WorkloadRecord.facility_id == facility_id)
        .where(WorkloadRecord.pod_name == pod_name)
    )
    return session.exec(stmt).first()


def _already_exists(existing: WorkloadRecord) -> ApiError:
    return ApiError(
        409,
        "Workload already exists",
        details=(
            f'A workload with server_id "{existing.server_id}", facility_id '
            f'"{existing.facility_id}", and pod_name "{existing.pod_name}" already exists'
        ),
        extra={"existing_workload": _summary(existing)},
    )


@router.post("", response_model=WorkloadOut, status_code=201)
async def create_workload(request: Request, session: Session = Depends(get_session)) -> WorkloadOut:
    try:
        body = await request.json()
    except ValueError as e:
        logger.warning("invalid JSON in workload body: %s", e)
        raise ApiError(400, "Invalid JSON in request body", details=str(e))

    errors = validate_workload_payload(body)
    if errors:
        raise ApiError(400, "Validation failed", details=[err.model_dump() for err in errors])

    data = WorkloadCreate.model_validate(body)
    server_id, facility_id, pod_name = data.server_id, data.facility_id, data.pod_name

    existing = _find_duplicate(session, server_id, facility_id, pod_name)
    if existing is not None:
        raise _already_exists(existing)

    rec = WorkloadRecord(server_id=server_id, facility_id=facility_id, pod_name=pod_name)
    try:
        session.add(rec)
        session.commit()
        session.refresh(rec)
    except IntegrityError:
        # lost a race against a concurrent insert of the same triple
        session.rollback()
        existing = _find_duplicate(session, server_id, facility_id, pod_name)
        if existing is None:
            raise ApiError(500, "Failed to create workload")
        raise _already_exists(existing)
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("failed to create workload")
        raise ApiError(500, "Failed to create workload", details=str(e))

    logger.info("created workload %s (%s on %s)", rec.id, rec.pod_name, rec.server_id)
    return _to_out(rec)


@router.get("", response_model=List[WorkloadOut])
def list_workloads(
    server_id: Optional[str] = Query(None),
    facility_id: Optional[str] = Query(None),
    pod_name: Optional[str] = Query(None),
    session: Session = Depends(get_session),
) -> List[WorkloadOut]:
    stmt = select(WorkloadRecord)
    if server_id:
        stmt = stmt.where(WorkloadRecord.server_id == server_id)
    if facility_id:
        stmt = stmt.where(WorkloadRecord.facility_id == facility_id)
    if pod_name:
        stmt = stmt.where(WorkloadRecord.pod_name == pod_name)
    stmt = stmt.order_by(WorkloadRecord.created_at.desc())

    try:
        rows = session.exec(stmt).all()
    except SQLAlchemyError as e:
        logger.exception("failed to list workloads")
        raise ApiError(500, "Failed to list workloads", details=str(e))
    return [_to_out(r) for r in rows]


@router.get("/{workload_id}", response_model=WorkloadOut)
def get_workload(workload_id: str, session: Session = Depends(get_session)) -> WorkloadOut:
    _check_id(workload_id)
    return _to_out(_load(session, workload_id))


@router.delete("/{workload_id}", response_model=WorkloadDeleteResponse)
def delete_workload(workload_id: str, session: Session = Depends(get_session)) -> WorkloadDeleteResponse:
    _check_id(workload_id)
    rec = _load(session, workload_id)
    deleted = _summary(rec)
    try:
        session.delete(rec)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("failed to delete workload %s", workload_id)
        raise ApiError(500, "Failed to delete workload", details=str(e))

    logger.info("deleted workload %s", workload_id)
    return WorkloadDeleteResponse(message="Workload deleted successfully", deleted_workload=deleted)


@router.options("/{workload_id}/query", include_in_schema=False)
def workload_query_preflight(workload_id: str, request: Request) -> Response:
    return query_cors.preflight(request)


def _parse_range(from_param: Optional[str], to_param: Optional[str]) -> Tuple[datetime, datetime]:
    if not from_param or not to_param:
        raise ApiError(
            400,
            "Missing required parameters",
            details='Both "from" and "to" query parameters (unix timestamps) are required',
        )
    try:
        start, end = from_unix(int(from_param)), from_unix(int(to_param))
    except (ValueError, OverflowError, OSError):
        raise ApiError(400, "Invalid timestamp", details='Both "from" and "to" must be valid unix timestamps')

    if start >= end:
        raise ApiError(400, "Invalid time range", details='"from" timestamp must be before "to" timestamp')
    return start, end


@router.get(
    "/{workload_id}/query",
    response_model=WorkloadQueryResponse,
    dependencies=[Depends(query_cors), Depends(enforce_rate_limit), Depends(require_api_key)],
)
async def query_workload(
    workload_id: str,
    response: Response,
    from_param: Optional[str] = Query(None, alias="from"),
    to_param: Optional[str] = Query(None, alias="to"),
    session: Session = Depends(get_session),
    registrar: RegistrarClient = Depends(get_registrar_client),
    influx_factory: InfluxFactory = Depends(get_influx_factory),
    settings: Settings = Depends(get_settings),
) -> WorkloadQueryResponse:
    _check_id(workload_id)
    start, end = _parse_range(from_param, to_param)
    rec = _load(session, workload_id)

    try:
        server = await registrar.get_server(rec.server_id)
    except RegistrarError:
        raise ApiError(
            500,
            "Failed to fetch server configuration",
            details=f"Server {rec.server_id} not found or API error",
        )

    ts_config = (server or {}).get("timeSeriesConfig")
    if not ts_config:
        raise ApiError(500, "No time-series configuration", details="Server does not have InfluxDB configuration")

    try:
        facility = await registrar.get_facility(rec.facility_id)
    except RegistrarError:
        raise ApiError(
            500,
            "Failed to fetch facility configuration",
            details=f"Facility {rec.facility_id} not found or API error",
        )
    total_servers = facility_server_count(facility)

    try:
        influx = influx_factory(ts_config)
        result = await analyze_workload(
            influx,
            _summary(rec),
            bucket=ts_config.get("bucket", ""),
            impact_bucket=settings.influx.impact_bucket,
            start=start,
            end=end,
            total_servers=total_servers,
        )
    except InfluxQueryError as e:
        logger.error("workload %s query failed: %s", workload_id, e)
        raise ApiError(500, "An unexpected error occurred", details=str(e))

    logger.info(
        "workload %s analysed for %s..%s",
        workload_id, to_rfc3339(start), to_rfc3339(end),
    )
    response.headers["Cache-Control"] = "private, max-age=300"
    return result
