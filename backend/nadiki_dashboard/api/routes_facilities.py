"""
routes_facilities.py

Purpose:
  Facility CRUD, proxied 1:1 to the registrar API.

Endpoints:
  - **GET /api/facilities**: Paged list (`limit`, `offset`), upstream JSON as-is.
  - **POST /api/facilities**: Create; 201 with the registrar's entity.
  - **GET/PUT/DELETE /api/facilities/{facility_id}**: Read, replace, remove.

Contract:
  - Bodies are checked locally for presence/type before the upstream call.
  - Upstream 400 -> 400 `Invalid facility data` (upstream body in `details`),
    404 -> 404 `Facility not found`, anything else -> 500.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response

from nadiki_dashboard.deps import get_registrar_client
from nadiki_dashboard.errors import ApiError, RegistrarError, from_registrar_error
from nadiki_dashboard.schemas.registrar import FacilityCreate, FacilityUpdate, to_payload
from nadiki_dashboard.services.registrar_client import RegistrarClient

router = APIRouter()


@router.get("")
async def list_facilities(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: Optional[int] = Query(None, ge=0),
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Any:
    try:
        return await registrar.list_facilities(limit=limit, offset=offset)
    except RegistrarError:
        raise ApiError(500, "Failed to list facilities")


@router.post("", status_code=201)
async def create_facility(
    payload: FacilityCreate,
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Any:
    try:
        return await registrar.create_facility(to_payload(payload))
    except RegistrarError as e:
        raise from_registrar_error(e, "facility", "create")


@router.get("/{facility_id}")
async def get_facility(
    facility_id: str,
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Any:
    try:
        return await registrar.get_facility(facility_id)
    except RegistrarError as e:
        raise from_registrar_error(e, "facility", "get")


@router.put("/{facility_id}")
async def update_facility(
    facility_id: str,
    payload: FacilityUpdate,
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Any:
    try:
        return await registrar.update_facility(facility_id, to_payload(payload))
    except RegistrarError as e:
        raise from_registrar_error(e, "facility", "update")


@router.delete("/{facility_id}", status_code=204)
async def delete_facility(
    facility_id: str,
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Response:
    try:
        await registrar.delete_facility(facility_id)
    except RegistrarError as e:
        raise from_registrar_error(e, "facility", "delete")
    return Response(status_code=204)
