"""
routes_racks.py

Rack CRUD proxied to the registrar. Same contract as facilities; the list
endpoint additionally filters by `facility_id`.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response

from nadiki_dashboard.deps import get_registrar_client
from nadiki_dashboard.errors import ApiError, RegistrarError, from_registrar_error
from nadiki_dashboard.schemas.registrar import RackCreate, RackUpdate, to_payload
from nadiki_dashboard.services.registrar_client import RegistrarClient

router = APIRouter()


@router.get("")
async def list_racks(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: Optional[int] = Query(None, ge=0),
    facility_id: Optional[str] = Query(None),
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Any:
    try:
        return await registrar.list_racks(limit=limit, offset=offset, facility_id=facility_id)
    except RegistrarError:
        raise ApiError(500, "Failed to list racks")


@router.post("", status_code=201)
async def create_rack(
    payload: RackCreate,
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Any:
    try:
        return await registrar.create_rack(to_payload(payload))
    except RegistrarError as e:
        raise from_registrar_error(e, "rack", "create")


@router.get("/{rack_id}")
async def get_rack(
    rack_id: str,
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Any:
    try:
        return await registrar.get_rack(rack_id)
    except RegistrarError as e:
        raise from_registrar_error(e, "rack", "get")


@router.put("/{rack_id}")
async def update_rack(
    rack_id: str,
    payload: RackUpdate,
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Any:
    try:
        return await registrar.update_rack(rack_id, to_payload(payload))
    except RegistrarError as e:
        raise from_registrar_error(e, "rack", "update")


@router.delete("/{rack_id}", status_code=204)
async def delete_rack(
    rack_id: str,
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Response:
    try:
        await registrar.delete_rack(rack_id)
    except RegistrarError as e:
        raise from_registrar_error(e, "rack", "delete")
    return Response(status_code=204)
