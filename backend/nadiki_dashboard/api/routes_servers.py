"""
routes_servers.py

Server CRUD proxied to the registrar. The list endpoint filters by
`facility_id` and `rack_id`; server bodies carry the upstream's own field
names (including `exptected_lifetime`).
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response

from nadiki_dashboard.deps import get_registrar_client
from nadiki_dashboard.errors import ApiError, RegistrarError, from_registrar_error
from nadiki_dashboard.schemas.registrar import ServerCreate, ServerUpdate, to_payload
from nadiki_dashboard.services.registrar_client import RegistrarClient

router = APIRouter()


@router.get("")
async def list_servers(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: Optional[int] = Query(None, ge=0),
    facility_id: Optional[str] = Query(None),
    rack_id: Optional[str] = Query(None),
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Any:
    try:
        return await registrar.list_servers(
            limit=limit, offset=offset, facility_id=facility_id, rack_id=rack_id,
        )
    except RegistrarError:
        raise ApiError(500, "Failed to list servers")


@router.post("", status_code=201)
async def create_server(
    payload: ServerCreate,
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Any:
    try:
        return await registrar.create_server(to_payload(payload))
    except RegistrarError as e:
        raise from_registrar_error(e, "server", "create")


@router.get("/{server_id}")
async def get_server(
    server_id: str,
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Any:
    try:
        return await registrar.get_server(server_id)
    except RegistrarError as e:
        raise from_registrar_error(e, "server", "get")


@router.put("/{server_id}")
async def update_server(
    server_id: str,
    payload: ServerUpdate,
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Any:
    try:
        return await registrar.update_server(server_id, to_payload(payload))
    except RegistrarError as e:
        raise from_registrar_error(e, "server", "update")


@router.delete("/{server_id}", status_code=204)
async def delete_server(
    server_id: str,
    registrar: RegistrarClient = Depends(get_registrar_client),
) -> Response:
    try:
        await registrar.delete_server(server_id)
    except RegistrarError as e:
        raise from_registrar_error(e, "server", "delete")
    return Response(status_code=204)
