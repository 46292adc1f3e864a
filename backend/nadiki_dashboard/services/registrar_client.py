"""
registrar_client.py

Purpose:
  Async client for the external registrar API that owns facilities, racks and
  servers. This backend never stores those entities; every call is proxied.

Contract:
  - Base URL is `{REGISTRAR_API_BASE_URL}/v1`, HTTP basic auth, JSON bodies.
  - Any non-2xx reply raises `RegistrarError(status_code, payload)` so routes can
    translate 400/404 and collapse everything else to 500.
  - Transport failures (DNS, timeout, TLS) raise `RegistrarError(None, ...)`.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from nadiki_dashboard.config import RegistrarSettings
from nadiki_dashboard.errors import RegistrarError

logger = logging.getLogger(__name__)


def _clean_params(params: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in params.items() if v is not None}


class RegistrarClient:
    def __init__(
        self,
        settings: Optional[RegistrarSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or RegistrarSettings.from_env()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        s = self.settings
        return httpx.AsyncClient(
            base_url=f"{s.base_url}/v1",
            timeout=s.timeout_s,
            headers={"Content-Type": "application/json"},
            auth=(s.username, s.password),
            verify=s.verify_tls,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        try:
            async with self._client() as client:
                r = await client.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            logger.error("registrar %s %s failed: %r", method, path, e)
            raise RegistrarError(None, message=f"registrar unreachable: {e!s}") from e

        if r.is_error:
            try:
                payload = r.json()
            except ValueError:
                payload = r.text
            logger.error("registrar %s %s -> %s: %s", method, path, r.status_code, payload)
            raise RegistrarError(r.status_code, payload)

        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    # -----------------------------
    # Facilities
    # -----------------------------
    async def list_facilities(self, limit: Optional[int] = None, offset: Optional[int] = None) -> Any:
        return await self._request("GET", "/facilities", params=_clean_params({"limit": limit, "offset": offset}))

    async def create_facility(self, data: Dict[str, Any]) -> Any:
        return await self._request("POST", "/facilities", json=data)

    async def get_facility(self, facility_id: str) -> Any:
        return await self._request("GET", f"/facilities/{facility_id}")

    async def update_facility(self, facility_id: str, data: Dict[str, Any]) -> Any:
        return await self._request("PUT", f"/facilities/{facility_id}", json=data)

    async def delete_facility(self, facility_id: str) -> Any:
        return await self._request("DELETE", f"/facilities/{facility_id}")

    # -----------------------------
    # Racks
    # -----------------------------
    async def list_racks(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        facility_id: Optional[str] = None,
    ) -> Any:
        params = _clean_params({"limit": limit, "offset": offset, "facility_id": facility_id})
        return await self._request("GET", "/racks", params=params)

    async def create_rack(self, data: Dict[str, Any]) -> Any:
        logger.debug("creating rack for facility %s", data.get("facility_id"))
        return await self._request("POST", "/racks", json=data)

    async def get_rack(self, rack_id: str) -> Any:
        return await self._request("GET", f"/racks/{rack_id}")

    async def update_rack(self, rack_id: str, data: Dict[str, Any]) -> Any:
        return await self._request("PUT", f"/racks/{rack_id}", json=data)

    async def delete_rack(self, rack_id: str) -> Any:
        return await self._request("DELETE", f"/racks/{rack_id}")

    # -----------------------------
    # Servers
    # -----------------------------
    async def list_servers(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        facility_id: Optional[str] = None,
        rack_id: Optional[str] = None,
    ) -> Any:
        params = _clean_params({
            "limit": limit,
            "offset": offset,
            "facility_id": facility_id,
            "rack_id": rack_id,
        })
        return await self._request("GET", "/servers", params=params)

    async def create_server(self, data: Dict[str, Any]) -> Any:
        return await self._request("POST", "/servers", json=data)

    async def get_server(self, server_id: str) -> Any:
        return await self._request("GET", f"/servers/{server_id}")

    async def update_server(self, server_id: str, data: Dict[str, Any]) -> Any:
        return await self._request("PUT", f"/servers/{server_id}", json=data)

    async def delete_server(self, server_id: str) -> Any:
        return await self._request("DELETE", f"/servers/{server_id}")

    # Generic lookup used by the chart routes
    async def get_entity(self, kind: str, entity_id: str) -> Any:
        getter = {
            "facility": self.get_facility,
            "rack": self.get_rack,
            "server": self.get_server,
        }[kind]
        return await getter(entity_id)
