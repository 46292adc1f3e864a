"""
conftest.py

Shared fixtures. External services never leave the process:
  - the registrar API is an in-memory dict served through `httpx.MockTransport`,
  - InfluxDB answers canned FluxTables picked by substrings of the Flux query,
  - the database is an in-memory SQLite engine shared through `StaticPool`.
"""
import json
import re
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient
from influxdb_client.client.flux_table import FluxRecord, FluxTable
from influxdb_client.rest import ApiException
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from nadiki_dashboard.config import RegistrarSettings
from nadiki_dashboard.deps import (
    get_calculator_service,
    get_influx_factory,
    get_rate_limiter,
    get_registrar_client,
    get_session,
)
from nadiki_dashboard.main import app
from nadiki_dashboard.middleware.rate_limit import RateLimiter
from nadiki_dashboard.models.db import create_db_and_tables
from nadiki_dashboard.services.calculator import CalculatorService
from nadiki_dashboard.services.influx import InfluxClient
from nadiki_dashboard.services.registrar_client import RegistrarClient

API_KEY = "test-key"

TS_CONFIG = {
    "endpoint": "http://influx.test",
    "org": "nadiki",
    "bucket": "operational",
    "token": "secret-token",
    "dataPoints": [],
}


# ============================================================
# FAKE REGISTRAR
# ============================================================

class FakeRegistrar:
    """Stores facilities/racks/servers by id; `fail` forces a status per (method, path)."""

    _SINGULAR = {"facilities": "facility", "racks": "rack", "servers": "server"}
    _PATH = re.compile(r"^/v1/(facilities|racks|servers)(?:/([^/]+))?$")

    def __init__(self):
        self.entities: Dict[str, Dict[str, Dict[str, Any]]] = {"facilities": {}, "racks": {}, "servers": {}}
        self.fail: Dict[Tuple[str, str], Tuple[int, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.down = False
        self.crash: Optional[Exception] = None
        self._seq = 0

    def add(self, kind: str, entity_id: str, **fields) -> Dict[str, Any]:
        item = {"id": entity_id, **fields}
        self.entities[kind][entity_id] = item
        return item

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.crash is not None:
            raise self.crash
        if self.down:
            raise httpx.ConnectError("registrar down", request=request)
        forced = self.fail.get((request.method, request.url.path))
        if forced is not None:
            status, body = forced
            return httpx.Response(status, json=body)

        m = self._PATH.match(request.url.path)
        if m is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        kind, entity_id = m.group(1), m.group(2)
        store = self.entities[kind]

        if entity_id is None and request.method == "GET":
            items = list(store.values())
            for key in ("facility_id", "rack_id"):
                wanted = request.url.params.get(key)
                if wanted:
                    items = [i for i in items if i.get(key) == wanted]
            limit = int(request.url.params.get("limit", 100))
            offset = int(request.url.params.get("offset", 0))
            return httpx.Response(200, json={
                "items": items[offset:offset + limit],
                "total": len(items),
                "limit": limit,
                "offset": offset,
            })

        if entity_id is None and request.method == "POST":
            self._seq += 1
            item = {"id": f"{self._SINGULAR[kind]}-{self._seq}", **json.loads(request.content)}
            store[item["id"]] = item
            return httpx.Response(201, json=item)

        if entity_id not in store:
            return httpx.Response(404, json={"detail": f"{self._SINGULAR[kind]} not found"})

        if request.method == "GET":
            return httpx.Response(200, json=store[entity_id])
        if request.method == "PUT":
            store[entity_id] = {"id": entity_id, **json.loads(request.content)}
            return httpx.Response(200, json=store[entity_id])
        if request.method == "DELETE":
            del store[entity_id]
            return httpx.Response(204)
        return httpx.Response(405)

    def client(self) -> RegistrarClient:
        return RegistrarClient(
            settings=RegistrarSettings(base_url="https://registrar.test", username="u", password="p"),
            transport=httpx.MockTransport(self.handler),
        )


# ============================================================
# FAKE INFLUX
# ============================================================

class FakeInflux:
    """Stands in for the InfluxDB query API.

    Each Flux query is answered by the first rule whose substrings all occur in
    it: either FluxTables built from row dicts, or a raised `ApiException`.
    """

    def __init__(self):
        self.rules: List[Tuple[List[str], List[Dict[str, Any]], Optional[ApiException]]] = []
        self.queries: List[str] = []
        self.orgs: List[str] = []
        self.clients: List[InfluxClient] = []

    @staticmethod
    def tables(rows: List[Dict[str, Any]]) -> List[FluxTable]:
        """Group row dicts into FluxTables by their `table` key (default 0)."""
        tables: Dict[int, FluxTable] = {}
        for row in rows:
            index = int(row.get("table", 0))
            table = tables.setdefault(index, FluxTable())
            table.records.append(FluxRecord(index, values={"result": "_result", "table": index, **row}))
        return list(tables.values())

    def on(self, *needles: str, rows: Optional[List[Dict[str, Any]]] = None) -> None:
        self.rules.append((list(needles), rows or [], None))

    def on_value(self, *needles: str, value: Any) -> None:
        self.on(*needles, rows=[{"_value": value}])

    def fail(self, *needles: str, status: int, message: str = "") -> None:
        error = ApiException(status=status, reason="Error")
        error.body = json.dumps({"code": "invalid", "message": message})
        self.rules.append((list(needles), [], error))

    async def query(self, query: str, org: Optional[str] = None) -> List[FluxTable]:
        self.queries.append(query)
        self.orgs.append(org)
        for needles, rows, error in self.rules:
            if all(n in query for n in needles):
                if error is not None:
                    raise error
                return self.tables(rows)
        return []

    def client(self, config: Dict[str, Any]) -> InfluxClient:
        built = InfluxClient.from_config(config, query_api=self)
        self.clients.append(built)
        return built


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(eng)
    return eng


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def registrar() -> FakeRegistrar:
    return FakeRegistrar()


@pytest.fixture
def influx() -> FakeInflux:
    return FakeInflux()


@pytest.fixture
def rate_limiter() -> RateLimiter:
    return RateLimiter(max_requests=100, window_seconds=60)


@pytest.fixture
def calculators() -> CalculatorService:
    return CalculatorService()


@pytest.fixture
def api_key(monkeypatch) -> str:
    monkeypatch.setenv("NADIKI_API_KEYS", f"{API_KEY},other-key")
    return API_KEY


@pytest.fixture
def client(engine, registrar, influx, rate_limiter, calculators, monkeypatch):
    monkeypatch.delenv("ALLOWED_ORIGINS", raising=False)

    def _session():
        with Session(engine) as s:
            yield s

    def _influx_factory():
        return influx.client

    registrar_client = registrar.client()
    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_registrar_client] = lambda: registrar_client
    app.dependency_overrides[get_influx_factory] = _influx_factory
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_calculator_service] = lambda: calculators

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def seeded_workload(client) -> Dict[str, Any]:
    r = client.post("/api/workloads", json={
        "server_id": "srv-1",
        "facility_id": "fac-1",
        "pod_name": "api-pod",
    })
    assert r.status_code == 201
    return r.json()


@pytest.fixture
def registrar_tree(registrar) -> FakeRegistrar:
    """fac-1 (4 servers) > rack-1 > srv-1, all with a time-series config."""
    registrar.add(
        "facilities", "fac-1",
        location={"latitude": 52.5, "longitude": 13.4},
        installedCapacity=1_000_000,
        lifetimeFacility=20,
        totalNumberOfServers=4,
        timeSeriesConfig=TS_CONFIG,
    )
    registrar.add("racks", "rack-1", facility_id="fac-1", timeSeriesConfig=TS_CONFIG)
    registrar.add(
        "servers", "srv-1",
        facility_id="fac-1", rack_id="rack-1",
        exptected_lifetime=5, cooling_type="air",
        timeSeriesConfig=TS_CONFIG,
    )
    return registrar
