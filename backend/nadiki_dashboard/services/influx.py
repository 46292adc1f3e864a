"""
influx.py

Purpose:
  Thin InfluxDB v2 access layer: a Flux query builder plus an async client
  wrapper around `influxdb_client`'s `InfluxDBClientAsync`. Every
  facility/rack/server carries its own `timeSeriesConfig` (endpoint, org,
  bucket, token), so clients are built per request from that config rather
  than from global settings.

Results:
  - `query_rows()` flattens the returned FluxTables into one dict per record
    (`record.values`: `_time` is a datetime, `_value` keeps its Flux type).
  - Every failure (HTTP status, error table, unreachable endpoint) surfaces as
    `InfluxQueryError`.
"""
from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

import aiohttp
from influxdb_client.client.exceptions import InfluxDBError
from influxdb_client.client.flux_csv_parser import FluxQueryException
from influxdb_client.client.flux_table import FluxTable
from influxdb_client.client.influxdb_client_async import InfluxDBClientAsync
from influxdb_client.rest import ApiException
from pydantic import ValidationError

from nadiki_dashboard.errors import InfluxQueryError
from nadiki_dashboard.schemas.registrar import TimeSeriesConfig
from nadiki_dashboard.services.formatting import to_rfc3339

logger = logging.getLogger(__name__)


def flux_string(value: Any) -> str:
    """Quoted Flux string literal."""
    s = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{s}"'


class FluxQuery:
    """Chainable Flux pipeline; `render()` yields the query text."""

    def __init__(self, bucket: str):
        self._lines: List[str] = [f"from(bucket: {flux_string(bucket)})"]

    def _pipe(self, stage: str) -> "FluxQuery":
        self._lines.append(f"  |> {stage}")
        return self

    def range(self, start: datetime, stop: Optional[datetime] = None) -> "FluxQuery":
        if stop is None:
            return self._pipe(f"range(start: {to_rfc3339(start)})")
        return self._pipe(f"range(start: {to_rfc3339(start)}, stop: {to_rfc3339(stop)})")

    def measurement(self, name: str) -> "FluxQuery":
        return self._pipe(f"filter(fn: (r) => r._measurement == {flux_string(name)})")

    def fields(self, names: Iterable[str]) -> "FluxQuery":
        names = list(names)
        if not names:
            return self
        cond = " or ".join(f"r._field == {flux_string(n)}" for n in names)
        return self._pipe(f"filter(fn: (r) => {cond})")

    def tags(self, filters: Optional[Mapping[str, str]]) -> "FluxQuery":
        for key, value in (filters or {}).items():
            self._pipe(f"filter(fn: (r) => r[{flux_string(key)}] == {flux_string(value)})")
        return self

    def aggregate_window(self, every: str, fn: str = "mean", create_empty: bool = False) -> "FluxQuery":
        return self._pipe(
            f"aggregateWindow(every: {every}, fn: {fn}, createEmpty: {'true' if create_empty else 'false'})"
        )

    def group(self, columns: Optional[Iterable[str]] = None) -> "FluxQuery":
        if columns is None:
            return self._pipe("group()")
        cols = ", ".join(flux_string(c) for c in columns)
        return self._pipe(f"group(columns: [{cols}])")

    def pivot(self) -> "FluxQuery":
        return self._pipe('pivot(rowKey:["_time"], columnKey:["_field"], valueColumn:"_value")')

    def sum(self) -> "FluxQuery":
        return self._pipe("sum()")

    def mean(self) -> "FluxQuery":
        return self._pipe("mean()")

    def yield_(self, name: str) -> "FluxQuery":
        return self._pipe(f"yield(name: {flux_string(name)})")

    def render(self) -> str:
        return "\n".join(self._lines)

    def __str__(self) -> str:
        return self.render()


def as_float(raw: Any) -> Optional[float]:
    """Numeric cell value, or None for empty / non-numeric cells."""
    if raw is None or raw == "" or isinstance(raw, bool):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def records_of(tables: Iterable[FluxTable]) -> List[Dict[str, Any]]:
    return [dict(record.values) for table in tables for record in table.records]


def _api_error_message(e: ApiException) -> str:
    if e.body:
        try:
            return json.loads(e.body).get("message") or str(e.body)
        except (ValueError, AttributeError):
            return str(e.body)
    return e.reason or f"influx responded with {e.status}"


class InfluxClient:
    """Per-config query client.

    `query_api` replaces the `InfluxDBClientAsync` query API (anything with an
    async `query(query, org=...)` returning FluxTables).
    """

    def __init__(
        self,
        endpoint: str,
        org: str,
        token: str,
        timeout_s: float = 30.0,
        query_api: Any = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.org = org
        self.token = token
        self.timeout_s = timeout_s
        self._query_api = query_api

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any] | TimeSeriesConfig,
        timeout_s: float = 30.0,
        query_api: Any = None,
    ) -> "InfluxClient":
        """Build from a registrar `timeSeriesConfig`."""
        try:
            cfg = TimeSeriesConfig.model_validate(config)
        except ValidationError as e:
            problems = ", ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise InfluxQueryError(f"invalid timeSeriesConfig ({problems})") from e
        return cls(
            endpoint=cfg.endpoint,
            org=cfg.org,
            token=cfg.token,
            timeout_s=timeout_s,
            query_api=query_api,
        )

    async def _tables(self, query: str) -> List[FluxTable]:
        if self._query_api is not None:
            return await self._query_api.query(query, org=self.org)
        async with InfluxDBClientAsync(
            url=self.endpoint,
            token=self.token,
            org=self.org,
            timeout=int(self.timeout_s * 1000),
        ) as client:
            return await client.query_api().query(query, org=self.org)

    async def query_rows(self, flux: FluxQuery | str) -> List[Dict[str, Any]]:
        query = flux.render() if isinstance(flux, FluxQuery) else flux
        logger.debug("flux query against %s:\n%s", self.endpoint, query)
        try:
            tables = await self._tables(query)
        except ApiException as e:
            raise InfluxQueryError(_api_error_message(e), e.status) from e
        except FluxQueryException as e:
            raise InfluxQueryError(e.message or "influx query failed") from e
        except InfluxDBError as e:
            raise InfluxQueryError(e.message or "influx query failed", getattr(e.response, "status", None)) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise InfluxQueryError(f"influx unreachable: {e!s}") from e
        return records_of(tables)

    async def query_scalar(self, flux: FluxQuery | str) -> Optional[float]:
        """Value of the last row's `_value`, or None when no rows come back."""
        result: Optional[float] = None
        for row in await self.query_rows(flux):
            value = as_float(row.get("_value"))
            if value is not None:
                result = value
        return result

    async def query_mean(
        self,
        bucket: str,
        measurement: str,
        field: str,
        filters: Mapping[str, str],
        start: datetime,
        stop: datetime,
        every: str,
        per_timestamp_sum: bool = False,
    ) -> Optional[float]:
        """Windowed mean over the period.

        With `per_timestamp_sum`, series are summed per timestamp first
        (e.g. per-core CPU fractions into a per-container total).
        """
        q = (
            FluxQuery(bucket)
            .range(start, stop)
            .measurement(measurement)
            .fields([field])
            .tags(filters)
            .aggregate_window(every, "mean")
        )
        if per_timestamp_sum:
            q.group(["_time"]).sum()
        q.group().mean().yield_("mean")
        return await self.query_scalar(q)

    async def query_sum(
        self,
        bucket: str,
        measurement: str,
        field: str,
        filters: Mapping[str, str],
        start: datetime,
        stop: datetime,
    ) -> Optional[float]:
        q = (
            FluxQuery(bucket)
            .range(start, stop)
            .measurement(measurement)
            .fields([field])
            .tags(filters)
            .group()
            .sum()
            .yield_("sum")
        )
        return await self.query_scalar(q)
