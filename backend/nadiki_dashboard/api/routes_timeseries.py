"""
routes_timeseries.py

Purpose:
  Query endpoints behind the dashboard charts and metric cards.

Endpoints:
  - **GET /api/timeseries/{entity}/{entity_id}**: Windowed series for one or
    more fields, shaped as `{series, points: [{time, <series>: value}]}`.
  - **GET /api/timeseries/{entity}/{entity_id}/aggregate**: One number for a
    field over the range (`mean` or `sum`), preformatted for display.

Contract:
  - The entity's `timeSeriesConfig` (endpoint, org, bucket, token) is read from
    the registrar on every call.
  - `bucket=operational` filters on the `<entity>_id` tag of the entity's own
    bucket; `bucket=impact` filters on `id` in the shared impact bucket.
  - Range: `range` preset wins over `from`/`to`; default is the last 30 days.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from fastapi import APIRouter, Depends, Query

from nadiki_dashboard.config import Settings
from nadiki_dashboard.deps import InfluxFactory, get_influx_factory, get_registrar_client, get_settings
from nadiki_dashboard.errors import ApiError, InfluxQueryError, RegistrarError, from_registrar_error
from nadiki_dashboard.models.domain import EMBODIED_METRIC_INFO, EntityKind, TimeRangePreset
from nadiki_dashboard.schemas.timeseries import AggregateResponse, ChartSeriesResponse
from nadiki_dashboard.services.charts import rows_to_series
from nadiki_dashboard.services.formatting import (
    analysis_window,
    chart_window,
    default_range,
    format_impact_value,
    from_unix,
    resolve_preset,
    to_rfc3339,
)
from nadiki_dashboard.services.influx import FluxQuery
from nadiki_dashboard.services.workload_analysis import facility_server_count
from nadiki_dashboard.services.registrar_client import RegistrarClient

logger = logging.getLogger(__name__)

router = APIRouter()

BucketKind = Literal["operational", "impact"]


def _resolve_range(
    preset: Optional[TimeRangePreset],
    from_ts: Optional[int],
    to_ts: Optional[int],
) -> Tuple[datetime, datetime]:
    if preset is not None:
        return resolve_preset(preset)
    start, end = default_range()
    try:
        if from_ts is not None:
            start = from_unix(from_ts)
        if to_ts is not None:
            end = from_unix(to_ts)
    except (ValueError, OverflowError, OSError):
        raise ApiError(400, "Invalid timestamp", details='"from" and "to" must be valid unix timestamps')

    if start >= end:
        raise ApiError(400, "Invalid time range", details='"from" timestamp must be before "to" timestamp')
    return start, end


async def _entity_config(
    registrar: RegistrarClient,
    entity: EntityKind,
    entity_id: str,
) -> Tuple[Dict[str, Any], Mapping[str, Any]]:
    try:
        detail = await registrar.get_entity(entity.value, entity_id)
    except RegistrarError as e:
        raise from_registrar_error(e, entity.value, "get")

    ts_config = (detail or {}).get("timeSeriesConfig")
    if not ts_config:
        raise ApiError(
            500,
            "No time-series configuration",
            details=f"{entity.value.capitalize()} does not have InfluxDB configuration",
        )
    return detail, ts_config


def _target(
    entity: EntityKind,
    entity_id: str,
    bucket: BucketKind,
    ts_config: Mapping[str, Any],
    settings: Settings,
    measurement: Optional[str],
) -> Tuple[str, str, Dict[str, str]]:
    """-> (bucket name, measurement, tag filters)"""
    if bucket == "impact":
        return (
            settings.influx.impact_bucket,
            measurement or f"{entity.value}_embodied",
            {"id": entity_id},
        )
    return (
        str(ts_config.get("bucket", "")),
        measurement or entity.value,
        {f"{entity.value}_id": entity_id},
    )


@router.get("/{entity}/{entity_id}", response_model=ChartSeriesResponse)
async def chart_series(
    entity: EntityKind,
    entity_id: str,
    field: List[str] = Query(...),
    measurement: Optional[str] = Query(None),
    group_by: List[str] = Query([]),
    bucket: BucketKind = Query("operational"),
    preset: Optional[TimeRangePreset] = Query(None, alias="range"),
    from_ts: Optional[int] = Query(None, alias="from"),
    to_ts: Optional[int] = Query(None, alias="to"),
    registrar: RegistrarClient = Depends(get_registrar_client),
    influx_factory: InfluxFactory = Depends(get_influx_factory),
    settings: Settings = Depends(get_settings),
) -> ChartSeriesResponse:
    start, end = _resolve_range(preset, from_ts, to_ts)
    _, ts_config = await _entity_config(registrar, entity, entity_id)
    bucket_name, measurement_name, tags = _target(entity, entity_id, bucket, ts_config, settings, measurement)
    window = chart_window(start, end)

    q = (
        FluxQuery(bucket_name)
        .range(start, end)
        .measurement(measurement_name)
        .fields(field)
        .tags(tags)
        .aggregate_window(window, "mean")
    )
    if not group_by:
        q.pivot()

    try:
        rows = await influx_factory(ts_config).query_rows(q)
    except InfluxQueryError as e:
        logger.error("chart query for %s %s failed: %s", entity.value, entity_id, e)
        raise ApiError(500, "Failed to query time-series data")

    series, points = rows_to_series(rows, field, group_by or None)
    return ChartSeriesResponse(
        entity=entity.value,
        entity_id=entity_id,
        measurement=measurement_name,
        window=window,
        start=to_rfc3339(start),
        end=to_rfc3339(end),
        series=series,
        points=points,
    )


@router.get("/{entity}/{entity_id}/aggregate", response_model=AggregateResponse)
async def chart_aggregate(
    entity: EntityKind,
    entity_id: str,
    field: str = Query(..., min_length=1),
    fn: Literal["mean", "sum"] = Query("sum"),
    measurement: Optional[str] = Query(None),
    bucket: BucketKind = Query("impact"),
    divide_by_servers: bool = Query(False),
    preset: Optional[TimeRangePreset] = Query(None, alias="range"),
    from_ts: Optional[int] = Query(None, alias="from"),
    to_ts: Optional[int] = Query(None, alias="to"),
    registrar: RegistrarClient = Depends(get_registrar_client),
    influx_factory: InfluxFactory = Depends(get_influx_factory),
    settings: Settings = Depends(get_settings),
) -> AggregateResponse:
    start, end = _resolve_range(preset, from_ts, to_ts)
    detail, ts_config = await _entity_config(registrar, entity, entity_id)
    bucket_name, measurement_name, tags = _target(entity, entity_id, bucket, ts_config, settings, measurement)

    try:
        influx = influx_factory(ts_config)
        if fn == "mean":
            value = await influx.query_mean(
                bucket_name, measurement_name, field, tags, start, end, analysis_window(start, end),
            )
        else:
            value = await influx.query_sum(bucket_name, measurement_name, field, tags, start, end)
    except InfluxQueryError as e:
        logger.error("aggregate %s(%s) for %s %s failed: %s", fn, field, entity.value, entity_id, e)
        raise ApiError(500, "Failed to query time-series data")

    # facility embodied impact attributable to a single server
    if value is not None and divide_by_servers:
        value = value / facility_server_count(detail)

    title, unit = EMBODIED_METRIC_INFO.get(field, (None, None))
    return AggregateResponse(
        entity=entity.value,
        entity_id=entity_id,
        field=field,
        fn=fn,
        value=value,
        formatted=format_impact_value(value),
        title=title,
        unit=unit,
        start=to_rfc3339(start),
        end=to_rfc3339(end),
    )
