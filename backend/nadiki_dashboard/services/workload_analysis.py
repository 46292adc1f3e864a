"""
workload_analysis.py

Purpose:
  Attributes energy, emissions and embodied impacts of a server to one
  Kubernetes workload (pod) over a time window.

Math:
  - cpu = mean(per-timestamp sum of per-core `cpu_busy_fraction`) for the pod.
  - pod power (W) = mean(server power) * cpu.
  - pod energy (Wh) = pod power * duration hours.
  - renewable / non-renewable split uses the facility's mean grid renewable %.
  - operational CO2 (g) = non-renewable kWh * mean grid emission factor (g/kWh).
  - facility embodied share = facility total / number of servers.
  - server embodied share = server total * cpu.

Missing series count as 0 in the response; a failing embodied metric is logged
and reported as 0 without failing the whole analysis.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from nadiki_dashboard.errors import InfluxQueryError
from nadiki_dashboard.models.domain import (
    FACILITY_EMBODIED_MEASUREMENT,
    FACILITY_EMBODIED_METRICS,
    SERVER_EMBODIED_MEASUREMENT,
    SERVER_EMBODIED_METRICS,
)
from nadiki_dashboard.schemas.workload import WorkloadQueryResponse
from nadiki_dashboard.services.formatting import analysis_window
from nadiki_dashboard.services.influx import InfluxClient

logger = logging.getLogger(__name__)

POD_LABEL = "container_label_io_kubernetes_container_name"


async def analyze_workload(
    influx: InfluxClient,
    workload: Mapping[str, Any],
    bucket: str,
    impact_bucket: str,
    start: datetime,
    end: datetime,
    total_servers: Optional[int] = None,
) -> WorkloadQueryResponse:
    server_id = str(workload["server_id"])
    facility_id = str(workload["facility_id"])
    pod_name = str(workload["pod_name"])
    every = analysis_window(start, end)
    servers = total_servers or 1

    # 1. CPU share of the pod
    cpu_fraction = await influx.query_mean(
        bucket, "server", "cpu_busy_fraction",
        {"server_id": server_id, POD_LABEL: pod_name},
        start, end, every, per_timestamp_sum=True,
    )
    avg_cpu_pct = cpu_fraction * 100 if cpu_fraction is not None else 0.0

    # 2. Pod power
    server_power = await influx.query_mean(
        bucket, "server", "server_energy_consumption_watts",
        {"server_id": server_id}, start, end, every,
    )
    pod_power_w = (
        server_power * cpu_fraction
        if server_power is not None and cpu_fraction is not None
        else 0.0
    )

    # 3. Pod energy
    duration_h = (end - start).total_seconds() / 3600.0
    pod_energy_wh = pod_power_w * duration_h

    # 4. Grid renewable share
    renewable_pct = await influx.query_mean(
        bucket, "facility", "grid_renewable_percentage",
        {"facility_id": facility_id}, start, end, every,
    ) or 0.0

    # 5/6. Renewable split
    renewable_wh = pod_energy_wh * renewable_pct / 100.0
    non_renewable_wh = pod_energy_wh - renewable_wh

    # 7. Operational CO2
    emission_factor = await influx.query_mean(
        bucket, "facility", "grid_emission_factor_grams",
        {"facility_id": facility_id}, start, end, every,
    )
    co2_g = (non_renewable_wh / 1000.0) * emission_factor if emission_factor is not None else 0.0

    # 8. Facility embodied share
    facility_embodied: Dict[str, float] = {}
    for metric in FACILITY_EMBODIED_METRICS:
        try:
            total = await influx.query_sum(
                impact_bucket, FACILITY_EMBODIED_MEASUREMENT, metric,
                {"id": facility_id}, start, end,
            )
        except InfluxQueryError as e:
            logger.error("facility embodied metric %s failed for %s: %s", metric, facility_id, e)
            total = None
        facility_embodied[metric] = total / servers if total is not None else 0.0

    # 9. Server embodied share
    server_embodied: Dict[str, float] = {}
    for metric in SERVER_EMBODIED_METRICS:
        try:
            total = await influx.query_sum(
                impact_bucket, SERVER_EMBODIED_MEASUREMENT, metric,
                {"id": server_id}, start, end,
            )
        except InfluxQueryError as e:
            logger.error("server embodied metric %s failed for %s: %s", metric, server_id, e)
            total = None
        server_embodied[metric] = (
            total * cpu_fraction if total is not None and cpu_fraction is not None else 0.0
        )

    return WorkloadQueryResponse(
        averageCpuUtilization=avg_cpu_pct,
        averageServerPowerForPod=pod_power_w,
        totalEnergyConsumptionForPod=pod_energy_wh,
        gridRenewablePercentageAverage=renewable_pct,
        totalRenewableEnergyConsumption=renewable_wh,
        totalNonRenewableEnergyConsumption=non_renewable_wh,
        totalOperationalCo2Emissions=co2_g,
        facilityEmbodiedImpactsAttributable=facility_embodied,
        serverEmbodiedImpactsAttributable=server_embodied,
    )


def facility_server_count(facility: Optional[Mapping[str, Any]]) -> int:
    """`totalNumberOfServers` as a positive int; 1 when missing or unusable."""
    raw = (facility or {}).get("totalNumberOfServers")
    try:
        count = int(raw)
    except (TypeError, ValueError, OverflowError):
        return 1
    return count if count > 0 else 1
