import asyncio
from datetime import datetime, timezone

import pytest

from nadiki_dashboard.models.domain import FACILITY_EMBODIED_METRICS, SERVER_EMBODIED_METRICS
from nadiki_dashboard.services.influx import InfluxClient
from nadiki_dashboard.services.workload_analysis import POD_LABEL, analyze_workload

START = datetime(2024, 1, 1, 0, tzinfo=timezone.utc)
END = datetime(2024, 1, 1, 10, tzinfo=timezone.utc)   # 10 hours

WORKLOAD = {"id": "w1", "server_id": "srv-1", "facility_id": "fac-1", "pod_name": "api-pod"}


def _analyze(influx, total_servers=4):
    client = InfluxClient("http://influx.test", "org", "tok", query_api=influx)
    return asyncio.run(analyze_workload(
        client, WORKLOAD, bucket="ops", impact_bucket="facility-impact",
        start=START, end=END, total_servers=total_servers,
    ))


def test_attribution_math(influx):
    influx.on_value('"cpu_busy_fraction"', value=0.25)
    influx.on_value('"server_energy_consumption_watts"', value=200)
    influx.on_value('"grid_renewable_percentage"', value=40)
    influx.on_value('"grid_emission_factor_grams"', value=300)
    influx.on_value('"facility_embodied"', 'r._field == "climate_change"', value=1000)
    influx.on_value('"server_embodied"', 'r._field == "climate_change"', value=80)

    result = _analyze(influx)

    assert result.averageCpuUtilization == pytest.approx(25.0)
    assert result.averageServerPowerForPod == pytest.approx(50.0)
    assert result.totalEnergyConsumptionForPod == pytest.approx(500.0)
    assert result.gridRenewablePercentageAverage == pytest.approx(40.0)
    assert result.totalRenewableEnergyConsumption == pytest.approx(200.0)
    assert result.totalNonRenewableEnergyConsumption == pytest.approx(300.0)
    assert result.totalOperationalCo2Emissions == pytest.approx(90.0)

    assert set(result.facilityEmbodiedImpactsAttributable) == set(FACILITY_EMBODIED_METRICS)
    assert set(result.serverEmbodiedImpactsAttributable) == set(SERVER_EMBODIED_METRICS)
    assert result.facilityEmbodiedImpactsAttributable["climate_change"] == pytest.approx(250.0)
    assert result.facilityEmbodiedImpactsAttributable["ozone_depletion"] == 0.0
    assert result.serverEmbodiedImpactsAttributable["climate_change"] == pytest.approx(20.0)
    assert result.serverEmbodiedImpactsAttributable["abiotic_depletion_potential"] == 0.0


def test_cpu_query_is_scoped_to_pod_and_summed_across_cores(influx):
    _analyze(influx)
    cpu_query = next(q for q in influx.queries if "cpu_busy_fraction" in q)
    assert f'r["{POD_LABEL}"] == "api-pod"' in cpu_query
    assert 'r["server_id"] == "srv-1"' in cpu_query
    assert 'group(columns: ["_time"])' in cpu_query
    assert "aggregateWindow(every: 1h" in cpu_query

    embodied = [q for q in influx.queries if "_embodied" in q]
    assert len(embodied) == len(FACILITY_EMBODIED_METRICS) + len(SERVER_EMBODIED_METRICS)
    assert all('from(bucket: "facility-impact")' in q for q in embodied)


def test_missing_series_yield_zeros(influx):
    result = _analyze(influx)
    assert result.averageCpuUtilization == 0.0
    assert result.averageServerPowerForPod == 0.0
    assert result.totalOperationalCo2Emissions == 0.0
    assert all(v == 0.0 for v in result.facilityEmbodiedImpactsAttributable.values())


def test_failing_embodied_metric_is_zero_not_fatal(influx):
    influx.on_value('"cpu_busy_fraction"', value=0.5)
    influx.fail('"facility_embodied"', 'r._field == "ozone_depletion"', status=404, message="bucket not found")
    influx.on_value('"facility_embodied"', value=10)

    result = _analyze(influx, total_servers=None)

    assert result.facilityEmbodiedImpactsAttributable["ozone_depletion"] == 0.0
    # no server count -> divided by 1
    assert result.facilityEmbodiedImpactsAttributable["climate_change"] == pytest.approx(10.0)
