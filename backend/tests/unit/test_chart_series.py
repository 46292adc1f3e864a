from datetime import datetime, timezone

from nadiki_dashboard.services.charts import rows_to_series


def test_pivoted_rows_merge_and_sort_by_time():
    rows = [
        {"_time": "2024-01-01T01:00:00Z", "a": "2", "b": ""},
        {"_time": "2024-01-01T00:00:00Z", "a": "1", "b": "5"},
    ]
    series, points = rows_to_series(rows, ["a", "b"])
    assert series == ["a", "b"]
    assert points == [
        {"time": "2024-01-01T00:00:00Z", "a": 1.0, "b": 5.0},
        {"time": "2024-01-01T01:00:00Z", "a": 2.0},
    ]


def test_grouped_rows_get_one_series_per_group():
    rows = [
        {"_time": "t1", "_field": "power", "_value": "10", "source": "grid"},
        {"_time": "t1", "_field": "power", "_value": "4", "source": "solar"},
        {"_time": "t2", "_field": "power", "_value": "6", "source": ""},
    ]
    series, points = rows_to_series(rows, ["power"], group_by=["source"])
    assert series == ["grid_power", "solar_power", "power"]
    assert points[0] == {"time": "t1", "grid_power": 10.0, "solar_power": 4.0}
    assert points[1] == {"time": "t2", "power": 6.0}


def test_unpivoted_rows_keyed_by_field():
    rows = [
        {"_time": "t1", "_field": "pue", "_value": "1.4"},
        {"_time": "t1", "_field": "it_power", "_value": "300"},
    ]
    series, points = rows_to_series(rows, ["pue", "it_power"])
    assert series == ["pue", "it_power"]
    assert points == [{"time": "t1", "pue": 1.4, "it_power": 300.0}]


def test_rows_without_time_or_value_are_dropped():
    rows = [
        {"_value": "1", "_field": "a"},
        {"_time": "t1", "_field": "a", "_value": "NaN?"},
    ]
    assert rows_to_series(rows, ["a"]) == ([], [])


def test_record_datetimes_become_rfc3339():
    rows = [{"_time": datetime(2024, 1, 1, 6, tzinfo=timezone.utc), "_field": "pue", "_value": 1.3}]
    assert rows_to_series(rows, ["pue"]) == (["pue"], [{"time": "2024-01-01T06:00:00Z", "pue": 1.3}])
