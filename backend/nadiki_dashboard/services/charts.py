from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from nadiki_dashboard.services.formatting import to_rfc3339
from nadiki_dashboard.services.influx import as_float


def rows_to_series(
    rows: Sequence[Dict[str, Any]],
    fields: Sequence[str],
    group_by: Optional[Sequence[str]] = None,
) -> Tuple[List[str], List[Dict[str, Any]]]:
    """Shape Flux rows into chart points keyed by time.

    Pivoted rows carry one column per field. Grouped (non-pivoted) rows carry
    `_field`/`_value`, and the series key becomes `<group values>_<field>`.
    Rows sharing a timestamp are merged into one point.
    """
    by_time: Dict[str, Dict[str, Any]] = {}
    series: List[str] = []

    def _add(point: Dict[str, Any], key: str, raw: Any) -> None:
        value = as_float(raw)
        if value is None:
            return
        point[key] = value
        if key not in series:
            series.append(key)

    for row in rows:
        ts = row.get("_time")
        if not ts:
            continue
        if isinstance(ts, datetime):
            ts = to_rfc3339(ts)
        point: Dict[str, Any] = {}

        if group_by:
            field_name = row.get("_field") or "value"
            group_values = [row.get(g, "") for g in group_by]
            group_values = [v for v in group_values if v]
            key = "_".join(group_values + [field_name]) if group_values else field_name
            _add(point, key, row.get("_value"))
        elif "_value" in row and row.get("_field"):
            _add(point, row["_field"], row.get("_value"))
        else:
            for f in fields:
                if f in row:
                    _add(point, f, row[f])

        if not point:
            continue
        by_time.setdefault(ts, {"time": ts}).update(point)

    points = sorted(by_time.values(), key=lambda p: p["time"])
    return series, points
