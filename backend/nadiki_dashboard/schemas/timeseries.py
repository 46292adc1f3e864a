from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ChartSeriesResponse(BaseModel):
    entity: str
    entity_id: str
    measurement: str
    window: str
    start: str
    end: str
    series: List[str]
    points: List[Dict[str, Any]]   # {"time": iso, <series>: float, ...}


class AggregateResponse(BaseModel):
    entity: str
    entity_id: str
    field: str
    fn: str
    value: Optional[float] = None
    formatted: str
    title: Optional[str] = None
    unit: Optional[str] = None
    start: str
    end: str
