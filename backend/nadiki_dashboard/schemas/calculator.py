from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel


class CalculatorStartRequest(BaseModel):
    facilityId: Optional[str] = None
    startingPoint: Optional[float] = None   # unix timestamp


class CalculatorStartResponse(BaseModel):
    success: bool
    message: str
    facilityId: str
    startingPoint: float


class CalculatorState(BaseModel):
    key: str
    entity: str
    id: str
    starting_point: float
    started_at: str
    config: Dict[str, Any]
