from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from nadiki_dashboard.models.domain import MetricEntity, MetricUnit


class MetricIn(BaseModel):
    metric_name: str = Field(..., max_length=200)
    unit: MetricUnit
    entity: MetricEntity

    @field_validator("metric_name")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("metric_name cannot be empty")
        return v


class MetricPatch(BaseModel):
    metric_name: Optional[str] = Field(None, max_length=200)
    unit: Optional[MetricUnit] = None
    entity: Optional[MetricEntity] = None

    @field_validator("metric_name")
    @classmethod
    def _not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("metric_name cannot be empty")
        return v


class MetricOut(BaseModel):
    id: str
    metric_name: str
    unit: MetricUnit
    entity: MetricEntity
    created_at: str
    updated_at: str
