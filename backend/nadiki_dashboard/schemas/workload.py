from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field

_REQUIRED_FIELDS = ("server_id", "facility_id", "pod_name")


class FieldError(BaseModel):
    field: str
    message: str


class WorkloadCreate(BaseModel):
    server_id: str
    facility_id: str
    pod_name: str


class WorkloadOut(BaseModel):
    id: str
    server_id: str
    facility_id: str
    pod_name: str
    created_at: str
    updated_at: str


class WorkloadDeleteResponse(BaseModel):
    message: str
    deleted_workload: Dict[str, Any]


class WorkloadQueryResponse(BaseModel):
    averageCpuUtilization: float = 0.0
    averageServerPowerForPod: float = 0.0
    totalEnergyConsumptionForPod: float = 0.0
    gridRenewablePercentageAverage: float = 0.0
    totalRenewableEnergyConsumption: float = 0.0
    totalNonRenewableEnergyConsumption: float = 0.0
    totalOperationalCo2Emissions: float = 0.0
    facilityEmbodiedImpactsAttributable: Dict[str, float] = Field(default_factory=dict)
    serverEmbodiedImpactsAttributable: Dict[str, float] = Field(default_factory=dict)


def validate_workload_payload(body: Any) -> List[FieldError]:
    """Presence/type checks for a workload create body, one error per field."""
    if not isinstance(body, dict):
        return [FieldError(field="body", message="Request body must be a JSON object")]

    errors: List[FieldError] = []
    for name in _REQUIRED_FIELDS:
        value = body.get(name)
        # falsy values (0, false, "") count as absent
        if not value:
            errors.append(FieldError(field=name, message=f"{name} is required"))
        elif not isinstance(value, str):
            errors.append(FieldError(field=name, message=f"{name} must be a string"))
        elif not value.strip():
            errors.append(FieldError(field=name, message=f"{name} cannot be empty"))
    return errors
