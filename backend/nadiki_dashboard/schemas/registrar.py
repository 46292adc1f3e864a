from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from nadiki_dashboard.models.domain import CoolingType, StorageType


class _PassThrough(BaseModel):
    # upstream owns the contract; unknown fields are forwarded untouched
    model_config = ConfigDict(extra="allow")


# ============================================================
# SHARED
# ============================================================

class Location(_PassThrough):
    latitude: float
    longitude: float


class CoolingFluid(_PassThrough):
    type: str
    amount: float                 # kg or m3
    gwpFactor: Optional[float] = None


class TimeSeriesDataPoint(_PassThrough):
    measurement: Literal["facility", "rack", "server"]
    field: str
    granularitySeconds: int
    tags: Dict[str, str] = Field(default_factory=dict)


class TimeSeriesConfig(_PassThrough):
    endpoint: str                 # InfluxDB URL incl. port
    org: str
    bucket: str
    token: str
    dataPoints: List[TimeSeriesDataPoint] = Field(default_factory=list)


# ============================================================
# FACILITY
# ============================================================

class FacilityCreate(_PassThrough):
    location: Location
    installedCapacity: float      # W
    lifetimeFacility: int         # years
    impactAssessment: Optional[Dict[str, float]] = None
    coolingFluids: Optional[List[CoolingFluid]] = None
    maintenanceHoursGenerator: Optional[float] = None
    gridPowerFeeds: Optional[int] = None
    designPue: Optional[float] = None
    tierLevel: Optional[Literal[1, 2, 3, 4]] = None
    whiteSpaceFloors: Optional[int] = None
    totalSpace: Optional[float] = None
    whiteSpace: Optional[float] = None
    description: Optional[str] = None


class FacilityUpdate(FacilityCreate):
    pass


# ============================================================
# RACK
# ============================================================

class RackCreate(_PassThrough):
    facility_id: str
    total_available_power: Optional[float] = None
    total_available_cooling_capacity: Optional[float] = None
    number_of_pdus: Optional[int] = None
    power_redundancy: Optional[int] = None
    product_passport: Optional[Dict[str, Any]] = None
    description: Optional[str] = None


class RackUpdate(RackCreate):
    pass


# ============================================================
# SERVER
# ============================================================

class CPU(_PassThrough):
    vendor: str
    type: str
    physical_core_count: Optional[int] = None


class Accelerator(_PassThrough):
    vendor: str
    type: str


class StorageDevice(_PassThrough):
    vendor: str
    capacity: float
    type: StorageType


class ServerCreate(_PassThrough):
    facility_id: str
    rack_id: str
    exptected_lifetime: int       # upstream spelling
    cooling_type: CoolingType
    impactAssessment: Optional[Dict[str, float]] = None
    rated_power: Optional[float] = None
    total_cpu_sockets: Optional[int] = None
    installed_cpus: Optional[List[CPU]] = None
    number_of_psus: Optional[int] = None
    total_installed_memory: Optional[int] = None
    number_of_memory_units: Optional[int] = None
    storage_devices: Optional[List[StorageDevice]] = None
    installed_gpus: Optional[List[Accelerator]] = None
    installed_fpgas: Optional[List[Accelerator]] = None
    product_passport: Optional[Dict[str, Any]] = None
    description: Optional[str] = None


class ServerUpdate(ServerCreate):
    pass


def to_payload(model: BaseModel) -> Dict[str, Any]:
    """JSON-ready body for the registrar; unset optionals are not sent."""
    return model.model_dump(mode="json", exclude_none=True)
