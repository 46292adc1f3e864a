from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple


# ============================================================
# 0) ENUMS (Type Safety)
# ============================================================

class EntityKind(str, Enum):
    FACILITY = "facility"
    RACK = "rack"
    SERVER = "server"


class MetricUnit(str, Enum):
    W = "W"
    KW = "kW"
    MW = "MW"
    WH = "Wh"
    KWH = "kWh"
    MWH = "MWh"
    W_PER_S = "W/s"
    KW_PER_S = "kW/s"
    A = "A"
    V = "V"
    HZ = "Hz"
    C = "C"
    F = "F"
    PERCENT = "%"
    RATIO = "ratio"
    COUNT = "count"


class MetricEntity(str, Enum):
    FACILITY = "Facility"
    SERVER = "Server"
    RACK = "Rack"


class CoolingType(str, Enum):
    DIRECT_TO_CHIP = "direct-to-chip"
    IMMERSION = "immersion"
    BACK_DOOR_LIQUID = "back-door-liquid"
    BACK_DOOR_FAN = "back-door-fan"
    AIR = "air"


class StorageType(str, Enum):
    NVME = "NVMe"
    SSD = "SSD"
    HDD = "HDD"
    OTHER = "Other"


class TimeRangePreset(str, Enum):
    TODAY = "today"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    THIS_YEAR = "this_year"


# ============================================================
# 1) LABELS & UNITS
# ============================================================

# metric -> (title, unit)
EMBODIED_METRIC_INFO: Dict[str, Tuple[str, str]] = {
    "climate_change": ("Climate Change", "kg CO2 eq"),
    "primary_energy_use": ("Primary Energy Use", "kWh"),
    "ozone_depletion": ("Ozone Depletion", "kg CFC-11 eq"),
    "human_toxicity": ("Human Toxicity", "kg 1,4-DB eq"),
    "photochemical_oxidant_formation": ("Photochemical Oxidant Formation", "kg NMVOC"),
    "particulate_matter_formation": ("Particulate Matter Formation", "kg PM10 eq"),
    "ionizing_radiation": ("Ionizing Radiation", "kg U235 eq"),
    "terrestrial_acidification": ("Terrestrial Acidification", "kg SO2 eq"),
    "freshwater_eutrophication": ("Freshwater Eutrophication", "kg P eq"),
    "marine_eutrophication": ("Marine Eutrophication", "kg N eq"),
    "terrestrial_ecotoxicity": ("Terrestrial Ecotoxicity", "kg 1,4-DB eq"),
    "freshwater_ecotoxicity": ("Freshwater Ecotoxicity", "kg 1,4-DB eq"),
    "marine_ecotoxicity": ("Marine Ecotoxicity", "kg 1,4-DB eq"),
    "agricultural_land_occupation": ("Agricultural Land Occupation", "m²a"),
    "urban_land_occupation": ("Urban Land Occupation", "m²a"),
    "natural_land_transformation": ("Natural Land Transformation", "m²"),
    "water_depletion": ("Water Depletion", "m³"),
    "metal_depletion": ("Metal Depletion", "kg Fe eq"),
    "fossil_depletion": ("Fossil Depletion", "kg oil eq"),
    "abiotic_depletion_potential": ("Abiotic Depletion Potential", "kgSbeq"),
}

FACILITY_EMBODIED_METRICS: Tuple[str, ...] = (
    "climate_change",
    "ozone_depletion",
    "human_toxicity",
    "photochemical_oxidant_formation",
    "particulate_matter_formation",
    "ionizing_radiation",
    "terrestrial_acidification",
    "freshwater_eutrophication",
    "marine_eutrophication",
    "terrestrial_ecotoxicity",
    "freshwater_ecotoxicity",
    "marine_ecotoxicity",
    "agricultural_land_occupation",
    "urban_land_occupation",
    "natural_land_transformation",
    "water_depletion",
    "metal_depletion",
    "fossil_depletion",
)

SERVER_EMBODIED_METRICS: Tuple[str, ...] = (
    "climate_change",
    "primary_energy_use",
    "ozone_depletion",
    "human_toxicity",
    "photochemical_oxidant_formation",
    "particulate_matter_formation",
    "ionizing_radiation",
    "terrestrial_acidification",
    "freshwater_eutrophication",
    "marine_eutrophication",
    "terrestrial_ecotoxicity",
    "freshwater_ecotoxicity",
    "marine_ecotoxicity",
    "agricultural_land_occupation",
    "urban_land_occupation",
    "natural_land_transformation",
    "abiotic_depletion_potential",
)

# Influx measurement names holding embodied impact series
FACILITY_EMBODIED_MEASUREMENT = "facility_embodied"
SERVER_EMBODIED_MEASUREMENT = "server_embodied"
