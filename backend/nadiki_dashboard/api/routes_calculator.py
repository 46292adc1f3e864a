"""
routes_calculator.py

Purpose:
  Starts the environmental impact calculator for a facility.

Endpoints:
  - **POST /api/calculator/start**: `{facilityId, startingPoint?}`. The facility
    is read from the registrar and its configuration handed to the calculator
    service; starting again replaces the previous run.
  - **GET /api/calculator/{facility_id}**: State of the facility's calculator.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from nadiki_dashboard.deps import get_calculator_service, get_registrar_client
from nadiki_dashboard.errors import ApiError, RegistrarError
from nadiki_dashboard.schemas.calculator import (
    CalculatorStartRequest,
    CalculatorStartResponse,
    CalculatorState,
)
from nadiki_dashboard.services.calculator import CalculatorService
from nadiki_dashboard.services.registrar_client import RegistrarClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/start", response_model=CalculatorStartResponse)
async def start_calculator(
    payload: CalculatorStartRequest,
    registrar: RegistrarClient = Depends(get_registrar_client),
    calculators: CalculatorService = Depends(get_calculator_service),
) -> CalculatorStartResponse:
    if not payload.facilityId:
        raise ApiError(400, "Facility ID is required")

    try:
        facility = await registrar.get_facility(payload.facilityId)
    except RegistrarError as e:
        if e.status_code == 404:
            raise ApiError(404, "Facility not found")
        logger.error("calculator start for facility %s failed: %s", payload.facilityId, e)
        raise ApiError(500, "Failed to start calculator", details=str(e))

    starting_point = payload.startingPoint or 0.0
    calculators.start_facility_calculator(payload.facilityId, facility or {}, starting_point)

    return CalculatorStartResponse(
        success=True,
        message="Environmental impact calculator started successfully",
        facilityId=payload.facilityId,
        startingPoint=starting_point,
    )


@router.get("/{facility_id}", response_model=CalculatorState)
def get_calculator(
    facility_id: str,
    calculators: CalculatorService = Depends(get_calculator_service),
) -> CalculatorState:
    entry = calculators.get("facility", facility_id)
    if entry is None:
        raise ApiError(404, "Calculator not found", details=f"No calculator started for facility {facility_id}")
    return CalculatorState(**entry.to_dict())
