"""
calculator.py

Purpose:
  Process-local registry of environmental impact calculators. One calculator
  exists per entity, keyed `facility-<id>`; starting it again replaces the
  stored configuration and starting point.

Scope:
  State lives in memory of a single worker, like the rate limiter.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class CalculatorEntry:
    entity: str
    id: str
    config: Dict[str, Any]
    starting_point: float = 0.0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> str:
        return calculator_key(self.entity, self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "entity": self.entity,
            "id": self.id,
            "starting_point": self.starting_point,
            "started_at": self.started_at.isoformat(),
            "config": self.config,
        }


def calculator_key(entity: str, entity_id: str) -> str:
    return f"{entity}-{entity_id}"


class CalculatorService:
    def __init__(self):
        self._entries: Dict[str, CalculatorEntry] = {}
        self._lock = threading.Lock()

    def start_facility_calculator(
        self,
        facility_id: str,
        config: Dict[str, Any],
        starting_point: float = 0.0,
    ) -> CalculatorEntry:
        entry = CalculatorEntry(
            entity="facility",
            id=facility_id,
            config=dict(config),
            starting_point=float(starting_point or 0.0),
        )
        with self._lock:
            replaced = entry.key in self._entries
            self._entries[entry.key] = entry
        logger.info(
            "%s impact calculator %s (starting point %s)",
            "restarted" if replaced else "started", entry.key, entry.starting_point,
        )
        return entry

    def get(self, entity: str, entity_id: str) -> Optional[CalculatorEntry]:
        with self._lock:
            return self._entries.get(calculator_key(entity, entity_id))
