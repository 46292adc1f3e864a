"""
routes_metrics.py

Catalogue of the metric definitions (name, unit, entity kind) shown on the
metrics page. Stored in the local database.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from nadiki_dashboard.deps import get_session
from nadiki_dashboard.errors import ApiError
from nadiki_dashboard.models.db import MetricRecord
from nadiki_dashboard.schemas.metric import MetricIn, MetricOut, MetricPatch

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_out(rec: MetricRecord) -> MetricOut:
    return MetricOut(
        id=rec.id,
        metric_name=rec.metric_name,
        unit=rec.unit,
        entity=rec.entity,
        created_at=rec.created_at.isoformat(),
        updated_at=rec.updated_at.isoformat(),
    )


def _load(session: Session, metric_id: str) -> MetricRecord:
    rec = session.get(MetricRecord, metric_id)
    if rec is None:
        raise ApiError(404, "Metric not found", details=f"No metric found with ID: {metric_id}")
    return rec


def _commit(session: Session, verb: str) -> None:
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("failed to %s metric", verb)
        raise ApiError(500, f"Failed to {verb} metric", details=str(e))


@router.get("", response_model=List[MetricOut])
def list_metrics(session: Session = Depends(get_session)) -> List[MetricOut]:
    rows = session.exec(select(MetricRecord).order_by(MetricRecord.created_at.desc())).all()
    return [_to_out(r) for r in rows]


@router.post("", response_model=MetricOut, status_code=201)
def create_metric(payload: MetricIn, session: Session = Depends(get_session)) -> MetricOut:
    rec = MetricRecord(
        metric_name=payload.metric_name,
        unit=payload.unit.value,
        entity=payload.entity.value,
    )
    session.add(rec)
    _commit(session, "create")
    session.refresh(rec)
    return _to_out(rec)


@router.put("/{metric_id}", response_model=MetricOut)
def update_metric(metric_id: str, payload: MetricPatch, session: Session = Depends(get_session)) -> MetricOut:
    rec = _load(session, metric_id)
    changes = payload.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    for key, value in changes.items():
        setattr(rec, key, value)
    rec.updated_at = datetime.now(timezone.utc)
    session.add(rec)
    _commit(session, "update")
    session.refresh(rec)
    return _to_out(rec)


@router.delete("/{metric_id}", status_code=204)
def delete_metric(metric_id: str, session: Session = Depends(get_session)) -> Response:
    rec = _load(session, metric_id)
    session.delete(rec)
    _commit(session, "delete")
    return Response(status_code=204)
