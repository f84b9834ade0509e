# farmtrace/api/v1/logistics.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from farmtrace.api.errors import to_http
from farmtrace.core.deps import logistics_service_dep
from farmtrace.core.errors import FarmtraceError
from farmtrace.core.types import AggregationScope, EntityKind
from farmtrace.db.session import get_db
from farmtrace.services.logistics_service import LogisticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/logistics", tags=["logistics"])


def _entity_logistics(svc: LogisticsService, db: Session, kind: EntityKind, entity_id: str):
    try:
        return svc.get_entity_logistics(db, kind=kind, entity_id=entity_id).to_dict()
    except FarmtraceError as exc:
        raise to_http(exc)


async def _entity_insights(svc: LogisticsService, db: Session, kind: EntityKind, entity_id: str):
    logger.info("[logistics] insights for %s/%s via %s", kind.value, entity_id, svc.summarizer.name)
    try:
        return await svc.get_single_entity_insights(db, kind=kind, entity_id=entity_id)
    except FarmtraceError as exc:
        raise to_http(exc)


@router.get("/batch/{batch_id}")
async def batch_logistics(
    batch_id: str,
    db: Session = Depends(get_db),
    svc: LogisticsService = Depends(logistics_service_dep),
):
    return _entity_logistics(svc, db, EntityKind.batch, batch_id)


@router.get("/batch/{batch_id}/insights")
async def batch_insights(
    batch_id: str,
    db: Session = Depends(get_db),
    svc: LogisticsService = Depends(logistics_service_dep),
):
    return await _entity_insights(svc, db, EntityKind.batch, batch_id)


@router.get("/product/{product_id}")
async def product_logistics(
    product_id: str,
    db: Session = Depends(get_db),
    svc: LogisticsService = Depends(logistics_service_dep),
):
    return _entity_logistics(svc, db, EntityKind.product, product_id)


@router.get("/product/{product_id}/insights")
async def product_insights(
    product_id: str,
    db: Session = Depends(get_db),
    svc: LogisticsService = Depends(logistics_service_dep),
):
    return await _entity_insights(svc, db, EntityKind.product, product_id)


@router.get("/insights/summary")
async def consolidated_insights(
    scope: AggregationScope = Query(AggregationScope.batches),
    db: Session = Depends(get_db),
    svc: LogisticsService = Depends(logistics_service_dep),
):
    """
    Fleet-wide ranking and narrative. 404 with error=empty_dataset when the
    scope holds nothing to aggregate.
    """
    try:
        return await svc.get_consolidated_insights(db, scope=scope)
    except FarmtraceError as exc:
        raise to_http(exc)
