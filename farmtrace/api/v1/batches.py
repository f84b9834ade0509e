# farmtrace/api/v1/batches.py
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from farmtrace.api.errors import to_http
from farmtrace.api.v1.render import batch_out, block_in, product_out, verification_out
from farmtrace.core.errors import FarmtraceError
from farmtrace.core.types import EntityKind
from farmtrace.db.session import get_db
from farmtrace.schemas.batches import BatchCreate, BatchOut
from farmtrace.schemas.blocks import BlockCreate, ChainVerificationOut
from farmtrace.schemas.products import ProductOut
from farmtrace.services.batches_service import BatchService
from farmtrace.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batches", tags=["batches"])


@router.get("", response_model=List[BatchOut])
async def list_batches(db: Session = Depends(get_db)):
    svc = BatchService()
    chains = svc.ledger.blocks_by_entity(db, kind=EntityKind.batch)
    return [batch_out(b, chains.get(b.id, [])) for b in svc.list_batches(db)]


@router.post("", status_code=201, response_model=BatchOut)
async def create_batch(payload: BatchCreate, db: Session = Depends(get_db)):
    svc = BatchService()
    try:
        batch = svc.create_batch(
            db,
            batch_id=payload.id,
            product_type=payload.productType,
            harvest_date=payload.harvestDate,
            location=payload.location,
            responsible_staff=payload.responsibleStaff,
            quantity=payload.quantity,
            status=payload.status,
            notes=payload.notes,
            blocks=[block_in(b) for b in payload.blocks],
        )
    except FarmtraceError as exc:
        db.rollback()
        raise to_http(exc)

    blocks = svc.ledger.list_blocks(db, kind=EntityKind.batch, entity_id=batch.id)
    return batch_out(batch, blocks)


@router.get("/{batch_id}", response_model=BatchOut)
async def get_batch(batch_id: str, db: Session = Depends(get_db)):
    svc = BatchService()
    try:
        batch = svc.get_batch(db, batch_id)
    except FarmtraceError as exc:
        raise to_http(exc)
    return batch_out(batch, svc.ledger.list_blocks(db, kind=EntityKind.batch, entity_id=batch.id))


@router.post("/{batch_id}/blocks", response_model=BatchOut)
async def append_batch_block(batch_id: str, payload: BlockCreate, db: Session = Depends(get_db)):
    """
    Appends one block; the batch status follows a status-update payload.
    Returns the whole batch with its chain.
    """
    ledger = LedgerService()
    try:
        ledger.append_block(
            db,
            kind=EntityKind.batch,
            entity_id=batch_id,
            actor=payload.actor,
            location=payload.location,
            payload=payload.data,
            timestamp=payload.timestamp,
        )
        batch = ledger.get_entity(db, kind=EntityKind.batch, entity_id=batch_id)
    except FarmtraceError as exc:
        db.rollback()
        raise to_http(exc)

    return batch_out(batch, ledger.list_blocks(db, kind=EntityKind.batch, entity_id=batch_id))


@router.get("/{batch_id}/products", response_model=List[ProductOut])
async def list_batch_products(batch_id: str, db: Session = Depends(get_db)):
    svc = BatchService()
    products = svc.list_products(db, batch_id)
    chains = svc.ledger.blocks_by_entity(db, kind=EntityKind.product)
    return [product_out(p, chains.get(p.id, [])) for p in products]


@router.get("/{batch_id}/chain/verify", response_model=ChainVerificationOut)
async def verify_batch_chain(
    batch_id: str,
    strict: bool = Query(False, description="409 instead of a report when the chain is broken"),
    db: Session = Depends(get_db),
):
    ledger = LedgerService()
    try:
        if strict:
            report = ledger.assert_intact(db, kind=EntityKind.batch, entity_id=batch_id)
        else:
            report = ledger.verify_chain(db, kind=EntityKind.batch, entity_id=batch_id)
    except FarmtraceError as exc:
        raise to_http(exc)
    return verification_out(report)
