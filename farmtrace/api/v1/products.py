# farmtrace/api/v1/products.py
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from farmtrace.api.errors import to_http
from farmtrace.api.v1.render import block_in, product_out, verification_out
from farmtrace.core.errors import FarmtraceError
from farmtrace.core.types import EntityKind
from farmtrace.db.session import get_db
from farmtrace.schemas.blocks import BlockCreate, ChainVerificationOut
from farmtrace.schemas.products import LocationCount, ProductCreate, ProductOut
from farmtrace.services.ledger_service import LedgerService
from farmtrace.services.products_service import ProductService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=List[ProductOut])
async def list_products(db: Session = Depends(get_db)):
    svc = ProductService()
    chains = svc.ledger.blocks_by_entity(db, kind=EntityKind.product)
    return [product_out(p, chains.get(p.id, [])) for p in svc.list_products(db)]


@router.post("", status_code=201, response_model=ProductOut)
async def create_product(payload: ProductCreate, db: Session = Depends(get_db)):
    svc = ProductService()
    try:
        product = svc.create_product(
            db,
            product_id=payload.id,
            batch_id=payload.batchId,
            weight=payload.weight,
            size=payload.size,
            quality=payload.quality,
            additional_notes=payload.additionalNotes,
            blocks=[block_in(b) for b in payload.blocks],
        )
    except FarmtraceError as exc:
        db.rollback()
        raise to_http(exc)

    blocks = svc.ledger.list_blocks(db, kind=EntityKind.product, entity_id=product.id)
    return product_out(product, blocks)


@router.get("/location", response_model=List[LocationCount])
async def product_location_stats(db: Session = Depends(get_db)):
    """Product counts grouped by the location of each chain's first block."""
    return ProductService().location_stats(db)


@router.get("/{product_id}", response_model=ProductOut)
async def get_product(product_id: str, db: Session = Depends(get_db)):
    svc = ProductService()
    try:
        product = svc.get_product(db, product_id)
    except FarmtraceError as exc:
        raise to_http(exc)
    return product_out(product, svc.ledger.list_blocks(db, kind=EntityKind.product, entity_id=product.id))


@router.post("/{product_id}/blocks", response_model=ProductOut)
async def append_product_block(product_id: str, payload: BlockCreate, db: Session = Depends(get_db)):
    ledger = LedgerService()
    try:
        ledger.append_block(
            db,
            kind=EntityKind.product,
            entity_id=product_id,
            actor=payload.actor,
            location=payload.location,
            payload=payload.data,
            timestamp=payload.timestamp,
            actor_role=payload.actorRole,
        )
        product = ledger.get_entity(db, kind=EntityKind.product, entity_id=product_id)
    except FarmtraceError as exc:
        db.rollback()
        raise to_http(exc)

    return product_out(product, ledger.list_blocks(db, kind=EntityKind.product, entity_id=product_id))


@router.get("/{product_id}/chain/verify", response_model=ChainVerificationOut)
async def verify_product_chain(
    product_id: str,
    strict: bool = Query(False),
    db: Session = Depends(get_db),
):
    ledger = LedgerService()
    try:
        if strict:
            report = ledger.assert_intact(db, kind=EntityKind.product, entity_id=product_id)
        else:
            report = ledger.verify_chain(db, kind=EntityKind.product, entity_id=product_id)
    except FarmtraceError as exc:
        raise to_http(exc)
    return verification_out(report)
