from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional, Sequence, Union

from farmtrace.core.hashing import iso_utc
from farmtrace.core.payloads import classify_payload
from farmtrace.models.batch import Batch
from farmtrace.models.chain_block import ChainBlock
from farmtrace.models.product import Product
from farmtrace.schemas.blocks import BlockCreate
from farmtrace.services.ledger_service import ChainVerification


def _iso(dt: Optional[Union[date, datetime]]) -> Optional[str]:
    if dt is None:
        return None
    if isinstance(dt, datetime):
        return iso_utc(dt)
    return dt.isoformat()


def block_in(b: BlockCreate) -> Dict[str, Any]:
    return {
        "actor": b.actor,
        "location": b.location,
        "payload": b.data,
        "timestamp": b.timestamp,
        "actor_role": b.actorRole,
    }


def block_out(b: ChainBlock) -> Dict[str, Any]:
    return {
        "blockId": b.seq,
        "timestamp": _iso(b.timestamp),
        "actor": b.actor,
        "actorRole": b.actor_role,
        "location": b.location,
        "data": b.payload_json or {},
        "kind": classify_payload(b.payload_json).value,
        "prevHash": b.prev_hash,
        "hash": b.block_hash,
    }


def batch_out(batch: Batch, blocks: Sequence[ChainBlock]) -> Dict[str, Any]:
    return {
        "id": batch.id,
        "productType": batch.product_type,
        "harvestDate": _iso(batch.harvest_date),
        "location": batch.location,
        "responsibleStaff": batch.responsible_staff,
        "quantity": batch.quantity,
        "status": batch.status,
        "notes": batch.notes,
        "createdAt": _iso(batch.created_at),
        "updatedAt": _iso(batch.updated_at),
        "blocks": [block_out(b) for b in blocks],
    }


def product_out(product: Product, blocks: Sequence[ChainBlock]) -> Dict[str, Any]:
    return {
        "id": product.id,
        "batchId": product.batch_id,
        "weight": product.weight,
        "size": product.size,
        "quality": product.quality,
        "additionalNotes": product.additional_notes,
        "createdAt": _iso(product.created_at),
        "updatedAt": _iso(product.updated_at),
        "blocks": [block_out(b) for b in blocks],
    }


def verification_out(report: ChainVerification) -> Dict[str, Any]:
    return {
        "entityKind": report.entity_kind,
        "entityId": report.entity_id,
        "valid": report.valid,
        "length": report.length,
        "brokenIndex": report.broken_index,
        "reason": report.reason,
    }
