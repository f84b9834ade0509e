# farmtrace/services/batches_service.py
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from farmtrace.core.errors import InvalidInputError
from farmtrace.core.types import ID_PREFIXES, EntityKind
from farmtrace.models.batch import Batch
from farmtrace.models.product import Product
from farmtrace.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


def new_entity_id(kind: EntityKind) -> str:
    return f"{ID_PREFIXES[kind]}{uuid.uuid4().hex[:8].upper()}"


def resolve_entity_id(db: Session, kind: EntityKind, requested: Optional[str]) -> str:
    """
    Accept a caller id when it carries the right prefix and is unused,
    otherwise mint one.
    """
    model = Batch if kind == EntityKind.batch else Product
    prefix = ID_PREFIXES[kind]

    if requested is None:
        return new_entity_id(kind)

    requested = requested.strip()
    if not requested.startswith(prefix) or len(requested) == len(prefix):
        raise InvalidInputError(
            f"{kind.value.capitalize()} id must start with '{prefix}'.",
            {"entityId": requested},
        )
    if db.get(model, requested) is not None:
        raise InvalidInputError(
            f"{kind.value.capitalize()} already exists.",
            {"entityId": requested},
        )
    return requested


class BatchService:
    def __init__(self, ledger: Optional[LedgerService] = None):
        self.ledger = ledger or LedgerService()

    def create_batch(
        self,
        db: Session,
        *,
        product_type: str,
        harvest_date: date,
        location: str,
        responsible_staff: str,
        batch_id: Optional[str] = None,
        quantity: int = 0,
        status: Optional[str] = None,
        notes: Optional[str] = None,
        blocks: Sequence[Dict[str, Any]] = (),
    ) -> Batch:
        """
        Create a batch; any blocks sent along are re-sealed into its chain
        in the same transaction.
        """
        for field_name, value in (
            ("productType", product_type),
            ("location", location),
            ("responsibleStaff", responsible_staff),
        ):
            if not value or not str(value).strip():
                raise InvalidInputError(f"Missing required batch field: {field_name}")
        if quantity < 0:
            raise InvalidInputError("Batch quantity cannot be negative.", {"quantity": quantity})

        row = Batch(
            id=resolve_entity_id(db, EntityKind.batch, batch_id),
            product_type=product_type,
            harvest_date=harvest_date,
            location=location,
            responsible_staff=responsible_staff,
            quantity=quantity,
            status=status,
            notes=notes,
        )
        db.add(row)
        db.flush()

        if blocks:
            self.ledger.seal_initial_blocks(db, kind=EntityKind.batch, entity=row, blocks=blocks)

        db.commit()
        db.refresh(row)
        logger.info("[batches] created %s (%s) with %d blocks", row.id, row.product_type, len(blocks))
        return row

    def get_batch(self, db: Session, batch_id: str) -> Batch:
        return self.ledger.get_entity(db, kind=EntityKind.batch, entity_id=batch_id)

    def list_batches(self, db: Session) -> List[Batch]:
        return list(db.execute(select(Batch).order_by(Batch.created_at.asc(), Batch.id.asc())).scalars().all())

    def list_products(self, db: Session, batch_id: str) -> List[Product]:
        # unknown batch simply has no products
        return list(
            db.execute(
                select(Product)
                .where(Product.batch_id == batch_id)
                .order_by(Product.created_at.asc(), Product.id.asc())
            )
            .unique()
            .scalars()
            .all()
        )
