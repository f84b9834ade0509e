# farmtrace/services/products_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from farmtrace.core.errors import InvalidInputError
from farmtrace.core.types import EntityKind
from farmtrace.models.chain_block import ChainBlock
from farmtrace.models.product import Product
from farmtrace.services.batches_service import resolve_entity_id
from farmtrace.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(self, ledger: Optional[LedgerService] = None):
        self.ledger = ledger or LedgerService()

    def create_product(
        self,
        db: Session,
        *,
        batch_id: str,
        weight: float,
        size: str,
        product_id: Optional[str] = None,
        quality: Optional[str] = None,
        additional_notes: Optional[str] = None,
        blocks: Sequence[Dict[str, Any]] = (),
    ) -> Product:
        """
        Rules:
        - the owning batch must exist (NotFound otherwise)
        - batch.quantity += 1 in the same transaction
        - supplied blocks are re-sealed, never trusted
        """
        if weight is None or weight <= 0:
            raise InvalidInputError("Product weight must be positive.", {"weight": weight})
        if not size or not size.strip():
            raise InvalidInputError("Missing required product field: size")

        batch = self.ledger.get_entity(db, kind=EntityKind.batch, entity_id=batch_id, for_update=True)

        row = Product(
            id=resolve_entity_id(db, EntityKind.product, product_id),
            batch_id=batch.id,
            weight=weight,
            size=size,
            quality=quality,
            additional_notes=additional_notes,
        )
        db.add(row)
        batch.quantity = (batch.quantity or 0) + 1
        db.flush()

        if blocks:
            self.ledger.seal_initial_blocks(db, kind=EntityKind.product, entity=row, blocks=blocks)

        db.commit()
        db.refresh(row)
        logger.info("[products] created %s in %s (batch quantity=%d)", row.id, batch.id, batch.quantity)
        return row

    def get_product(self, db: Session, product_id: str) -> Product:
        return self.ledger.get_entity(db, kind=EntityKind.product, entity_id=product_id)

    def list_products(self, db: Session) -> List[Product]:
        return list(
            db.execute(select(Product).order_by(Product.created_at.asc(), Product.id.asc()))
            .unique()
            .scalars()
            .all()
        )

    def location_stats(self, db: Session) -> List[Dict[str, Any]]:
        """
        Product count per location of the first block in each product chain.
        Products with an empty chain are counted under None.
        """
        products = db.execute(select(Product.id).order_by(Product.id.asc())).scalars().all()
        first_locations = dict(
            db.execute(
                select(ChainBlock.entity_id, ChainBlock.location).where(
                    ChainBlock.entity_kind == EntityKind.product.value,
                    ChainBlock.seq == 1,
                )
            ).all()
        )

        counts: Dict[Optional[str], int] = {}
        for pid in products:
            loc = first_locations.get(pid)
            counts[loc] = counts.get(loc, 0) + 1

        return [{"location": loc, "count": n} for loc, n in counts.items()]
