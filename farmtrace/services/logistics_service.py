# farmtrace/services/logistics_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from farmtrace.core.types import AggregationScope, EntityKind
from farmtrace.models.batch import Batch
from farmtrace.models.chain_block import ChainBlock
from farmtrace.models.product import Product
from farmtrace.services import aggregation_service, insight_service
from farmtrace.services.augmentation_service import (
    HeuristicSummarizer,
    InsightSummarizer,
    entity_prompt,
    fleet_prompt,
)
from farmtrace.services.ledger_service import LedgerService
from farmtrace.services.logistics_extractor import LogisticsExtract, extract

logger = logging.getLogger(__name__)


def extract_batch(batch: Batch, blocks: Sequence[ChainBlock]) -> LogisticsExtract:
    return extract(
        blocks,
        entity_kind=EntityKind.batch.value,
        entity_id=batch.id,
        product_type=batch.product_type,
        origin=batch.location,
    )


def extract_product(product: Product, blocks: Sequence[ChainBlock]) -> LogisticsExtract:
    # a product starts where its batch was harvested
    return extract(
        blocks,
        entity_kind=EntityKind.product.value,
        entity_id=product.id,
        product_type=product.batch.product_type,
        origin=product.batch.location,
    )


class LogisticsService:
    """
    Read-side analytics over provenance chains.

    Reads are a snapshot at call time; concurrent appends may or may not be
    visible to a fleet aggregation that is already running.
    """

    def __init__(
        self,
        ledger: Optional[LedgerService] = None,
        summarizer: Optional[InsightSummarizer] = None,
    ):
        self.ledger = ledger or LedgerService()
        self.summarizer = summarizer or HeuristicSummarizer()

    # ---------------------------
    # SINGLE ENTITY
    # ---------------------------

    def get_entity_logistics(
        self,
        db: Session,
        *,
        kind: EntityKind,
        entity_id: str,
    ) -> LogisticsExtract:
        entity = self.ledger.get_entity(db, kind=kind, entity_id=entity_id)
        blocks = self.ledger.list_blocks(db, kind=kind, entity_id=entity_id)
        if kind == EntityKind.batch:
            return extract_batch(entity, blocks)
        return extract_product(entity, blocks)

    async def get_single_entity_insights(
        self,
        db: Session,
        *,
        kind: EntityKind,
        entity_id: str,
    ) -> Dict[str, Any]:
        ex = self.get_entity_logistics(db, kind=kind, entity_id=entity_id)
        metrics = insight_service.compute_entity_metrics(ex)
        result = insight_service.generate_entity_insights(ex, metrics)
        return await self.summarizer.summarize(result, entity_prompt(ex, metrics))

    # ---------------------------
    # FLEET
    # ---------------------------

    def collect_extracts(
        self,
        db: Session,
        *,
        scope: AggregationScope = AggregationScope.batches,
    ) -> List[LogisticsExtract]:
        extracts: List[LogisticsExtract] = []

        if scope in (AggregationScope.batches, AggregationScope.all):
            chains = self.ledger.blocks_by_entity(db, kind=EntityKind.batch)
            batches = db.execute(
                select(Batch).order_by(Batch.created_at.asc(), Batch.id.asc())
            ).scalars()
            extracts.extend(extract_batch(b, chains.get(b.id, [])) for b in batches)

        if scope in (AggregationScope.products, AggregationScope.all):
            chains = self.ledger.blocks_by_entity(db, kind=EntityKind.product)
            products = db.execute(
                select(Product).order_by(Product.created_at.asc(), Product.id.asc())
            ).unique().scalars()
            extracts.extend(extract_product(p, chains.get(p.id, [])) for p in products)

        logger.info("[logistics] collected %d extracts for scope=%s", len(extracts), scope.value)
        return extracts

    async def get_consolidated_insights(
        self,
        db: Session,
        *,
        scope: AggregationScope = AggregationScope.batches,
    ) -> Dict[str, Any]:
        """
        Raises EmptyDatasetError when the scope holds no entities.
        """
        fleet = aggregation_service.aggregate(self.collect_extracts(db, scope=scope))
        result = aggregation_service.consolidated_result(fleet)
        result["scope"] = scope.value

        if not fleet.ranking:
            # nothing moved yet; no narrative worth asking a model for
            return result
        return await self.summarizer.summarize(result, fleet_prompt(fleet))
