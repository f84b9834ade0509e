# farmtrace/services/ledger_service.py
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from farmtrace.core.errors import (
    IntegrityViolationError,
    InvalidInputError,
    NotFoundError,
)
from farmtrace.core.hashing import GENESIS_HASH, canonical_dumps, hash_chain, iso_utc
from farmtrace.core.locks import chain_locks
from farmtrace.core.payloads import payload_status, require_document
from farmtrace.core.types import ActorRole, EntityKind
from farmtrace.models.batch import Batch
from farmtrace.models.chain_block import ChainBlock
from farmtrace.models.product import Product

logger = logging.getLogger(__name__)

Entity = Union[Batch, Product]

_APPEND_ATTEMPTS = 3
STATUS_MAX_LENGTH = Batch.__table__.c.status.type.length


def _now() -> datetime:
    return datetime.now(timezone.utc)


def block_content(
    *,
    entity_kind: str,
    entity_id: str,
    seq: int,
    timestamp: datetime,
    actor: str,
    actor_role: Optional[str],
    location: str,
    payload: Dict[str, Any],
) -> Dict[str, Any]:
    """
    The hashed part of a block: everything except the block's own hash.
    prev_hash is mixed in by hash_chain().
    """
    return {
        "entity_kind": entity_kind,
        "entity_id": entity_id,
        "seq": seq,
        "timestamp": iso_utc(timestamp),
        "actor": actor,
        "actor_role": actor_role,
        "location": location,
        "payload": payload,
    }


def digest_block(block: ChainBlock) -> str:
    content = block_content(
        entity_kind=block.entity_kind,
        entity_id=block.entity_id,
        seq=block.seq,
        timestamp=block.timestamp,
        actor=block.actor,
        actor_role=block.actor_role,
        location=block.location,
        payload=block.payload_json or {},
    )
    return hash_chain(block.prev_hash, content)


@dataclass(frozen=True)
class ChainVerification:
    entity_kind: str
    entity_id: str
    valid: bool
    length: int
    broken_index: Optional[int] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def verify_blocks(
    blocks: Sequence[ChainBlock],
    *,
    entity_kind: str,
    entity_id: str,
) -> ChainVerification:
    """
    Recompute every digest and link in seq order.
    Reports the first broken position (0-based) instead of raising.
    """
    prev_hash = GENESIS_HASH

    for index, block in enumerate(blocks):
        if block.prev_hash != prev_hash:
            reason = (
                "genesis block does not start from the genesis sentinel"
                if index == 0
                else f"prev_hash of seq {block.seq} does not match the preceding block"
            )
            return ChainVerification(entity_kind, entity_id, False, len(blocks), index, reason)

        if block.block_hash != digest_block(block):
            return ChainVerification(
                entity_kind,
                entity_id,
                False,
                len(blocks),
                index,
                f"hash of seq {block.seq} does not match its content",
            )

        prev_hash = block.block_hash

    return ChainVerification(entity_kind, entity_id, True, len(blocks))


class LedgerService:
    """
    Append-only provenance chains, one per Batch / Product.
    seq, prev_hash and hash are always computed here.
    """

    GENESIS_HASH = GENESIS_HASH

    # ─────────────────────────────────────────────
    # INTERNAL HELPERS
    # ─────────────────────────────────────────────

    @staticmethod
    def _model_for(kind: EntityKind):
        return Batch if kind == EntityKind.batch else Product

    def get_entity(
        self,
        db: Session,
        *,
        kind: EntityKind,
        entity_id: str,
        for_update: bool = False,
    ) -> Entity:
        model = self._model_for(kind)
        stmt = select(model).where(model.id == entity_id)
        if for_update:
            # no-op on SQLite; row lock on PostgreSQL
            stmt = stmt.with_for_update(of=model)
        entity = db.execute(stmt).unique().scalar_one_or_none()
        if entity is None:
            raise NotFoundError(
                f"{kind.value.capitalize()} not found",
                {"entityKind": kind.value, "entityId": entity_id},
            )
        return entity

    def _get_last_block(
        self,
        db: Session,
        *,
        kind: EntityKind,
        entity_id: str,
    ) -> Optional[ChainBlock]:
        return db.execute(
            select(ChainBlock)
            .where(
                ChainBlock.entity_kind == kind.value,
                ChainBlock.entity_id == entity_id,
            )
            .order_by(ChainBlock.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _seal(
        self,
        db: Session,
        *,
        kind: EntityKind,
        entity: Entity,
        actor: str,
        location: str,
        payload: Dict[str, Any],
        timestamp: Optional[datetime],
        actor_role: Optional[Union[ActorRole, str]],
    ) -> ChainBlock:
        """
        read-last, append-next. Caller holds the per-entity lock and owns
        the transaction (nothing is committed here).
        """
        last = self._get_last_block(db, kind=kind, entity_id=entity.id)
        prev_hash = last.block_hash if last else self.GENESIS_HASH
        seq = 1 if last is None else last.seq + 1

        ts = timestamp or _now()
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        # stored as UTC: SQLite keeps wall time only
        ts = ts.astimezone(timezone.utc)

        role: Optional[str] = None
        if kind == EntityKind.product and actor_role is not None:
            role = actor_role.value if isinstance(actor_role, ActorRole) else str(actor_role)

        content = block_content(
            entity_kind=kind.value,
            entity_id=entity.id,
            seq=seq,
            timestamp=ts,
            actor=actor,
            actor_role=role,
            location=location,
            payload=payload,
        )

        row = ChainBlock(
            entity_kind=kind.value,
            entity_id=entity.id,
            seq=seq,
            timestamp=ts,
            actor=actor,
            actor_role=role,
            location=location,
            payload_json=payload,
            prev_hash=prev_hash,
            block_hash=hash_chain(prev_hash, content),
        )
        db.add(row)

        status = payload_status(payload)
        if kind == EntityKind.batch and status:
            # last write wins; history lives in the chain itself
            entity.status = status

        db.flush()
        return row

    @staticmethod
    def _check_payload(payload: Any, kind: EntityKind) -> Dict[str, Any]:
        doc = require_document(payload)
        try:
            canonical_dumps(doc)
        except (TypeError, ValueError, RecursionError) as exc:
            raise InvalidInputError(
                "Block payload must be JSON-serialisable.", {"detail": str(exc)}
            ) from exc

        status = payload_status(doc)
        if kind == EntityKind.batch and status:
            # copied onto Batch.status
            if not isinstance(status, str) or len(status) > STATUS_MAX_LENGTH:
                raise InvalidInputError(
                    f"Block status must be a string of at most {STATUS_MAX_LENGTH} characters.",
                    {"statusType": type(status).__name__},
                )
        return doc

    # ─────────────────────────────────────────────
    # PUBLIC API
    # ─────────────────────────────────────────────

    def append_block(
        self,
        db: Session,
        *,
        kind: EntityKind,
        entity_id: str,
        actor: str,
        location: str,
        payload: Any = None,
        timestamp: Optional[datetime] = None,
        actor_role: Optional[Union[ActorRole, str]] = None,
    ) -> ChainBlock:
        """
        Append a single immutable block to an entity's chain.

        - append-only
        - hash-chained, hashes computed server-side
        - serialized per entity (keyed lock + row lock + unique seq)
        """
        doc = self._check_payload(payload, kind)

        with chain_locks.hold((kind.value, entity_id)):
            for attempt in range(1, _APPEND_ATTEMPTS + 1):
                entity = self.get_entity(db, kind=kind, entity_id=entity_id, for_update=True)
                try:
                    row = self._seal(
                        db,
                        kind=kind,
                        entity=entity,
                        actor=actor,
                        location=location,
                        payload=doc,
                        timestamp=timestamp,
                        actor_role=actor_role,
                    )
                    db.commit()
                except IntegrityError:
                    # another process took this seq; re-read the tip
                    db.rollback()
                    logger.warning(
                        "[ledger] append race on %s/%s attempt=%d",
                        kind.value,
                        entity_id,
                        attempt,
                    )
                    continue
                db.refresh(row)
                logger.info(
                    "[ledger] appended %s/%s seq=%d hash=%s",
                    kind.value,
                    entity_id,
                    row.seq,
                    row.block_hash[:12],
                )
                return row

        raise IntegrityViolationError(
            "Could not append block: chain tip kept moving.",
            {"entityKind": kind.value, "entityId": entity_id},
        )

    def seal_initial_blocks(
        self,
        db: Session,
        *,
        kind: EntityKind,
        entity: Entity,
        blocks: Sequence[Dict[str, Any]],
    ) -> List[ChainBlock]:
        """
        Re-seal blocks supplied with a create request, in order, inside the
        caller's transaction. Client hashes are never trusted.
        """
        docs = [self._check_payload(b.get("payload"), kind) for b in blocks]
        rows: List[ChainBlock] = []
        with chain_locks.hold((kind.value, entity.id)):
            for b, doc in zip(blocks, docs):
                rows.append(
                    self._seal(
                        db,
                        kind=kind,
                        entity=entity,
                        actor=b["actor"],
                        location=b["location"],
                        payload=doc,
                        timestamp=b.get("timestamp"),
                        actor_role=b.get("actor_role"),
                    )
                )
        return rows

    # ─────────────────────────────────────────────
    # READ-ONLY HELPERS (AUDIT)
    # ─────────────────────────────────────────────

    def list_blocks(
        self,
        db: Session,
        *,
        kind: EntityKind,
        entity_id: str,
    ) -> List[ChainBlock]:
        return list(
            db.execute(
                select(ChainBlock)
                .where(
                    ChainBlock.entity_kind == kind.value,
                    ChainBlock.entity_id == entity_id,
                )
                .order_by(ChainBlock.seq.asc())
            )
            .scalars()
            .all()
        )

    def blocks_by_entity(
        self,
        db: Session,
        *,
        kind: EntityKind,
    ) -> Dict[str, List[ChainBlock]]:
        """
        Every chain of one kind in a single read, grouped by entity id.
        """
        grouped: Dict[str, List[ChainBlock]] = defaultdict(list)
        rows = db.execute(
            select(ChainBlock)
            .where(ChainBlock.entity_kind == kind.value)
            .order_by(ChainBlock.entity_id.asc(), ChainBlock.seq.asc())
        ).scalars()
        for row in rows:
            grouped[row.entity_id].append(row)
        return grouped

    def verify_chain(
        self,
        db: Session,
        *,
        kind: EntityKind,
        entity_id: str,
    ) -> ChainVerification:
        """
        Verifies the entire hash chain of one entity.
        Used by auditors.
        """
        self.get_entity(db, kind=kind, entity_id=entity_id)
        blocks = self.list_blocks(db, kind=kind, entity_id=entity_id)
        report = verify_blocks(blocks, entity_kind=kind.value, entity_id=entity_id)
        if not report.valid:
            logger.warning(
                "[ledger/verify] broken chain %s/%s index=%s reason=%s",
                kind.value,
                entity_id,
                report.broken_index,
                report.reason,
            )
        return report

    def assert_intact(
        self,
        db: Session,
        *,
        kind: EntityKind,
        entity_id: str,
    ) -> ChainVerification:
        report = self.verify_chain(db, kind=kind, entity_id=entity_id)
        if not report.valid:
            raise IntegrityViolationError(
                "Provenance chain failed verification.",
                {
                    "entityKind": kind.value,
                    "entityId": entity_id,
                    "brokenIndex": report.broken_index,
                    "reason": report.reason,
                },
            )
        return report

    def verify_all(self, db: Session) -> List[ChainVerification]:
        reports: List[ChainVerification] = []
        for kind in EntityKind:
            model = self._model_for(kind)
            ids = db.execute(select(model.id).order_by(model.id.asc())).scalars().all()
            chains = self.blocks_by_entity(db, kind=kind)
            for entity_id in ids:
                reports.append(
                    verify_blocks(
                        chains.get(entity_id, []),
                        entity_kind=kind.value,
                        entity_id=entity_id,
                    )
                )
        broken = sum(1 for r in reports if not r.valid)
        logger.info("[ledger/verify] audited %d chains, %d broken", len(reports), broken)
        return reports
