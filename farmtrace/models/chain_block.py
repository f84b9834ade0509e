# farmtrace/models/chain_block.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    String,
    DateTime,
    Integer,
    Index,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from farmtrace.db.base import Base, JSONDocument


class ChainBlock(Base):
    """
    Append-only hash-chained provenance block.

    block_hash = SHA256(prev_hash + canonical(content))
    content = every column below except block_hash / recorded_at / id.
    """

    __tablename__ = "chain_blocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    entity_kind: Mapped[str] = mapped_column(String(16), nullable=False)  # batch | product
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)

    seq: Mapped[int] = mapped_column(Integer, nullable=False)  # monotonic per entity, genesis = 1

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actor: Mapped[str] = mapped_column(String(256), nullable=False)
    actor_role: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)  # products only
    location: Mapped[str] = mapped_column(String(256), nullable=False)
    payload_json: Mapped[Dict[str, Any]] = mapped_column(JSONDocument, nullable=False, default=dict)

    prev_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    block_hash: Mapped[str] = mapped_column(String(128), nullable=False)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("entity_kind", "entity_id", "seq", name="uq_chain_block_seq"),
        UniqueConstraint("entity_kind", "entity_id", "prev_hash", name="uq_chain_block_prev"),
        Index("ix_chain_blocks_entity", "entity_kind", "entity_id"),
    )
