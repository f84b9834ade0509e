# farmtrace/models/batch.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import String, Date, DateTime, Integer, Text, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from farmtrace.db.base import Base


class Batch(Base):
    """
    Harvested lot. Its provenance chain lives in chain_blocks
    under (entity_kind='batch', entity_id=id).
    """

    __tablename__ = "batches"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)  # BATCH-XXXX

    product_type: Mapped[str] = mapped_column(String(128), nullable=False)
    harvest_date: Mapped[date] = mapped_column(Date, nullable=False)
    location: Mapped[str] = mapped_column(String(256), nullable=False)  # origin
    responsible_staff: Mapped[str] = mapped_column(String(256), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (Index("ix_batches_product_type", "product_type"),)
