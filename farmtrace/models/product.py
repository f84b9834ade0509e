# farmtrace/models/product.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Float, DateTime, Text, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from farmtrace.db.base import Base


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)  # PROD-XXXX

    # non-owning reference: no cascade, batches are never deleted
    batch_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("batches.id", ondelete="RESTRICT"),
        nullable=False,
    )

    weight: Mapped[float] = mapped_column(Float, nullable=False)
    size: Mapped[str] = mapped_column(String(32), nullable=False)
    quality: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    additional_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    batch = relationship("Batch", lazy="joined")

    __table_args__ = (Index("ix_products_batch", "batch_id"),)
