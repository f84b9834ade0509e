from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from farmtrace.schemas.blocks import BlockCreate, BlockOut


class BatchCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(default=None, max_length=64, description="BATCH-… ; generated when omitted")
    productType: str = Field(..., min_length=1, max_length=128)
    harvestDate: date
    location: str = Field(..., min_length=1, max_length=256)
    responsibleStaff: str = Field(..., min_length=1, max_length=256)
    quantity: int = Field(default=0, ge=0)
    status: Optional[str] = Field(default=None, max_length=128)
    notes: Optional[str] = None
    blocks: List[BlockCreate] = Field(default_factory=list)


class BatchOut(BaseModel):
    id: str
    productType: str
    harvestDate: str
    location: str
    responsibleStaff: str
    quantity: int
    status: Optional[str] = None
    notes: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    blocks: List[BlockOut] = Field(default_factory=list)
