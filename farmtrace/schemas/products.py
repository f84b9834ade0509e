from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from farmtrace.schemas.blocks import BlockCreate, BlockOut


class ProductCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(default=None, max_length=64, description="PROD-… ; generated when omitted")
    batchId: str = Field(..., min_length=1, max_length=64)
    weight: float = Field(..., gt=0)
    size: str = Field(..., min_length=1, max_length=32)
    quality: Optional[str] = Field(default=None, max_length=32)
    additionalNotes: Optional[str] = None
    blocks: List[BlockCreate] = Field(default_factory=list)


class ProductOut(BaseModel):
    id: str
    batchId: str
    weight: float
    size: str
    quality: Optional[str] = None
    additionalNotes: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    blocks: List[BlockOut] = Field(default_factory=list)


class LocationCount(BaseModel):
    location: Optional[str] = None
    count: int
