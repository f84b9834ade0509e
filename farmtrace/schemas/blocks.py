from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from farmtrace.core.types import ActorRole


class BlockCreate(BaseModel):
    """
    Content of a new provenance block.

    seq / prevHash / hash are computed server-side; if a client sends them
    they are dropped here.
    """
    model_config = ConfigDict(extra="ignore")

    timestamp: Optional[datetime] = Field(default=None, description="When the event happened; defaults to now")
    actor: str = Field(..., min_length=1, max_length=256)
    actorRole: Optional[ActorRole] = Field(default=None, description="Products only")
    location: str = Field(..., min_length=1, max_length=256)
    data: Dict[str, Any] = Field(default_factory=dict, description="Opaque event document")


class BlockOut(BaseModel):
    blockId: int
    timestamp: str
    actor: str
    actorRole: Optional[str] = None
    location: str
    data: Dict[str, Any] = Field(default_factory=dict)
    kind: str
    prevHash: str
    hash: str


class ChainVerificationOut(BaseModel):
    entityKind: str
    entityId: str
    valid: bool
    length: int
    brokenIndex: Optional[int] = None
    reason: Optional[str] = None
