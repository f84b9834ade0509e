# farmtrace/api/v1/ledger.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from farmtrace.api.v1.render import verification_out
from farmtrace.db.session import get_db
from farmtrace.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ledger", tags=["ledger"])


@router.get("/verify")
async def verify_ledger(db: Session = Depends(get_db)):
    """
    Audit every batch and product chain in one pass.
    Read-only; a broken chain is reported, never repaired.
    """
    reports = LedgerService().verify_all(db)
    broken = [r for r in reports if not r.valid]
    if broken:
        logger.warning("[ledger] %d of %d chains failed verification", len(broken), len(reports))

    return {
        "valid": not broken,
        "checked": len(reports),
        "broken": len(broken),
        "chains": [verification_out(r) for r in reports],
    }
