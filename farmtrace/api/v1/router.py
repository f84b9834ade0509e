from fastapi import APIRouter

from farmtrace.api.v1.health import router as health_router
from farmtrace.api.v1.batches import router as batches_router
from farmtrace.api.v1.products import router as products_router
from farmtrace.api.v1.logistics import router as logistics_router
from farmtrace.api.v1.ledger import router as ledger_router
from farmtrace.api.v1.recipes import router as recipes_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# PROVENANCE CHAINS
# ------------------------------------------------------------------
v1_router.include_router(batches_router, tags=["batches"])
v1_router.include_router(products_router, tags=["products"])
v1_router.include_router(ledger_router, tags=["ledger"])

# ------------------------------------------------------------------
# ANALYTICS
# ------------------------------------------------------------------
v1_router.include_router(logistics_router, tags=["logistics"])
v1_router.include_router(recipes_router, tags=["recipes"])
