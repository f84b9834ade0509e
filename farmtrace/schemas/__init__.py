from farmtrace.schemas.blocks import BlockCreate, BlockOut, ChainVerificationOut
from farmtrace.schemas.batches import BatchCreate, BatchOut
from farmtrace.schemas.products import ProductCreate, ProductOut, LocationCount
