from farmtrace.models.batch import Batch
from farmtrace.models.product import Product
from farmtrace.models.chain_block import ChainBlock

__all__ = ["Batch", "Product", "ChainBlock"]
