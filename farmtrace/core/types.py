from enum import Enum


class EntityKind(str, Enum):
    batch = "batch"
    product = "product"


class ActorRole(str, Enum):
    producer = "producer"
    processor = "processor"
    carrier = "carrier"
    inspector = "inspector"
    retailer = "retailer"
    other = "other"


class AggregationScope(str, Enum):
    batches = "batches"
    products = "products"
    all = "all"


ID_PREFIXES = {
    EntityKind.batch: "BATCH-",
    EntityKind.product: "PROD-",
}
