from datetime import datetime, timedelta, timezone

from farmtrace.models.chain_block import ChainBlock

T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def at(days: float = 0, hours: float = 0) -> datetime:
    return T0 + timedelta(days=days, hours=hours)


def block(seq, location, ts, payload=None, actor="staff"):
    """Transient ChainBlock for extractor/aggregator tests; never persisted."""
    return ChainBlock(
        entity_kind="batch",
        entity_id="BATCH-T",
        seq=seq,
        timestamp=ts,
        actor=actor,
        location=location,
        payload_json=payload or {},
        prev_hash="",
        block_hash="",
    )


def shipment(seq, location, ts):
    return block(seq, location, ts, {"type": "shipment"})
