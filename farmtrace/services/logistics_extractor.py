# farmtrace/services/logistics_extractor.py
"""
Single-entity logistics extraction.

Turns one provenance chain into shipment events, a timestamp trace, the
deduplicated region path and per-region dwell time. The result is the only
input the insight generator and the fleet aggregator look at.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from farmtrace.core.hashing import iso_utc
from farmtrace.core.payloads import is_shipment, payload_action
from farmtrace.models.chain_block import ChainBlock

SECONDS_PER_DAY = 60 * 60 * 24


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class ShipmentEvent:
    seq: int
    actor: str
    location: str
    timestamp: datetime
    payload: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blockId": self.seq,
            "actor": self.actor,
            "location": self.location,
            "timestamp": iso_utc(self.timestamp),
            "details": self.payload,
        }


@dataclass(frozen=True)
class TraceEntry:
    seq: int
    timestamp: datetime
    action: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blockId": self.seq,
            "timestamp": iso_utc(self.timestamp),
            "action": self.action,
        }


@dataclass
class LogisticsExtract:
    entity_kind: str
    entity_id: str
    product_type: str
    origin: str
    current_location: str
    shipment_events: List[ShipmentEvent] = field(default_factory=list)
    timestamp_trace: List[TraceEntry] = field(default_factory=list)
    region_path: List[str] = field(default_factory=list)
    # seconds, keyed in region-path order
    region_dwell_time: Dict[str, float] = field(default_factory=dict)

    @property
    def journey_days(self) -> float:
        """Days between first and last shipment event; 0 below two events."""
        if len(self.shipment_events) < 2:
            return 0.0
        first = self.shipment_events[0].timestamp
        last = self.shipment_events[-1].timestamp
        return (last - first).total_seconds() / SECONDS_PER_DAY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entityKind": self.entity_kind,
            "entityId": self.entity_id,
            "productType": self.product_type,
            "shipmentLogs": [e.to_dict() for e in self.shipment_events],
            "timestamps": [t.to_dict() for t in self.timestamp_trace],
            "regions": {
                "origin": self.origin,
                "currentLocation": self.current_location,
                "path": list(self.region_path),
            },
            "regionDwellTime": dict(self.region_dwell_time),
        }


def ordered_unique(values: Iterable[str]) -> List[str]:
    """Append-if-absent over a seen-set: first occurrence wins."""
    seen = set()
    out: List[str] = []
    for v in values:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


def shipment_events(blocks: Sequence[ChainBlock]) -> List[ShipmentEvent]:
    return [
        ShipmentEvent(
            seq=b.seq,
            actor=b.actor,
            location=b.location,
            timestamp=as_utc(b.timestamp),
            payload=b.payload_json or {},
        )
        for b in blocks
        if is_shipment(b.payload_json)
    ]


def timestamp_trace(blocks: Sequence[ChainBlock]) -> List[TraceEntry]:
    return [
        TraceEntry(
            seq=b.seq,
            timestamp=as_utc(b.timestamp),
            action=str(payload_action(b.payload_json) or "unknown"),
        )
        for b in blocks
    ]


def region_dwell_time(
    region_path: Sequence[str],
    events: Sequence[ShipmentEvent],
) -> Dict[str, float]:
    """
    Every path region starts at 0. Only adjacent shipment events sharing a
    location add their delta; A@t0, B@t1, A@t2 leaves A at 0.
    """
    dwell: Dict[str, float] = {region: 0.0 for region in region_path}
    for prev, cur in zip(events, events[1:]):
        if prev.location == cur.location:
            delta = (cur.timestamp - prev.timestamp).total_seconds()
            dwell[cur.location] = dwell.get(cur.location, 0.0) + delta
    return dwell


def extract(
    blocks: Sequence[ChainBlock],
    *,
    entity_kind: str,
    entity_id: str,
    product_type: str,
    origin: str,
) -> LogisticsExtract:
    """
    blocks must already be in seq order (LedgerService.list_blocks does that).
    """
    events = shipment_events(blocks)
    path = ordered_unique(b.location for b in blocks)
    current: Optional[str] = blocks[-1].location if blocks else None

    return LogisticsExtract(
        entity_kind=entity_kind,
        entity_id=entity_id,
        product_type=product_type,
        origin=origin,
        current_location=current if current is not None else origin,
        shipment_events=events,
        timestamp_trace=timestamp_trace(blocks),
        region_path=path,
        region_dwell_time=region_dwell_time(path, events),
    )
