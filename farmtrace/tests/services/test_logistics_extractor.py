from farmtrace.services.logistics_extractor import (
    SECONDS_PER_DAY,
    extract,
    ordered_unique,
    region_dwell_time,
    shipment_events,
)
from farmtrace.tests.factories import at, block, shipment


def run(blocks, origin="Farm A"):
    return extract(
        blocks,
        entity_kind="batch",
        entity_id="BATCH-T",
        product_type="Mango",
        origin=origin,
    )


def test_region_path_keeps_first_occurrence():
    assert ordered_unique(["A", "B", "A", "C"]) == ["A", "B", "C"]

    ex = run([block(1, "A", at(0)), block(2, "B", at(1)), block(3, "A", at(2)), block(4, "C", at(3))])
    assert ex.region_path == ["A", "B", "C"]
    assert ex.current_location == "C"


def test_shipments_by_type_or_transport_action():
    blocks = [
        block(1, "A", at(0), {"action": "harvest"}),
        block(2, "A", at(1), {"type": "shipment"}),
        block(3, "B", at(2), {"action": "transport"}),
        block(4, "B", at(3), {"status": "Delivered"}),
    ]
    events = shipment_events(blocks)
    assert [e.seq for e in events] == [2, 3]


def test_dwell_only_adds_adjacent_same_location():
    events = shipment_events([shipment(1, "A", at(0)), shipment(2, "B", at(1)), shipment(3, "A", at(2))])
    dwell = region_dwell_time(["A", "B"], events)
    assert dwell == {"A": 0.0, "B": 0.0}


def test_dwell_accumulates_consecutive_stays():
    ex = run([
        shipment(1, "A", at(0)),
        shipment(2, "A", at(1)),
        shipment(3, "A", at(1, hours=12)),
        shipment(4, "B", at(3)),
    ])
    assert ex.region_dwell_time == {"A": 1.5 * SECONDS_PER_DAY, "B": 0.0}


def test_non_shipment_blocks_count_for_path_not_dwell():
    ex = run([block(1, "A", at(0), {"action": "harvest"}), shipment(2, "A", at(2))])
    assert ex.region_path == ["A"]
    assert ex.region_dwell_time == {"A": 0.0}
    assert len(ex.timestamp_trace) == 2
    assert ex.timestamp_trace[0].action == "harvest"
    assert ex.timestamp_trace[1].action == "unknown"


def test_empty_chain_falls_back_to_origin():
    ex = run([], origin="Farm Z")
    assert ex.current_location == "Farm Z"
    assert ex.region_path == []
    assert ex.region_dwell_time == {}
    assert ex.journey_days == 0.0


def test_journey_days_spans_first_to_last_shipment():
    ex = run([shipment(1, "A", at(0)), block(2, "B", at(1)), shipment(3, "C", at(4))])
    assert ex.journey_days == 4.0


def test_to_dict_shape():
    ex = run([shipment(1, "A", at(0)), shipment(2, "B", at(1))])
    out = ex.to_dict()
    assert out["regions"] == {"origin": "Farm A", "currentLocation": "B", "path": ["A", "B"]}
    assert out["shipmentLogs"][0]["blockId"] == 1
    assert out["shipmentLogs"][0]["timestamp"].startswith("2024-03-01T08:00:00")
    assert out["regionDwellTime"] == {"A": 0.0, "B": 0.0}
