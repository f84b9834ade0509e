from farmtrace.services.insight_service import (
    NARRATIVE_KEYS,
    compute_entity_metrics,
    efficiency_label,
    fastest_region,
    generate_entity_insights,
    journey_efficiency,
    js_round,
    most_active_region,
    predict_region,
)
from farmtrace.services.logistics_extractor import extract
from farmtrace.tests.factories import at, block, shipment


def sample_extract():
    blocks = [
        block(1, "Farm A", at(0), {"action": "harvest"}),
        shipment(2, "Farm A", at(1)),
        shipment(3, "Hub B", at(3)),
        shipment(4, "Hub B", at(4)),
    ]
    return extract(blocks, entity_kind="batch", entity_id="BATCH-T", product_type="Mango", origin="Farm A")


def test_prediction_prefers_clearly_faster_region():
    assert predict_region("F", "M", {"F": 10, "M": 30}) == "F"


def test_prediction_falls_back_to_most_active():
    assert predict_region("F", "M", {"F": 20, "M": 30}) == "M"


def test_prediction_agreement():
    assert predict_region("A", "A", {"A": 100}) == "A"


def test_ties_go_to_first_region():
    assert fastest_region({"X": 0.0, "Y": 0.0}) == "X"
    assert most_active_region(["X", "Y"]) == "X"
    assert fastest_region({}) is None


def test_efficiency_guards_zero_regions():
    assert journey_efficiency(5.0, 0) == 0.0
    assert journey_efficiency(6.0, 3) == 2.0
    assert efficiency_label(1.99) == "efficient"
    assert efficiency_label(2.0) == "inefficient"


def test_half_up_rounding():
    assert js_round(2.5) == 3
    assert js_round(0.49) == 0


def test_metrics_for_sample_journey():
    m = compute_entity_metrics(sample_extract())
    assert m.fastest_region == "Farm A"
    assert m.most_active_region == "Farm A"
    assert m.slowest_region == "Hub B"
    assert m.predicted_region == "Farm A"
    assert m.current_location == "Hub B"
    assert m.journey_days == 3.0
    assert m.region_count == 2
    assert m.efficiency == 1.5
    assert m.efficiency_label == "efficient"


def test_heuristic_insights_are_built_from_metrics():
    out = generate_entity_insights(sample_extract())

    for key in NARRATIVE_KEYS:
        assert key in out
    assert out["source"] == "heuristic"
    assert out["insights"].startswith("This Mango batch traveled through 2 regions over approximately 3 days")
    assert out["region_prediction"]["top_region_next_quarter"] == "Farm A"
    assert "1.5 days per region" in out["trend_analysis"]
    assert out["strategic_recommendation"].startswith("Shift primary distribution through Farm A")
    assert out["metrics"]["efficiencyLabel"] == "efficient"


def test_empty_chain_predicts_origin():
    ex = extract([], entity_kind="product", entity_id="PROD-T", product_type="Mango", origin="Farm Z")
    out = generate_entity_insights(ex)
    assert out["region_prediction"]["top_region_next_quarter"] == "Farm Z"
    assert out["metrics"]["regionCount"] == 0
    assert out["strategic_recommendation"].startswith("Maintain")
