import asyncio
import copy
import json
import time

import httpx
import pytest

from farmtrace.core.config import Settings
from farmtrace.core.errors import ExternalServiceError
from farmtrace.services.augmentation_service import (
    CHARS_PER_TOKEN_CAP,
    HeuristicSummarizer,
    InsightSummarizer,
    RemoteSummarizer,
    entity_prompt,
    extract_json_object,
    get_summarizer,
    parse_narrative,
)
from farmtrace.services.insight_service import compute_entity_metrics, generate_entity_insights
from farmtrace.services.logistics_extractor import extract
from farmtrace.services.text_generation import TextGenerationClient
from farmtrace.tests.factories import at, shipment

MODEL_ANSWER = {
    "insights": "Model insight.",
    "trend_analysis": "Model trend.",
    "region_prediction": {"top_region_next_quarter": "Hub B", "reason": "Model reason."},
    "strategic_recommendation": "Model recommendation.",
}


def heuristic():
    ex = extract(
        [shipment(1, "Farm A", at(0)), shipment(2, "Hub B", at(2))],
        entity_kind="batch",
        entity_id="BATCH-T",
        product_type="Mango",
        origin="Farm A",
    )
    metrics = compute_entity_metrics(ex)
    return generate_entity_insights(ex, metrics), entity_prompt(ex, metrics)


def remote(handler):
    client = TextGenerationClient(
        url="https://inference.test/models/m",
        api_key="test-key",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )
    return RemoteSummarizer(client)


def summarize(summarizer):
    result, prompt = heuristic()
    expected = copy.deepcopy(result)
    return asyncio.run(summarizer.summarize(result, prompt)), expected


def test_fallback_on_error_status():
    out, expected = summarize(remote(lambda request: httpx.Response(500, text="overloaded")))
    assert out == expected


def test_fallback_when_insights_missing():
    partial = {k: v for k, v in MODEL_ANSWER.items() if k != "insights"}
    body = [{"generated_text": json.dumps(partial)}]
    out, expected = summarize(remote(lambda request: httpx.Response(200, json=body)))
    assert out == expected


def test_fallback_on_unparseable_text():
    body = [{"generated_text": "Sorry, I cannot help with that."}]
    out, expected = summarize(remote(lambda request: httpx.Response(200, json=body)))
    assert out == expected


def test_fallback_on_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    out, expected = summarize(remote(handler))
    assert out == expected


def test_model_answer_replaces_only_narrative():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        text = "Here is the report:\n" + json.dumps(MODEL_ANSWER) + "\nThanks."
        return httpx.Response(200, json=[{"generated_text": text}])

    out, expected = summarize(remote(handler))

    assert seen["auth"] == "Bearer test-key"
    assert seen["body"]["parameters"]["max_new_tokens"] == 500
    assert "Farm A" in seen["body"]["inputs"]

    assert out["source"] == "ai"
    assert out["insights"] == "Model insight."
    assert out["region_prediction"] == MODEL_ANSWER["region_prediction"]
    assert out["metrics"] == expected["metrics"]
    assert out["entityId"] == expected["entityId"]


def test_heuristic_summarizer_is_identity():
    result, prompt = heuristic()
    assert asyncio.run(HeuristicSummarizer().summarize(result, prompt)) is result


def test_summarizer_selection():
    assert isinstance(get_summarizer(Settings(use_ai_service=False, huggingface_api_key="k")), HeuristicSummarizer)
    assert isinstance(get_summarizer(Settings(use_ai_service=True, huggingface_api_key="")), HeuristicSummarizer)
    assert isinstance(get_summarizer(Settings(use_ai_service=True, huggingface_api_key="k")), RemoteSummarizer)


def test_extract_json_object_skips_braces_in_strings():
    text = 'prefix {"a": "x } y", "b": {"c": 1}} trailing {"d": 2}'
    assert extract_json_object(text) == {"a": "x } y", "b": {"c": 1}}
    assert extract_json_object("no json here") is None
    assert extract_json_object("{broken {\"ok\": true}") == {"ok": True}


def test_parse_narrative_accepts_dict_body():
    assert parse_narrative(MODEL_ANSWER) == MODEL_ANSWER
    assert parse_narrative({"generated_text": json.dumps(MODEL_ANSWER)}) == MODEL_ANSWER


def test_parse_narrative_rejects_incomplete_prediction():
    bad = dict(MODEL_ANSWER, region_prediction={"top_region_next_quarter": "Hub B"})
    assert parse_narrative(bad) is None


def test_client_raises_on_error_status():
    client = TextGenerationClient(
        url="https://inference.test/models/m",
        api_key="k",
        transport=httpx.MockTransport(lambda request: httpx.Response(503, text="loading")),
    )
    with pytest.raises(ExternalServiceError) as exc:
        asyncio.run(client.generate("hi", {}))
    assert exc.value.status_code == 503
    assert exc.value.to_detail()["upstreamStatus"] == 503


def test_deeply_nested_generated_text_falls_back():
    text = '{"insights": ' + "[" * 100000 + "]" * 100000 + "}"
    body = [{"generated_text": text}]
    out, expected = summarize(remote(lambda request: httpx.Response(200, json=body)))
    assert out == expected


def test_deeply_nested_response_body_falls_back():
    nested = "[" * 100000 + "]" * 100000
    out, expected = summarize(
        remote(
            lambda request: httpx.Response(
                200, content=nested.encode(), headers={"Content-Type": "application/json"}
            )
        )
    )
    assert out == expected


def test_client_rejects_deeply_nested_body():
    nested = "[" * 100000 + "]" * 100000
    client = TextGenerationClient(
        url="https://inference.test/models/m",
        api_key="k",
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, content=nested.encode(), headers={"Content-Type": "application/json"})
        ),
    )
    with pytest.raises(ExternalServiceError):
        asyncio.run(client.generate("hi", {}))


def test_extract_json_object_handles_nesting_and_open_braces():
    assert extract_json_object('{"a": ' + "[" * 100000 + "]" * 100000 + "}") is None

    started = time.perf_counter()
    assert extract_json_object("{" * 20000) is None
    assert time.perf_counter() - started < 1.0


def test_extract_json_object_only_scans_the_cap():
    text = "x" * 50 + json.dumps(MODEL_ANSWER)
    assert extract_json_object(text, max_chars=40) is None
    assert extract_json_object(text, max_chars=len(text)) == MODEL_ANSWER


def test_overlong_model_text_is_not_scanned():
    padding = "x" * (500 * CHARS_PER_TOKEN_CAP)
    body = [{"generated_text": padding + json.dumps(MODEL_ANSWER)}]
    out, expected = summarize(remote(lambda request: httpx.Response(200, json=body)))
    assert out == expected


def test_summarizer_base_is_abstract():
    with pytest.raises(TypeError):
        InsightSummarizer()
    assert HeuristicSummarizer.name == "heuristic"
    assert RemoteSummarizer.name == "remote"
