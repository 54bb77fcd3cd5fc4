import json

import pytest

from conftest import FakeLLM, InMemoryAITRepo, InMemoryCVERepo
from routegraph.errors import LanguageModelError
from routegraph.nodes import (
    AITQueryNode,
    AITRenderNode,
    CVEQueryNode,
    MathExecutorNode,
    PlannerNode,
    RouterNode,
    SummarizerNode,
    TemperatureConverterNode,
)
from routegraph.state import apply_update, initial_state
from routegraph.tools import AITTools, CVETools


def _state(**data):
    return apply_update(initial_state("Average of 10, 20, 30 in Fahrenheit", [10, 20, 30]),
                        data, "seed")


# ─── planner / summarizer ───────────────────────────────────────────────
def test_planner_writes_plan_and_step():
    assert PlannerNode(FakeLLM(["1. add\n2. convert "])).apply(_state()) == \
        {"plan": "1. add\n2. convert", "current_step": "planner"}
    assert PlannerNode(FakeLLM(["   "])).apply(_state())["plan"] == "Unable to generate plan"


def test_summarizer_appends_flow_diagram():
    out = SummarizerNode(FakeLLM(["Average is 20"])).apply(_state(average=20.0))
    assert out["complete"] is True
    assert out["final_answer"].startswith("Average is 20")
    assert "seed → summarizer" in out["final_answer"]


def test_summarizer_passes_rendered_markdown_through():
    llm = FakeLLM()
    out = SummarizerNode(llm).apply(_state(ait_query_results="# AITs using Java\n..."))
    assert out["final_answer"] == "# AITs using Java\n..."
    assert llm.prompts == []


# ─── router ─────────────────────────────────────────────────────────────
def test_router_decided():
    out = RouterNode(FakeLLM(['{"nextNode": "math_executor", "reasoning": "sum is null"}'])).apply(_state())
    assert out["next_node_hint"] == "math_executor"
    assert out["routing_reasoning"] == "sum is null"
    assert out["routing_source"] == "decided"
    assert "error" not in out


def test_router_prompt_shows_nulls_and_values():
    llm = FakeLLM(['{"nextNode": "summarizer"}'])
    RouterNode(llm).apply(_state(sum=60.0, average=20.0))
    assert "sum: 60.0" in llm.prompts[0]
    assert "fahrenheit: null" in llm.prompts[0]
    assert "numbers: [10.0, 20.0, 30.0]" in llm.prompts[0]


def test_router_recovers_via_extraction():
    llm = FakeLLM(["hmm", "not json either", "temperature_converter"])
    out = RouterNode(llm).apply(_state())
    assert out["next_node_hint"] == "temperature_converter"
    assert out["routing_source"] == "extracted"
    assert "fallback" in out["routing_reasoning"]


def test_router_defaults_to_summarizer():
    out = RouterNode(FakeLLM(["hmm", "still no", "banana"])).apply(_state())
    assert out["next_node_hint"] == "summarizer"
    assert out["routing_source"] == "defaulted"
    assert out["error"]


def test_router_flags_unknown_node():
    out = RouterNode(FakeLLM(['{"nextNode": "weather_node"}'])).apply(_state())
    assert out["next_node_hint"] == "weather_node"
    assert out["routing_source"] == "defaulted"
    assert "weather_node" in out["error"]


# ─── math / temperature ─────────────────────────────────────────────────
def test_math_writes_only_non_null_values():
    out = MathExecutorNode(FakeLLM(['{"sum": 60, "average": null}'])).apply(_state())
    assert out == {"current_step": "math_executor", "sum": 60.0}


def test_math_empty_numbers_gives_error_not_values():
    out = MathExecutorNode(FakeLLM(['{"sum": null, "average": null}'])).apply(_state())
    assert "sum" not in out and "average" not in out
    assert out["error"]


def test_math_default_after_fallbacks():
    out = MathExecutorNode(FakeLLM(["?", "?", "sixty"])).apply(_state())
    assert set(out) == {"current_step", "error"}


def test_temperature_conversion_and_numeric_fallback():
    out = TemperatureConverterNode(FakeLLM(['{"fahrenheit": 68}'])).apply(_state(average=20.0))
    assert out["converted_value"] == 68.0

    out = TemperatureConverterNode(FakeLLM(["?", "?", "68"])).apply(_state(average=20.0))
    assert out["converted_value"] == 68.0


def test_model_failure_propagates_from_node():
    with pytest.raises(LanguageModelError):
        MathExecutorNode(FakeLLM([LanguageModelError("timeout")])).apply(_state())


def test_transport_error_becomes_model_error():
    with pytest.raises(LanguageModelError, match="ConnectionError: socket reset"):
        PlannerNode(FakeLLM([ConnectionError("socket reset")])).apply(_state())
    # fallback calls are covered too
    with pytest.raises(LanguageModelError, match="TimeoutError"):
        RouterNode(FakeLLM(["?", TimeoutError("read timed out")])).apply(_state())


# ─── lookups ────────────────────────────────────────────────────────────
@pytest.fixture
def ait_tools():
    return AITTools(InMemoryAITRepo())


def test_ait_tech_stack(ait_tools):
    llm = FakeLLM(['{"method": "getAITTechStack", "parameter": "74563", "reasoning": "id"}'])
    out = AITQueryNode(llm, ait_tools).apply(_state())
    assert json.loads(out["ait_query_results"])["ait"] == "74563"
    assert "ait_ids" not in out


def test_ait_render_list_then_render(ait_tools):
    llm = FakeLLM(['{"method": "renderAITList", "parameter": "java"}'])
    out = AITQueryNode(llm, ait_tools).apply(_state())
    assert out["ait_ids"] == ["74563", "74565"]
    assert out["ait_render_title"] == "AITs using java"

    rendered = AITRenderNode(ait_tools).apply(_state(**out))
    assert rendered["ait_query_results"].startswith("# AITs using java")
    assert "## AIT 74565" in rendered["ait_query_results"]


def test_ait_render_passes_through_without_ids(ait_tools):
    assert AITRenderNode(ait_tools).apply(_state()) == {"current_step": "ait_render"}


def test_ait_unusable_decision_is_error(ait_tools):
    out = AITQueryNode(FakeLLM(["?", "?", "?"]), ait_tools).apply(_state())
    assert set(out) == {"current_step", "error"}

    out = AITQueryNode(FakeLLM(['{"method": "dropTables", "parameter": "x"}']), ait_tools).apply(_state())
    assert "dropTables" in out["error"]


def test_null_method_goes_through_fallback(ait_tools):
    llm = FakeLLM([
        '{"method": null, "parameter": "74563"}',
        '{"method": "getAITTechStack", "parameter": "74563", "reasoning": "id"}',
    ])
    out = AITQueryNode(llm, ait_tools).apply(_state())
    assert "error" not in out
    assert json.loads(out["ait_query_results"])["ait"] == "74563"
    assert "not valid JSON" in llm.prompts[1]

    llm = FakeLLM([
        '{"method": null, "parameters": {}}',
        '{"method": "getCVEStatistics", "parameters": {}}',
    ])
    out = CVEQueryNode(llm, CVETools(InMemoryCVERepo())).apply(_state())
    assert out["cve_query_results"].startswith("Total CVEs: 4")
    assert len(llm.prompts) == 2


def test_ait_field_and_criteria_searches(ait_tools):
    llm = FakeLLM([
        '{"method": "findAITsByField", "parameter": "databases=Oracle"}',
        '{"method": "findAITsByField", "parameter": "Languages: python"}',
        '{"method": "findAITsByMultipleCriteria", "parameter": {"languages": "python", "databases": "mongo"}}',
        '{"method": "findAITsByField", "parameter": "oracle"}',
    ])
    node = AITQueryNode(llm, ait_tools)
    assert node.apply(_state())["ait_query_results"] == "74565"
    assert node.apply(_state())["ait_query_results"] == "74564"
    assert node.apply(_state())["ait_query_results"] == "74563,74564"
    assert "field=value" in node.apply(_state())["error"]


def test_cve_queries():
    tools = CVETools(InMemoryCVERepo())
    llm = FakeLLM([
        '{"method": "queryCVEsByYearAndScore", "parameters": {"year": 2021, "minBaseScore": 7.0}}',
        '{"method": "getCVEStatistics", "parameters": {}}',
        '{"method": "queryCVEsByYear", "parameters": {}}',
    ])
    node = CVEQueryNode(llm, tools)
    assert "CVE-2021-44228" in node.apply(_state())["cve_query_results"]
    assert "Total CVEs: 4" in node.apply(_state())["cve_query_results"]
    missing = node.apply(_state())
    assert "cve_query_results" not in missing and "missing" in missing["error"]
