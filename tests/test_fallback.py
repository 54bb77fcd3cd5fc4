import pytest

from conftest import FakeLLM
from routegraph.errors import LanguageModelError
from routegraph.fallback import FallbackKind, FallbackLayer, FallbackPolicy
from routegraph.parsing import AIT_PARSER, MATH_PARSER, ROUTE_PARSER
from routegraph.prompts import MATH_FORMAT, ROUTE_FORMAT
from routegraph.schema import MathDecision, RouteDecision
from routegraph.state import initial_state

ROUTES = ("math_executor", "temperature_converter", "summarizer")
DEFAULT = {"nextNode": "summarizer", "reasoning": "defaulted"}


def _route_policy(llm):
    return FallbackPolicy(llm, ROUTE_PARSER, FallbackKind.CHOICE, DEFAULT,
                          allowed=ROUTES, model=RouteDecision)


def test_clarification_layer_quotes_original():
    llm = FakeLLM(['{"nextNode": "math_executor", "reasoning": "sum missing"}'])
    out = _route_policy(llm).resolve("I'd go to maths", initial_state("q"), ROUTE_FORMAT)
    assert out.layer is FallbackLayer.CLARIFIED
    assert out.decision["nextNode"] == "math_executor"
    assert "I'd go to maths" in llm.prompts[0]
    assert '"nextNode"' in llm.prompts[0]
    assert len(out.failures) == 1


def test_single_word_extraction_is_case_insensitive():
    llm = FakeLLM(["still not json", "`Temperature_Converter`."])
    out = _route_policy(llm).resolve("garbage", initial_state("q"), ROUTE_FORMAT)
    assert out.layer is FallbackLayer.EXTRACTED
    assert out.decision["nextNode"] == "temperature_converter"
    assert "still not json" in llm.prompts[1]
    assert "math_executor, temperature_converter, summarizer" in llm.prompts[1]


def test_default_after_three_failures():
    llm = FakeLLM(["nope", "pizza"])
    out = _route_policy(llm).resolve("garbage", initial_state("q"), ROUTE_FORMAT)
    assert out.layer is FallbackLayer.DEFAULTED
    assert out.decision == DEFAULT
    assert len(out.failures) == 3
    assert "pizza" in out.describe_failures()
    assert len(llm.prompts) == 2


def test_numeric_extraction_needs_every_field():
    policy = FallbackPolicy(FakeLLM(["??", "60, 20"]), MATH_PARSER, FallbackKind.NUMERIC,
                            None, model=MathDecision)
    out = policy.resolve("sum is sixty", initial_state("q", [10, 20, 30]), MATH_FORMAT)
    assert out.layer is FallbackLayer.EXTRACTED
    assert out.decision == {"sum": 60.0, "average": 20.0}

    policy = FallbackPolicy(FakeLLM(["??", "60"]), MATH_PARSER, FallbackKind.NUMERIC,
                            None, model=MathDecision)
    out = policy.resolve("sum is sixty", initial_state("q"), MATH_FORMAT)
    assert out.layer is FallbackLayer.DEFAULTED and out.decision is None


def test_choice_extraction_keeps_fields_from_first_reply():
    llm = FakeLLM(["no", "renderAITList"])
    policy = FallbackPolicy(llm, AIT_PARSER, FallbackKind.CHOICE, None,
                            allowed=("getAITTechStack", "findAITsByComponent", "renderAITList"))
    out = policy.resolve('I would call it with "parameter": "MongoDB"', initial_state("q"), "{}")
    assert out.decision["method"] == "renderAITList"
    assert out.decision["parameter"] == "MongoDB"


def test_collaborator_errors_propagate():
    llm = FakeLLM([LanguageModelError("down")])
    with pytest.raises(LanguageModelError):
        _route_policy(llm).resolve("garbage", initial_state("q"), ROUTE_FORMAT)


def test_choice_needs_allow_list():
    with pytest.raises(ValueError):
        FallbackPolicy(FakeLLM(), ROUTE_PARSER, FallbackKind.CHOICE, DEFAULT)
