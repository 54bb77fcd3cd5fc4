from routegraph.parsing import (
    CVE_PARSER,
    MATH_PARSER,
    ROUTE_PARSER,
    ParseLayer,
    first_balanced_object,
    repair_json,
    strip_fences,
)
from routegraph.schema import CVEDecision, RouteDecision


def test_fenced_json_is_layer_one():
    r = ROUTE_PARSER.parse('```json\n{"nextNode": "math_executor", "reasoning": "r"}\n```')
    assert r.ok and r.layer is ParseLayer.FENCED
    assert r.decision == {"nextNode": "math_executor", "reasoning": "r"}


def test_missing_brace_is_repaired():
    r = ROUTE_PARSER.parse('{"nextNode": "summarizer", "reasoning": "done"')
    assert r.ok and r.layer is ParseLayer.REPAIRED
    assert r.decision["nextNode"] == "summarizer"


def test_unterminated_string_is_repaired():
    r = ROUTE_PARSER.parse('{"nextNode": "summarizer", "reasoning": "all work is do')
    assert r.ok and r.layer is ParseLayer.REPAIRED
    assert r.decision["reasoning"] == "all work is do"


def test_bare_prose_is_extracted_with_defaults():
    r = ROUTE_PARSER.parse("nextNode: math_executor")
    assert r.ok and r.layer is ParseLayer.EXTRACTED
    assert r.decision == {"nextNode": "math_executor", "reasoning": "No reasoning provided"}

    r = ROUTE_PARSER.parse("I choose nextNode: math_executor because sum is null")
    assert r.ok and r.layer is ParseLayer.EXTRACTED
    assert r.decision["nextNode"] == "math_executor"


def test_json_inside_prose_is_balanced():
    raw = 'Sure! Here you go: {"nextNode": "temperature_converter", "reasoning": "use {avg}"} hope it helps'
    r = ROUTE_PARSER.parse(raw)
    assert r.ok and r.layer is ParseLayer.BALANCED
    assert r.decision["reasoning"] == "use {avg}"


def test_numbers_and_null_primary():
    r = MATH_PARSER.parse('{"sum": 60, "average": 20.5}')
    assert r.decision == {"sum": 60, "average": 20.5}

    # layers 1-3 accept a null primary ...
    r = MATH_PARSER.parse('{"sum": null, "average": null}')
    assert r.ok and r.decision["sum"] is None
    # ... extraction does not
    assert not MATH_PARSER.parse("sum: null").ok


def test_extracted_numbers_from_prose():
    r = MATH_PARSER.parse('The "sum": 60 and the "average": 20 I think')
    assert r.ok and r.layer is ParseLayer.EXTRACTED
    assert r.decision == {"sum": 60.0, "average": 20.0}


def test_unusable_output_fails_cleanly():
    for raw in ("", None, "I am not sure what to do", "[1, 2, 3]", '{"other": 1}'):
        r = ROUTE_PARSER.parse(raw)
        assert not r.ok and r.decision is None and r.layer is None


def test_nested_object_is_extracted():
    raw = 'method is getCVEStatistics, "parameters": {"year": 2021, "minBaseScore": 7.0} ok'
    r = CVE_PARSER.parse(raw)
    assert r.ok and r.layer is ParseLayer.EXTRACTED
    assert r.decision["method"] == "getCVEStatistics"
    assert r.decision["parameters"] == {"year": 2021, "minBaseScore": 7.0}


def test_parse_model_rejects_invalid_decision():
    model, result = ROUTE_PARSER.parse_model('{"nextNode": null}', RouteDecision)
    assert model is None and not result.ok

    model, _ = CVE_PARSER.parse_model(
        '{"method": "getCVEById", "parameters": {"cveId": "CVE-2021-44228"}}', CVEDecision)
    assert model.parameters.cve_id == "CVE-2021-44228"


def test_helpers():
    assert strip_fences("`{}`") == "{}"
    assert strip_fences("```\n{}\n```") == "{}"
    assert first_balanced_object('x {"a": "}"} y') == '{"a": "}"}'
    assert first_balanced_object("no braces") is None
    assert repair_json('{"a": [1, 2') == '{"a": [1, 2]}'
    assert repair_json('{"a":') == '{"a": null}'
    assert repair_json('{"a": 1,') == '{"a": 1}'
