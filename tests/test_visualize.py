from routegraph.state import apply_update, initial_state
from routegraph.visualize import (
    generate_detailed_trace,
    generate_execution_summary,
    generate_flow_diagram,
)


def _trace():
    s = initial_state("q")
    s = apply_update(s, {"plan": "p" * 300}, "planner")
    s = apply_update(s, {"next_node_hint": "math_executor", "routing_reasoning": "sum null"}, "router")
    s = apply_update(s, {"sum": 6.0, "average": 2.0}, "math_executor")
    s = apply_update(s, {"next_node_hint": "summarizer"}, "router")
    s = apply_update(s, {"final_answer": "done", "complete": True}, "summarizer")
    return s.execution_trace


def test_flow_diagram_lists_path():
    out = generate_flow_diagram(_trace())
    assert "Total Nodes Executed: 5" in out
    assert "Workflow Path: planner → router → math_executor → router → summarizer" in out
    assert "🔢 MATH EXECUTOR" in out
    assert "END ✓" in out


def test_flow_diagram_accepts_names_and_unknown_nodes():
    out = generate_flow_diagram(["planner", "custom_step"])
    assert "⚙️ CUSTOM_STEP" in out
    assert generate_flow_diagram([]) == "No execution trace available"


def test_detailed_trace_shows_relevant_state():
    out = generate_detailed_trace(_trace())
    assert "STEP 3: 🔢 MATH EXECUTOR" in out
    assert "Sum: 6.0" in out and "Average: 2.0" in out
    assert "Routing Decision: → math_executor" in out
    assert "p" * 200 + "..." in out
    assert "Final Answer: done" in out


def test_execution_summary_truncates_long_paths():
    out = generate_execution_summary(_trace(), 1234)
    assert "Nodes Executed: 5" in out
    assert "Execution Time: 1234 ms" in out
    assert "→ ... (1 more)" in out
    assert generate_execution_summary([], 5) == ""
