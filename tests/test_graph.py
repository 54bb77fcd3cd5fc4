import pytest

from routegraph.errors import GraphError
from routegraph.graph import END, GraphBuilder, build_ait_graph, build_cve_graph, build_main_graph
from routegraph.nodes.base import Node
from routegraph.state import apply_update, initial_state


class Echo(Node):
    def __init__(self, name):
        self.name = name

    def apply(self, state):
        return {"current_step": self.name}


NAMES = ("planner", "router", "math_executor", "temperature_converter",
         "summarizer", "ait_query", "ait_render", "cve_query")
NODES = {n: Echo(n) for n in NAMES}


def _hinted(hint):
    return apply_update(initial_state("q"), {"next_node_hint": hint}, "router")


def test_router_dispatch_normalises_hint():
    g = build_main_graph(NODES)
    assert g.entry == "planner"
    assert g.next_node("router", _hinted("  Math_Executor ")) == "math_executor"
    assert g.next_node("router", _hinted("temperature_converter")) == "temperature_converter"


@pytest.mark.parametrize("hint", [None, "", "   ", "weather_node", "END", "planner"])
def test_unknown_hints_go_to_summarizer(hint):
    g = build_main_graph(NODES)
    assert g.next_node("router", _hinted(hint)) == "summarizer"


def test_static_edges():
    g = build_main_graph(NODES)
    s = initial_state("q")
    assert g.next_node("planner", s) == "router"
    assert g.next_node("math_executor", s) == "router"
    assert g.next_node("temperature_converter", s) == "router"
    assert g.next_node("summarizer", s) == END

    ait = build_ait_graph(NODES)
    assert [ait.entry, ait.next_node("ait_query", s), ait.next_node("ait_render", s)] == \
        ["ait_query", "ait_render", "summarizer"]
    cve = build_cve_graph(NODES)
    assert cve.entry == "cve_query" and cve.next_node("cve_query", s) == "summarizer"


def test_compile_rejects_bad_definitions():
    with pytest.raises(GraphError, match="entry"):
        GraphBuilder().add_node("a", Echo("a")).add_edge("a", END).compile()

    with pytest.raises(GraphError, match="unknown node"):
        (GraphBuilder().add_node("a", Echo("a")).set_entry_point("a")
         .add_edge("a", "ghost").compile())

    with pytest.raises(GraphError, match="no outgoing edge"):
        GraphBuilder().add_node("a", Echo("a")).set_entry_point("a").compile()

    with pytest.raises(GraphError, match="default"):
        (GraphBuilder().add_node("a", Echo("a")).set_entry_point("a")
         .add_conditional_edges("a", "next_node_hint", {"x": END}, default="ghost").compile())

    with pytest.raises(GraphError, match="already has"):
        GraphBuilder().add_node("a", Echo("a")).add_edge("a", END).add_edge("a", END)

    with pytest.raises(GraphError, match="twice"):
        GraphBuilder().add_node("a", Echo("a")).add_node("a", Echo("a"))
