"""
routegraph.graph
================
Graph definition: which node follows which.

`GraphBuilder` keeps the StateGraph-style API (add_node / set_entry_point /
add_edge / add_conditional_edges / compile).  `compile()` validates the
wiring and returns an immutable `Graph` that every run shares read-only.

Conditional edges never trust the model: the hint is normalised, looked up
in an explicit allow-list, and anything unknown goes to the default target.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from routegraph.errors import GraphError
from routegraph.nodes.base import Node
from routegraph.schema import NodeName
from routegraph.state import WorkflowState

log = logging.getLogger(__name__)

END = "__end__"


# ─────────────────────────── 1 · edges ─────────────────────────────────
@dataclass(frozen=True)
class ConditionalEdge:
    source: str
    key: str
    mapping: Mapping[str, str]
    default: str

    def route(self, state: WorkflowState) -> str:
        raw = state.get(self.key)
        hint = str(raw).strip().lower() if raw is not None else ""
        target = self.mapping.get(hint)
        if target is None:
            if hint:
                log.warning("Unroutable hint %r from '%s'; using '%s'", raw, self.source, self.default)
            else:
                log.warning("No '%s' set by '%s'; using '%s'", self.key, self.source, self.default)
            return self.default
        return target


# ─────────────────────────── 2 · compiled graph ────────────────────────
class Graph:
    """Read-only result of `GraphBuilder.compile()`."""

    def __init__(
        self,
        nodes: Mapping[str, Node],
        entry: str,
        edges: Mapping[str, str],
        conditional: Mapping[str, ConditionalEdge],
    ):
        self._nodes = MappingProxyType(dict(nodes))
        self._edges = MappingProxyType(dict(edges))
        self._conditional = MappingProxyType(dict(conditional))
        self.entry = entry

    @property
    def node_names(self):
        return tuple(self._nodes)

    def node(self, name: str) -> Node:
        return self._nodes[name]

    def next_node(self, name: str, state: WorkflowState) -> str:
        if name in self._conditional:
            return self._conditional[name].route(state)
        return self._edges[name]


# ─────────────────────────── 3 · builder ───────────────────────────────
class GraphBuilder:
    def __init__(self) -> None:
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[str, str] = {}
        self._conditional: Dict[str, ConditionalEdge] = {}
        self._entry: Optional[str] = None

    def add_node(self, name: str, node: Node) -> "GraphBuilder":
        name = str(name)
        if name == END:
            raise GraphError(f"'{END}' is reserved")
        if name in self._nodes:
            raise GraphError(f"node '{name}' registered twice")
        self._nodes[name] = node
        return self

    def set_entry_point(self, name: str) -> "GraphBuilder":
        self._entry = str(name)
        return self

    def add_edge(self, src: str, dst: str) -> "GraphBuilder":
        src = str(src)
        if src in self._edges or src in self._conditional:
            raise GraphError(f"node '{src}' already has an outgoing edge")
        self._edges[src] = str(dst)
        return self

    def add_conditional_edges(
        self,
        src: str,
        key: str,
        mapping: Mapping[str, str],
        default: str,
    ) -> "GraphBuilder":
        src = str(src)
        if src in self._edges or src in self._conditional:
            raise GraphError(f"node '{src}' already has an outgoing edge")
        table = {str(hint).strip().lower(): str(dst) for hint, dst in mapping.items()}
        self._conditional[src] = ConditionalEdge(
            source=src, key=key, mapping=MappingProxyType(table), default=str(default),
        )
        return self

    def compile(self) -> Graph:
        if self._entry is None:
            raise GraphError("no entry point set")
        if self._entry not in self._nodes:
            raise GraphError(f"entry point '{self._entry}' is not a registered node")

        valid = set(self._nodes) | {END}
        for name in self._nodes:
            if name not in self._edges and name not in self._conditional:
                raise GraphError(f"node '{name}' has no outgoing edge")
        for src, dst in self._edges.items():
            if src not in self._nodes:
                raise GraphError(f"edge from unknown node '{src}'")
            if dst not in valid:
                raise GraphError(f"edge '{src}' → '{dst}' targets an unknown node")
        for src, edge in self._conditional.items():
            if src not in self._nodes:
                raise GraphError(f"conditional edge from unknown node '{src}'")
            for dst in edge.mapping.values():
                if dst not in valid:
                    raise GraphError(f"conditional edge '{src}' → '{dst}' targets an unknown node")
            if edge.default not in valid:
                raise GraphError(f"conditional default '{edge.default}' of '{src}' is not a node")

        return Graph(self._nodes, self._entry, self._edges, self._conditional)


# ─────────────────────────── 4 · factories ─────────────────────────────
def build_main_graph(nodes: Mapping[str, Node]) -> Graph:
    """planner → router ⇒ {math_executor, temperature_converter, summarizer}."""
    nodes = {str(name): node for name, node in nodes.items()}
    sg = GraphBuilder()
    for name in (NodeName.PLANNER, NodeName.ROUTER, NodeName.MATH_EXECUTOR,
                 NodeName.TEMPERATURE_CONVERTER, NodeName.SUMMARIZER):
        sg.add_node(name, nodes[str(name)])

    sg.set_entry_point(NodeName.PLANNER)
    sg.add_edge(NodeName.PLANNER, NodeName.ROUTER)
    sg.add_conditional_edges(
        NodeName.ROUTER,
        "next_node_hint",
        {
            NodeName.MATH_EXECUTOR: NodeName.MATH_EXECUTOR,
            NodeName.TEMPERATURE_CONVERTER: NodeName.TEMPERATURE_CONVERTER,
            NodeName.SUMMARIZER: NodeName.SUMMARIZER,
        },
        default=NodeName.SUMMARIZER,
    )
    sg.add_edge(NodeName.MATH_EXECUTOR, NodeName.ROUTER)
    sg.add_edge(NodeName.TEMPERATURE_CONVERTER, NodeName.ROUTER)
    sg.add_edge(NodeName.SUMMARIZER, END)
    return sg.compile()


def build_ait_graph(nodes: Mapping[str, Node]) -> Graph:
    nodes = {str(name): node for name, node in nodes.items()}
    sg = GraphBuilder()
    for name in (NodeName.AIT_QUERY, NodeName.AIT_RENDER, NodeName.SUMMARIZER):
        sg.add_node(name, nodes[str(name)])
    sg.set_entry_point(NodeName.AIT_QUERY)
    sg.add_edge(NodeName.AIT_QUERY, NodeName.AIT_RENDER)
    sg.add_edge(NodeName.AIT_RENDER, NodeName.SUMMARIZER)
    sg.add_edge(NodeName.SUMMARIZER, END)
    return sg.compile()


def build_cve_graph(nodes: Mapping[str, Node]) -> Graph:
    nodes = {str(name): node for name, node in nodes.items()}
    sg = GraphBuilder()
    for name in (NodeName.CVE_QUERY, NodeName.SUMMARIZER):
        sg.add_node(name, nodes[str(name)])
    sg.set_entry_point(NodeName.CVE_QUERY)
    sg.add_edge(NodeName.CVE_QUERY, NodeName.SUMMARIZER)
    sg.add_edge(NodeName.SUMMARIZER, END)
    return sg.compile()
