"""
routegraph.visualize
====================
Plain-text renderings of an execution trace.

Every function accepts either `TraceEntry` objects or bare node names, so the
summarizer can draw the path before its own entry exists.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from routegraph.state import TraceEntry

TraceLike = Iterable[Union[TraceEntry, str]]

_RULE = "═" * 63
_THIN = "─" * 63

# node → (icon, label, description)
_NODE_INFO: Dict[str, Tuple[str, str, str]] = {
    "planner": ("📋", "PLANNER", "Analyzed query and created execution plan"),
    "router": ("🔀", "ROUTER", "Decided next node based on workflow state"),
    "math_executor": ("🔢", "MATH EXECUTOR", "Performed mathematical calculations"),
    "temperature_converter": ("🌡️", "TEMPERATURE CONVERTER", "Converted temperature units"),
    "cve_query": ("🔐", "CVE QUERY", "Queried CVE vulnerability database"),
    "ait_query": ("🧩", "AIT QUERY", "Queried AIT tech stack database"),
    "ait_render": ("🖨️", "AIT RENDER", "Rendered AIT tech stacks as Markdown"),
    "summarizer": ("📝", "SUMMARIZER", "Generated final response"),
}


def _info(node: str) -> Tuple[str, str, Optional[str]]:
    return _NODE_INFO.get(node, ("⚙️", node.upper(), None))


def _entries(trace: TraceLike | None) -> List[Tuple[str, Dict[str, Any]]]:
    out = []
    for item in trace or ():
        if isinstance(item, TraceEntry):
            out.append((item.node, item.state))
        else:
            out.append((str(item), {}))
    return out


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


# ─────────────────────────── public ────────────────────────────────────
def generate_flow_diagram(trace: TraceLike | None) -> str:
    nodes = [node for node, _ in _entries(trace)]
    if not nodes:
        return "No execution trace available"

    lines = ["", _RULE, "                 🔄 WORKFLOW EXECUTION PATH", _RULE, "", "START", "  ↓"]
    for i, node in enumerate(nodes):
        icon, label, description = _info(node)
        lines.append(f"  {icon} {label}")
        if description:
            lines.append(f"     └─ {description}")
        if i < len(nodes) - 1:
            lines.append("  ↓")
    lines += [
        "  ↓",
        "END ✓",
        "",
        _THIN,
        f"Total Nodes Executed: {len(nodes)}",
        f"Workflow Path: {' → '.join(nodes)}",
        _THIN,
    ]
    return "\n".join(lines) + "\n"


def _relevant_state(node: str, state: Dict[str, Any]) -> List[str]:
    def has(key: str) -> bool:
        return state.get(key) is not None

    lines: List[str] = []
    if node == "planner" and has("plan"):
        lines += ["Plan Created:", truncate(str(state["plan"]), 200)]
    elif node == "router":
        if has("next_node_hint"):
            lines.append(f"Routing Decision: → {state['next_node_hint']}")
        if has("routing_reasoning"):
            lines.append(f"Reasoning: {truncate(str(state['routing_reasoning']), 150)}")
    elif node == "math_executor":
        if has("sum"):
            lines.append(f"Sum: {state['sum']}")
        if has("average"):
            lines.append(f"Average: {state['average']}")
    elif node == "temperature_converter" and has("converted_value"):
        lines.append(f"Temperature: {state['converted_value']}°F")
    elif node == "cve_query" and has("cve_query_results"):
        lines.append(f"CVE Results: {truncate(str(state['cve_query_results']), 150)}")
    elif node in ("ait_query", "ait_render") and has("ait_query_results"):
        lines.append(f"AIT Results: {truncate(str(state['ait_query_results']), 150)}")
    elif node == "summarizer" and has("final_answer"):
        lines.append(f"Final Answer: {truncate(str(state['final_answer']), 200)}")
    return lines


def generate_detailed_trace(trace: TraceLike | None) -> str:
    entries = _entries(trace)
    if not entries:
        return "No execution trace available"

    lines = ["", _RULE, "              📊 DETAILED EXECUTION TRACE", _RULE, ""]
    for step, (node, state) in enumerate(entries, start=1):
        icon, label, _ = _info(node)
        lines.append(f"STEP {step}: {icon} {label}")
        lines.append("─" * 61)
        lines += _relevant_state(node, state)
        lines.append("")
    return "\n".join(lines) + "\n"


def generate_execution_summary(trace: TraceLike | None, execution_time_ms: int) -> str:
    nodes = [node for node, _ in _entries(trace)]
    if not nodes:
        return ""

    width = 61

    def row(text: str) -> str:
        return f"│ {text:<{width - 1}}│"

    lines = [
        "┌" + "─" * width + "┐",
        f"│{'EXECUTION SUMMARY':^{width}}│",
        "├" + "─" * width + "┤",
        row(f"Nodes Executed: {len(nodes)}"),
        row(f"Execution Time: {execution_time_ms} ms"),
        row(f"Path: {nodes[0]}"),
    ]
    for node in nodes[1:4]:
        lines.append(row(f"      → {node}"))
    if len(nodes) > 4:
        lines.append(row(f"      → ... ({len(nodes) - 4} more)"))
    lines.append("└" + "─" * width + "┘")
    return "\n\n" + "\n".join(lines) + "\n"
