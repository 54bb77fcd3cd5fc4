"""
routegraph.workflow
===================
Public entry points, plus the process-wide cache of collaborators and
compiled graphs.

Everything is built lazily on first use under one RLock.  `reload_graph()`
rebuilds from the current settings; tests swap collaborators in with
`configure(llm=..., ait_repo=..., cve_repo=...)`.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional

from routegraph.config import Settings
from routegraph.errors import CollaboratorError, WorkflowError
from routegraph.executor import StepRecord, WorkflowExecutor
from routegraph.graph import build_ait_graph, build_cve_graph, build_main_graph
from routegraph.llm import LanguageModel, OpenAIChatModel
from routegraph.nodes import (
    AITQueryNode,
    AITRenderNode,
    CVEQueryNode,
    MathExecutorNode,
    Node,
    PlannerNode,
    RouterNode,
    SummarizerNode,
    TemperatureConverterNode,
)
from routegraph.schema import EventType, NodeName, RunResult, StreamEvent
from routegraph.state import initial_state
from routegraph.tools import AITTools, CVETools
from routegraph.tools.ait_tools import AITLookup
from routegraph.tools.cve_tools import CVELookup
from routegraph.visualize import generate_detailed_trace, generate_execution_summary

log = logging.getLogger(__name__)

WORKFLOW_KINDS = ("calculation", "ait", "cve")


# ─────────────────────────── 1 · runtime cache ─────────────────────────
@dataclass(frozen=True)
class _Runtime:
    settings: Settings
    main: WorkflowExecutor
    ait: WorkflowExecutor
    cve: WorkflowExecutor


_lock = threading.RLock()
_RUNTIME: _Runtime | None = None
_overrides: Dict[str, Any] = {}


def _build_nodes(llm: LanguageModel, ait_tools: AITTools, cve_tools: CVETools) -> Dict[str, Node]:
    nodes: List[Node] = [
        PlannerNode(llm),
        RouterNode(llm),
        MathExecutorNode(llm),
        TemperatureConverterNode(llm),
        SummarizerNode(llm),
        AITQueryNode(llm, ait_tools),
        AITRenderNode(ait_tools),
        CVEQueryNode(llm, cve_tools),
    ]
    return {node.name: node for node in nodes}


def _build_runtime() -> _Runtime:
    from routegraph.tools.supabase_lookup import AITRepository, CVERepository

    settings: Settings = _overrides.get("settings") or Settings.from_env()
    llm: LanguageModel = _overrides.get("llm") or OpenAIChatModel(settings)
    ait_repo: AITLookup = _overrides.get("ait_repo") or AITRepository(table=settings.ait_table)
    cve_repo: CVELookup = _overrides.get("cve_repo") or CVERepository(table=settings.cve_table)

    nodes = _build_nodes(llm, AITTools(ait_repo), CVETools(cve_repo))
    runtime = _Runtime(
        settings=settings,
        main=WorkflowExecutor(build_main_graph(nodes), max_steps=settings.max_steps),
        ait=WorkflowExecutor(build_ait_graph(nodes), max_steps=settings.max_steps),
        cve=WorkflowExecutor(build_cve_graph(nodes), max_steps=settings.max_steps),
    )
    log.info("Workflow graphs compiled (max_steps=%d, run_timeout=%ss)",
             settings.max_steps, settings.run_timeout_s)
    return runtime


def _runtime() -> _Runtime:
    global _RUNTIME
    with _lock:
        if _RUNTIME is None:
            _RUNTIME = _build_runtime()
        return _RUNTIME


def reload_graph() -> None:
    global _RUNTIME
    with _lock:
        _RUNTIME = _build_runtime()


def configure(
    llm: LanguageModel | None = None,
    ait_repo: AITLookup | None = None,
    cve_repo: CVELookup | None = None,
    settings: Settings | None = None,
) -> None:
    """Replace collaborators; the graphs are rebuilt on next use."""
    global _RUNTIME
    with _lock:
        _overrides.clear()
        for key, value in (("llm", llm), ("ait_repo", ait_repo),
                           ("cve_repo", cve_repo), ("settings", settings)):
            if value is not None:
                _overrides[key] = value
        _RUNTIME = None


# ─────────────────────────── 2 · synchronous runs ──────────────────────
def execute_workflow(
    query: str,
    numbers: Iterable[float] = (),
    *,
    cancel: Optional[threading.Event] = None,
) -> RunResult:
    rt = _runtime()
    log.info("Executing workflow for query: %s", query)
    return rt.main.run(query, numbers, cancel=cancel, timeout=rt.settings.run_timeout_s)


def execute_ait_workflow(query: str, *, cancel: Optional[threading.Event] = None) -> RunResult:
    rt = _runtime()
    log.info("Executing AIT workflow for query: %s", query)
    return rt.ait.run(query, cancel=cancel, timeout=rt.settings.run_timeout_s)


def execute_cve_workflow(query: str, *, cancel: Optional[threading.Event] = None) -> RunResult:
    rt = _runtime()
    log.info("Executing CVE workflow for query: %s", query)
    return rt.cve.run(query, cancel=cancel, timeout=rt.settings.run_timeout_s)


# ─────────────────────────── 3 · streaming ─────────────────────────────
_LOOKUPS = (NodeName.AIT_QUERY.value, NodeName.AIT_RENDER.value, NodeName.CVE_QUERY.value)


def _node_events(record: StepRecord) -> List[StreamEvent]:
    """The burst of events describing one finished node."""
    node, state = record.node, record.state
    extra = {"error": state.error} if state.error else {}

    if node == NodeName.PLANNER.value:
        return [
            StreamEvent(node_name=node, type=EventType.PLANNING, message="Analyzing query"),
            StreamEvent(node_name=node, type=EventType.PLAN_COMPLETE, message="Plan created",
                        data={"plan": state.plan}),
        ]
    if node == NodeName.ROUTER.value:
        return [
            StreamEvent(node_name=node, type=EventType.ROUTING, message="Deciding next step"),
            StreamEvent(node_name=node, type=EventType.ROUTE_DECISION,
                        message=f"Routing to {state.next_node_hint}",
                        data={"next_node": state.next_node_hint,
                              "reasoning": state.routing_reasoning,
                              "source": state.get("routing_source"), **extra}),
        ]
    if node == NodeName.MATH_EXECUTOR.value:
        return [
            StreamEvent(node_name=node, type=EventType.EXECUTING, message="Calculating"),
            StreamEvent(node_name=node, type=EventType.CALCULATION,
                        message=f"Sum: {state.sum}, Average: {state.average}",
                        data={"sum": state.sum, "average": state.average, **extra}),
        ]
    if node == NodeName.TEMPERATURE_CONVERTER.value:
        return [
            StreamEvent(node_name=node, type=EventType.EXECUTING, message="Converting temperature"),
            StreamEvent(node_name=node, type=EventType.CONVERSION,
                        message=f"{state.average}°C = {state.converted_value}°F",
                        data={"converted_value": state.converted_value, **extra}),
        ]
    if node in _LOOKUPS:
        key = "cve_query_results" if node == NodeName.CVE_QUERY.value else "ait_query_results"
        return [
            StreamEvent(node_name=node, type=EventType.EXECUTING, message="Querying database"),
            StreamEvent(node_name=node, type=EventType.LOOKUP, message=f"{node} finished",
                        data={key: state.get(key), **extra}),
        ]
    if node == NodeName.SUMMARIZER.value:
        return [
            StreamEvent(node_name=node, type=EventType.SUMMARIZING, message="Summary ready"),
            StreamEvent(node_name=node, type=EventType.CHUNK, message=state.final_answer or ""),
        ]
    return [StreamEvent(node_name=node, type=EventType.EXECUTING, message=f"{node} finished")]


def stream_workflow(
    query: str,
    numbers: Iterable[float] = (),
    *,
    cancel: Optional[threading.Event] = None,
) -> Iterator[StreamEvent]:
    """
    START, one burst per finished node, then COMPLETE or ERROR.
    Closing the iterator stops the run at the next node boundary.
    """
    rt = _runtime()
    started = time.monotonic()
    state = initial_state(query, numbers)
    steps = rt.main.steps(state, cancel=cancel, deadline=started + rt.settings.run_timeout_s)

    yield StreamEvent(node_name="workflow", type=EventType.START,
                      message=f"Starting workflow for: {query}")
    try:
        for record in steps:
            state = record.state
            yield from _node_events(record)
    except CollaboratorError as exc:
        log.exception("Streamed run aborted by %s failure", exc.source)
        yield StreamEvent(node_name=state.current_step or "workflow", type=EventType.ERROR,
                          message=f"{exc.source}: {exc}", data={"path": list(state.visited)})
        return
    except WorkflowError as exc:
        log.warning("Streamed run stopped: %s", exc)
        yield StreamEvent(node_name=state.current_step or "workflow", type=EventType.ERROR,
                          message=str(exc), data={"path": list(state.visited)})
        return
    finally:
        steps.close()

    elapsed = int((time.monotonic() - started) * 1000)
    yield StreamEvent(
        node_name="workflow",
        type=EventType.COMPLETE,
        message="Workflow complete",
        data={
            "final_answer": state.final_answer,
            "path": list(state.visited),
            "execution_time_ms": elapsed,
        },
    )


# ─────────────────────────── 4 · public helper ─────────────────────────
def run_workflow(
    query: str,
    numbers: Iterable[float] = (),
    kind: str = "calculation",
) -> Dict[str, Any]:
    """
    Entry-point used by Streamlit + tests.
    Always returns {"output": {...}} so callers have one envelope shape.
    """
    if kind == "ait":
        result = execute_ait_workflow(query)
    elif kind == "cve":
        result = execute_cve_workflow(query)
    elif kind == "calculation":
        result = execute_workflow(query, numbers)
    else:
        raise ValueError(f"unknown workflow kind '{kind}'; expected one of {WORKFLOW_KINDS}")

    final = result.final_state
    return {"output": {
        "status": result.status.value,
        "final_answer": final.final_answer if final else None,
        "error": result.error or (final.error if final else None),
        "path": result.path,
        "execution_time_ms": result.execution_time_ms,
        "trace": generate_detailed_trace(result.execution_trace),
        "summary": generate_execution_summary(result.execution_trace, result.execution_time_ms),
    }}
