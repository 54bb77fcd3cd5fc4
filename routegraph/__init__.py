"""
routegraph
==========
Route a natural-language request through a small graph of model-driven nodes.

    from routegraph import execute_workflow
    result = execute_workflow("Average of 10, 20, 30 in Fahrenheit", [10, 20, 30])
"""
from routegraph.schema import EventType, NodeName, RunResult, RunStatus, StreamEvent
from routegraph.state import WorkflowState, apply_update, initial_state
from routegraph.workflow import (
    configure,
    execute_ait_workflow,
    execute_cve_workflow,
    execute_workflow,
    reload_graph,
    run_workflow,
    stream_workflow,
)

__all__ = [
    "EventType", "NodeName", "RunResult", "RunStatus", "StreamEvent",
    "WorkflowState", "apply_update", "initial_state",
    "configure", "execute_workflow", "execute_ait_workflow", "execute_cve_workflow",
    "reload_graph", "run_workflow", "stream_workflow",
]
