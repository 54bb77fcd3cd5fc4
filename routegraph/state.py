"""
routegraph.state
================
Defines the Pydantic model that carries data between graph nodes.

The model is frozen: a node never edits the state it is given, it returns a
*partial update* (plain dict) and the executor builds the next state with
`apply_update`.  Add new top-level fields here whenever several nodes need to
share extra data; one-off keys can ride along as extras.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

log = logging.getLogger(__name__)

TRACE_KEY = "execution_trace"


class TraceEntry(BaseModel):
    """One executed node plus the state (minus the trace) right after it."""

    model_config = ConfigDict(frozen=True)

    node: str
    state: Dict[str, Any]


class WorkflowState(BaseModel):
    """
    Snapshot of everything one run knows.

    • `numbers`          – numeric seed, coerced to a tuple of floats
    • `next_node_hint`   – the router's choice, read by the conditional edge
    • `error`            – diagnostic for recoverable problems (no usable decision)
    • `execution_trace`  – append-only, one entry per node visit
    """

    query: str
    plan: Optional[str] = None
    current_step: Optional[str] = None
    numbers: Tuple[float, ...] = ()
    sum: Optional[float] = None
    average: Optional[float] = None
    converted_value: Optional[float] = None
    final_answer: Optional[str] = None
    complete: bool = False
    routing_reasoning: Optional[str] = None
    next_node_hint: Optional[str] = None
    error: Optional[str] = None
    execution_trace: Tuple[TraceEntry, ...] = Field(default_factory=tuple)

    # extension keys (lookup payloads etc.) are stored as extras
    model_config = ConfigDict(extra="allow", frozen=True)

    def get(self, key: str, default: Any = None) -> Any:
        value = getattr(self, key, None)
        return default if value is None else value

    def data(self) -> Dict[str, Any]:
        """Plain dict of every key except the trace."""
        return self.model_dump(exclude={TRACE_KEY})

    @property
    def visited(self) -> Tuple[str, ...]:
        return tuple(entry.node for entry in self.execution_trace)


def initial_state(query: str, numbers: Any = ()) -> WorkflowState:
    return WorkflowState(query=query, numbers=tuple(numbers or ()))


def apply_update(
    base: WorkflowState,
    update: Mapping[str, Any] | None,
    node_name: str,
) -> WorkflowState:
    """
    Merge `update` over `base` (update wins) and append a trace entry.

    Pure: `base` is left untouched.  An empty update still records the visit.
    """
    merged = base.data()
    for key, value in (update or {}).items():
        if key == TRACE_KEY:
            log.warning("Node '%s' tried to write %s directly; ignored", node_name, TRACE_KEY)
            continue
        merged[key] = value

    interim = WorkflowState.model_validate(merged)
    entry = TraceEntry(node=node_name, state=interim.data())
    return interim.model_copy(update={TRACE_KEY: base.execution_trace + (entry,)})


def describe_state(state: WorkflowState) -> str:
    """Deterministic text form of the state for prompts (same state → same text)."""
    return json.dumps(state.data(), sort_keys=True, indent=2, default=str)
