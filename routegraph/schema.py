"""
routegraph.schema
=================
Pydantic models that define the **only valid shape** for:

• NodeName        – the closed set of node identifiers
• *Decision       – structured results pulled out of model replies
• RunResult       – what a caller gets back from one run
• StreamEvent     – one incremental event of a streamed run

Decision models accept the camelCase keys the model is asked to emit
(`nextNode`, `minBaseScore`, …) as well as the snake_case field names.
"""
from __future__ import annotations

import json
import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from routegraph.state import TraceEntry, WorkflowState


# ────────────────────────── node identifiers ───────────────────────────
class NodeName(str, Enum):
    PLANNER = "planner"
    ROUTER = "router"
    MATH_EXECUTOR = "math_executor"
    TEMPERATURE_CONVERTER = "temperature_converter"
    SUMMARIZER = "summarizer"
    AIT_QUERY = "ait_query"
    AIT_RENDER = "ait_render"
    CVE_QUERY = "cve_query"

    def __str__(self) -> str:
        return self.value


# ────────────────────────── decisions ──────────────────────────────────
class _Decision(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RouteDecision(_Decision):
    next_node: str = Field(alias="nextNode")
    reasoning: str = "No reasoning provided"


class MathDecision(_Decision):
    sum: Optional[float] = None
    average: Optional[float] = None


class ConversionDecision(_Decision):
    fahrenheit: Optional[float] = None


class AITDecision(_Decision):
    method: str
    parameter: str = ""
    reasoning: str = "No reasoning provided"

    @field_validator("parameter", mode="before")
    @classmethod
    def _criteria_as_json(cls, value: Any) -> Any:
        # findAITsByMultipleCriteria may get its criteria as an object
        if isinstance(value, dict):
            return json.dumps(value)
        return "" if value is None else value


class CVEParameters(_Decision):
    year: Optional[int] = None
    min_base_score: Optional[float] = Field(default=None, alias="minBaseScore")
    cve_id: Optional[str] = Field(default=None, alias="cveId")


class CVEDecision(_Decision):
    method: str
    parameters: CVEParameters = Field(default_factory=CVEParameters)
    reasoning: str = "No reasoning provided"


# ────────────────────────── run results ────────────────────────────────
class RunStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    STEP_LIMIT_EXCEEDED = "step_limit_exceeded"
    CANCELLED = "cancelled"


class RunResult(BaseModel):
    """
    `final_state` is only set for COMPLETED runs; every other status carries
    an `error` message and whatever trace existed when the run stopped.
    """

    status: RunStatus
    final_state: Optional[WorkflowState] = None
    execution_trace: List[TraceEntry] = Field(default_factory=list)
    error: Optional[str] = None
    execution_time_ms: int = 0

    @property
    def success(self) -> bool:
        return self.status is RunStatus.COMPLETED

    @property
    def path(self) -> List[str]:
        return [entry.node for entry in self.execution_trace]


# ────────────────────────── streaming ──────────────────────────────────
class EventType(str, Enum):
    START = "start"
    PLANNING = "planning"
    PLAN_COMPLETE = "plan_complete"
    ROUTING = "routing"
    ROUTE_DECISION = "route_decision"
    EXECUTING = "executing"
    CALCULATION = "calculation"
    CONVERSION = "conversion"
    LOOKUP = "lookup"
    SUMMARIZING = "summarizing"
    COMPLETE = "complete"
    ERROR = "error"
    CHUNK = "chunk"


def _now_ms() -> int:
    return int(time.time() * 1000)


class StreamEvent(BaseModel):
    node_name: str
    type: EventType
    message: str = ""
    data: Optional[Dict[str, Any]] = None
    timestamp: int = Field(default_factory=_now_ms)


__all__ = [
    "NodeName", "RouteDecision", "MathDecision", "ConversionDecision",
    "AITDecision", "CVEParameters", "CVEDecision", "RunStatus", "RunResult",
    "EventType", "StreamEvent",
]
