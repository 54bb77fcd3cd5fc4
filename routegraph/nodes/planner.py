from __future__ import annotations

import logging
from typing import Any, Dict

from routegraph.nodes.base import LLMNode
from routegraph.prompts import get_prompt
from routegraph.schema import NodeName
from routegraph.state import WorkflowState, describe_state

log = logging.getLogger(__name__)

NO_PLAN = "Unable to generate plan"


class PlannerNode(LLMNode):
    """Free-text execution plan; decides nothing about routing."""

    name = NodeName.PLANNER.value

    def apply(self, state: WorkflowState) -> Dict[str, Any]:
        log.info("[planner] planning for query: %s", state.query)
        reply = self.ask(get_prompt("planner", {"STATE": describe_state(state)}))
        plan = (reply or "").strip() or NO_PLAN
        log.info("[planner] plan ready (%d chars)", len(plan))
        return {"plan": plan, "current_step": self.name}
