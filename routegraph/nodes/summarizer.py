from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from routegraph.nodes.base import LLMNode
from routegraph.prompts import get_prompt
from routegraph.schema import NodeName
from routegraph.state import WorkflowState, describe_state
from routegraph.visualize import generate_flow_diagram

log = logging.getLogger(__name__)

NO_SUMMARY = "Unable to generate summary"
_RENDERED_KEYS = ("ait_query_results", "cve_query_results")


def _rendered_markdown(state: WorkflowState) -> Optional[str]:
    for key in _RENDERED_KEYS:
        value = state.get(key)
        if isinstance(value, str) and value.lstrip().startswith("#"):
            return value
    return None


class SummarizerNode(LLMNode):
    """Terminal node: writes `final_answer` and sets `complete`."""

    name = NodeName.SUMMARIZER.value

    def apply(self, state: WorkflowState) -> Dict[str, Any]:
        rendered = _rendered_markdown(state)
        if rendered is not None:
            log.info("[summarizer] passing rendered Markdown through (%d chars)", len(rendered))
            return {"final_answer": rendered, "complete": True, "current_step": self.name}

        reply = self.ask(get_prompt("summarizer", {"STATE": describe_state(state)}))
        summary = (reply or "").strip() or NO_SUMMARY
        diagram = generate_flow_diagram(list(state.visited) + [self.name])
        log.info("[summarizer] summary ready (%d chars)", len(summary))
        return {
            "final_answer": f"{summary}\n{diagram}",
            "complete": True,
            "current_step": self.name,
        }
