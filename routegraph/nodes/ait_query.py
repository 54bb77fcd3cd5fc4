"""
routegraph.nodes.ait_query
==========================
AIT tech-stack lookups.

`ait_query` lets the model pick one of five tools and runs it.  For
`renderAITList` it only collects the matching ids; `ait_render` turns them
into the Markdown document the summarizer passes through unchanged.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from routegraph.fallback import FallbackKind, FallbackPolicy
from routegraph.llm import LanguageModel
from routegraph.nodes.base import LLMNode, Node
from routegraph.parsing import AIT_PARSER
from routegraph.prompts import AIT_FORMAT, get_prompt
from routegraph.schema import AITDecision, NodeName
from routegraph.state import WorkflowState
from routegraph.tools.ait_tools import AITTools

log = logging.getLogger(__name__)

TECH_STACK = "getAITTechStack"
FIND_BY_COMPONENT = "findAITsByComponent"
RENDER_LIST = "renderAITList"
FIND_BY_FIELD = "findAITsByField"
FIND_BY_CRITERIA = "findAITsByMultipleCriteria"
AIT_METHODS = (TECH_STACK, FIND_BY_COMPONENT, RENDER_LIST, FIND_BY_FIELD, FIND_BY_CRITERIA)
_CANONICAL = {m.lower(): m for m in AIT_METHODS}


class AITQueryNode(LLMNode):
    name = NodeName.AIT_QUERY.value

    def __init__(self, llm: LanguageModel, tools: AITTools):
        super().__init__(llm)
        self.tools = tools
        self.policy = FallbackPolicy(llm, AIT_PARSER, FallbackKind.CHOICE, default=None,
                                     allowed=AIT_METHODS, model=AITDecision)

    def apply(self, state: WorkflowState) -> Dict[str, Any]:
        log.info("[ait_query] query: %s", state.query)
        reply = self.ask(get_prompt("ait_query", {"QUERY": state.query}))
        resolution = self.decide(reply, state, AIT_PARSER, self.policy, AIT_FORMAT, AITDecision)

        update: Dict[str, Any] = {"current_step": self.name}
        if resolution.decision is None:
            update["error"] = "ait_query found no usable tool decision: " + "; ".join(resolution.failures)
            return update

        decision = AITDecision.model_validate(resolution.decision)
        method = _CANONICAL.get(decision.method.strip().lower())
        parameter = decision.parameter.strip()
        if method is None:
            log.warning("[ait_query] unknown method %r", decision.method)
            update["error"] = f"ait_query: unknown method '{decision.method}'"
            return update
        if not parameter:
            update["error"] = f"ait_query: {method} needs a parameter"
            return update

        log.info("[ait_query] %s(%r) – %s", method, parameter, decision.reasoning)
        if method == TECH_STACK:
            update["ait_query_results"] = self.tools.get_tech_stack(parameter)
        elif method == FIND_BY_COMPONENT:
            update["ait_query_results"] = self.tools.find_by_component(parameter)
        elif method == FIND_BY_FIELD:
            field, _, value = parameter.replace(":", "=", 1).partition("=")
            if not value.strip():
                update["error"] = f"ait_query: {method} needs 'field=value', got '{parameter}'"
                return update
            update["ait_query_results"] = self.tools.find_by_field(field.strip().lower(), value.strip())
        elif method == FIND_BY_CRITERIA:
            update["ait_query_results"] = self.tools.find_by_criteria(parameter)
        else:
            ids = self.tools.find_ids_by_component(parameter)
            update["ait_ids"] = ids
            update["ait_render_title"] = f"AITs using {parameter}"
            update["ait_query_results"] = ",".join(ids) or f"No AITs found using '{parameter}'"
        return update


class AITRenderNode(Node):
    """Renders `ait_ids` (when `ait_query` collected any) as Markdown."""

    name = NodeName.AIT_RENDER.value

    def __init__(self, tools: AITTools):
        self.tools = tools

    def apply(self, state: WorkflowState) -> Dict[str, Any]:
        ids = state.get("ait_ids")
        if ids is None:
            log.info("[ait_render] nothing to render")
            return {"current_step": self.name}
        title = state.get("ait_render_title", "Requested AITs")
        markdown = self.tools.render_by_ids(ids, title)
        log.info("[ait_render] rendered %d ids", len(ids))
        return {"ait_query_results": markdown, "current_step": self.name}
