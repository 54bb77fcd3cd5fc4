"""
routegraph.nodes.router
=======================
Chooses the next node.  The choice is written to `next_node_hint`; the
conditional edge out of the router does the actual (validated) dispatch.

`routing_source` records how the choice was reached:
decided · clarified · extracted · defaulted.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from routegraph.fallback import FallbackKind, FallbackPolicy
from routegraph.llm import LanguageModel
from routegraph.nodes.base import LLMNode
from routegraph.parsing import ROUTE_PARSER
from routegraph.prompts import ROUTE_FORMAT, get_prompt
from routegraph.schema import NodeName, RouteDecision
from routegraph.state import WorkflowState

log = logging.getLogger(__name__)

ROUTES = (
    NodeName.MATH_EXECUTOR.value,
    NodeName.TEMPERATURE_CONVERTER.value,
    NodeName.SUMMARIZER.value,
)
DEFAULT_ROUTE = NodeName.SUMMARIZER.value


def _fmt(value: Any) -> str:
    return "null" if value is None else str(value)


class RouterNode(LLMNode):
    name = NodeName.ROUTER.value

    def __init__(self, llm: LanguageModel):
        super().__init__(llm)
        self.policy = FallbackPolicy(
            llm,
            ROUTE_PARSER,
            FallbackKind.CHOICE,
            default={"nextNode": DEFAULT_ROUTE,
                     "reasoning": "Defaulted to summarizer after all parsing attempts failed"},
            allowed=ROUTES,
            model=RouteDecision,
        )

    def build_prompt(self, state: WorkflowState) -> str:
        return get_prompt("router", {
            "QUERY": state.query,
            "SUM": _fmt(state.sum),
            "AVERAGE": _fmt(state.average),
            "FAHRENHEIT": _fmt(state.converted_value),
            "CURRENT_STEP": _fmt(state.current_step),
            "NUMBERS": list(state.numbers),
        })

    def apply(self, state: WorkflowState) -> Dict[str, Any]:
        log.info("[router] deciding after step '%s'", state.current_step)
        reply = self.ask(self.build_prompt(state))
        resolution = self.decide(reply, state, ROUTE_PARSER, self.policy, ROUTE_FORMAT, RouteDecision)

        decision = RouteDecision.model_validate(resolution.decision)
        hint = decision.next_node.strip().lower()
        reasoning = decision.reasoning
        source = resolution.source
        update: Dict[str, Any] = {"current_step": self.name}

        if resolution.failures:
            reasoning = f"{reasoning} [fallback: {'; '.join(resolution.failures)}]"
        if hint not in ROUTES:
            log.warning("[router] '%s' is not a known route; dispatcher will use '%s'",
                        decision.next_node, DEFAULT_ROUTE)
            source = "defaulted"
            update["error"] = f"router chose unknown node '{decision.next_node}'"
        elif source == "defaulted":
            update["error"] = "router could not obtain a routing decision"

        log.info("[router] → %s (%s)", hint, source)
        update.update({
            "next_node_hint": hint,
            "routing_reasoning": reasoning,
            "routing_source": source,
        })
        return update
