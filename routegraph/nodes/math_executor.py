from __future__ import annotations

import logging
from typing import Any, Dict

from routegraph.fallback import FallbackKind, FallbackPolicy
from routegraph.llm import LanguageModel
from routegraph.nodes.base import LLMNode
from routegraph.parsing import MATH_PARSER
from routegraph.prompts import MATH_FORMAT, get_prompt
from routegraph.schema import MathDecision, NodeName
from routegraph.state import WorkflowState, describe_state

log = logging.getLogger(__name__)


class MathExecutorNode(LLMNode):
    """Sum and average of `numbers`, computed by the model."""

    name = NodeName.MATH_EXECUTOR.value

    def __init__(self, llm: LanguageModel):
        super().__init__(llm)
        self.policy = FallbackPolicy(llm, MATH_PARSER, FallbackKind.NUMERIC,
                                     default=None, model=MathDecision)

    def apply(self, state: WorkflowState) -> Dict[str, Any]:
        log.info("[math_executor] numbers=%s", list(state.numbers))
        reply = self.ask(get_prompt("math_executor", {"STATE": describe_state(state)}))
        resolution = self.decide(reply, state, MATH_PARSER, self.policy, MATH_FORMAT, MathDecision)

        update: Dict[str, Any] = {"current_step": self.name}
        if resolution.decision is None:
            update["error"] = ("math_executor produced no usable result: "
                               + "; ".join(resolution.failures))
            return update

        decision = MathDecision.model_validate(resolution.decision)
        if decision.sum is not None:
            update["sum"] = decision.sum
        if decision.average is not None:
            update["average"] = decision.average
        if decision.sum is None and decision.average is None:
            update["error"] = "math_executor: no numbers to calculate"
        log.info("[math_executor] sum=%s average=%s (%s)",
                 decision.sum, decision.average, resolution.source)
        return update
