from __future__ import annotations

import logging
from typing import Any, Dict

from routegraph.fallback import FallbackKind, FallbackPolicy
from routegraph.llm import LanguageModel
from routegraph.nodes.base import LLMNode
from routegraph.parsing import CONVERSION_PARSER
from routegraph.prompts import CONVERSION_FORMAT, get_prompt
from routegraph.schema import ConversionDecision, NodeName
from routegraph.state import WorkflowState, describe_state

log = logging.getLogger(__name__)


def celsius_to_fahrenheit(celsius: float) -> float:
    return celsius * 9 / 5 + 32


class TemperatureConverterNode(LLMNode):
    """Celsius → Fahrenheit of the value the model picks (normally `average`)."""

    name = NodeName.TEMPERATURE_CONVERTER.value

    def __init__(self, llm: LanguageModel):
        super().__init__(llm)
        self.policy = FallbackPolicy(llm, CONVERSION_PARSER, FallbackKind.NUMERIC,
                                     default=None, model=ConversionDecision)

    def apply(self, state: WorkflowState) -> Dict[str, Any]:
        log.info("[temperature_converter] average=%s", state.average)
        reply = self.ask(get_prompt("temperature_converter", {"STATE": describe_state(state)}))
        resolution = self.decide(reply, state, CONVERSION_PARSER, self.policy,
                                 CONVERSION_FORMAT, ConversionDecision)

        update: Dict[str, Any] = {"current_step": self.name}
        if resolution.decision is None:
            update["error"] = ("temperature_converter produced no usable result: "
                               + "; ".join(resolution.failures))
            return update

        decision = ConversionDecision.model_validate(resolution.decision)
        if decision.fahrenheit is None:
            update["error"] = "temperature_converter: no Celsius value to convert"
        else:
            update["converted_value"] = decision.fahrenheit
            if state.average is not None:
                expected = celsius_to_fahrenheit(state.average)
                if abs(expected - decision.fahrenheit) > 0.01:
                    log.warning("[temperature_converter] model said %.2f°F, %.2f°C is %.2f°F",
                                decision.fahrenheit, state.average, expected)
        log.info("[temperature_converter] fahrenheit=%s (%s)", decision.fahrenheit, resolution.source)
        return update
